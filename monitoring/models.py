import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class Farm(models.Model):
    """
    A farm owned by a user and optionally supervised by moderators.
    Fields:
    - owner: User foreign key (nullable, farms can be created unassigned by admins)
    - moderators: users with the moderator role who may see this farm
    - latitude / longitude: decimal coordinates
    - area_hectares: surface in hectares
    """
    STATUS_CHOICES = [
        ("active", "Active"),
        ("inactive", "Inactive"),
    ]

    farm_id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name="Farm ID"
    )
    name = models.CharField(max_length=100, verbose_name="Name")
    location = models.CharField(max_length=255, blank=True, default="", verbose_name="Location")
    latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True, verbose_name="Latitude")
    longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True, verbose_name="Longitude")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="farms",  # User.farms gives all farms of a user
        verbose_name="Owner"
    )
    moderators = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="moderated_farms",
        db_table="farm_moderators",
        verbose_name="Moderators"
    )
    city = models.CharField(max_length=100, blank=True, default="", verbose_name="City")
    region = models.CharField(max_length=100, blank=True, default="", verbose_name="Region")
    country = models.CharField(max_length=100, blank=True, default="", verbose_name="Country")
    description = models.TextField(blank=True, default="", verbose_name="Description")
    area_hectares = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Farm size in hectares",
        verbose_name="Area (ha)"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active", verbose_name="Status")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        verbose_name = "Farm"
        verbose_name_plural = "Farms"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.farm_id})"


class ZoneQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class Zone(models.Model):
    """
    A subdivision of a farm (greenhouse, field block...).
    Zones are soft-deleted: deleted_at is set and their sensors, crops and
    devices are detached.
    """
    TYPE_CHOICES = [
        ("indoor", "Indoor"),
        ("outdoor", "Outdoor"),
        ("greenhouse", "Greenhouse"),
        ("hydroponic", "Hydroponic"),
    ]
    STATUS_CHOICES = [
        ("active", "Active"),
        ("inactive", "Inactive"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    farm = models.ForeignKey(
        Farm,
        on_delete=models.CASCADE,  # Delete zones if farm is deleted
        related_name="zones",
        verbose_name="Farm"
    )
    name = models.CharField(max_length=120, verbose_name="Name")
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="outdoor", verbose_name="Type")
    area_m2 = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="Area (m²)")
    coordinates = models.JSONField(null=True, blank=True, verbose_name="Coordinates")
    description = models.TextField(blank=True, default="", verbose_name="Description")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active", verbose_name="Status")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")
    deleted_at = models.DateTimeField(null=True, blank=True, verbose_name="Deleted At")

    objects = ZoneQuerySet.as_manager()

    class Meta:
        verbose_name = "Zone"
        verbose_name_plural = "Zones"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["farm", "name"],
                condition=models.Q(deleted_at__isnull=True),
                name="unique_live_zone_name_per_farm",
            ),
        ]

    def __str__(self):
        return f"{self.name} (farm {self.farm_id})"


class Device(models.Model):
    """
    A field controller or gateway. The id is supplied by the device itself.
    """
    STATUS_ONLINE = "online"
    STATUS_OFFLINE = "offline"
    STATUS_MAINTENANCE = "maintenance"
    STATUS_CHOICES = [
        (STATUS_ONLINE, "Online"),
        (STATUS_OFFLINE, "Offline"),
        (STATUS_MAINTENANCE, "Maintenance"),
    ]

    device_id = models.CharField(max_length=100, primary_key=True, verbose_name="Device ID")
    name = models.CharField(max_length=100, verbose_name="Name")
    location = models.CharField(max_length=255, blank=True, default="", verbose_name="Location")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OFFLINE, verbose_name="Status")
    farm = models.ForeignKey(
        Farm,
        on_delete=models.CASCADE,
        related_name="devices",
        verbose_name="Farm"
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="devices",
        verbose_name="Zone"
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        verbose_name = "Device"
        verbose_name_plural = "Devices"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} [{self.device_id}] ({self.status})"


class Sensor(models.Model):
    """
    A sensor attached to a farm (and usually a device and a zone).
    Fields:
        type: free text ("soil_moisture", "temperature", "humidity"...)
        min_critical < min_warning < max_warning < max_critical: alert thresholds,
            any of them may be left empty
        action_low / action_high: advice shown when a reading is too low / too high
    """
    sensor_id = models.CharField(max_length=100, unique=True, verbose_name="Sensor ID")
    farm = models.ForeignKey(
        Farm,
        on_delete=models.CASCADE,
        related_name="sensors",
        verbose_name="Farm"
    )
    device = models.ForeignKey(
        Device,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sensors",
        verbose_name="Device"
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sensors",
        verbose_name="Zone"
    )
    type = models.CharField(max_length=50, verbose_name="Sensor Type")
    unit = models.CharField(max_length=20, blank=True, default="", verbose_name="Unit")
    location = models.CharField(max_length=255, blank=True, default="", verbose_name="Location")
    min_critical = models.FloatField(null=True, blank=True, verbose_name="Min Critical")
    min_warning = models.FloatField(null=True, blank=True, verbose_name="Min Warning")
    max_warning = models.FloatField(null=True, blank=True, verbose_name="Max Warning")
    max_critical = models.FloatField(null=True, blank=True, verbose_name="Max Critical")
    action_low = models.CharField(max_length=255, blank=True, null=True, verbose_name="Action When Low")
    action_high = models.CharField(max_length=255, blank=True, null=True, verbose_name="Action When High")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Sensor"
        verbose_name_plural = "Sensors"
        ordering = ["sensor_id"]

    def __str__(self):
        return f"{self.type} sensor {self.sensor_id}"


class SensorReading(models.Model):
    """
    Represents a single sensor reading.
    Fields:
        sensor: the sensor (by its sensor_id)
        value1: primary measured value
        value2: secondary value for dual-channel sensors
        created_at: measurement time, defaults to ingestion time
    """
    sensor = models.ForeignKey(
        Sensor,
        to_field="sensor_id",
        db_column="sensor_id",
        on_delete=models.CASCADE,  # Delete readings if sensor is deleted
        related_name="readings",
        verbose_name="Sensor"
    )
    value1 = models.FloatField(null=True, blank=True, verbose_name="Value 1")
    value2 = models.FloatField(null=True, blank=True, verbose_name="Value 2")
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name="Timestamp")

    class Meta:
        verbose_name = "Sensor Reading"
        verbose_name_plural = "Sensor Readings"
        ordering = ["-created_at"]  # Most recent reading first

    def __str__(self):
        return f"{self.sensor_id}={self.value1} at {self.created_at}"


class Crop(models.Model):
    """
    A crop planted on a farm, optionally inside a zone.
    """
    STATUS_PLANTED = "planted"
    STATUS_GROWING = "growing"
    STATUS_HARVESTED = "harvested"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_PLANTED, "Planted"),
        (STATUS_GROWING, "Growing"),
        (STATUS_HARVESTED, "Harvested"),
        (STATUS_FAILED, "Failed"),
    ]
    ACTIVE_STATUSES = (STATUS_PLANTED, STATUS_GROWING)

    crop_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, verbose_name="Crop ID")
    farm = models.ForeignKey(
        Farm,
        on_delete=models.CASCADE,
        related_name="crops",
        verbose_name="Farm"
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="crops",
        verbose_name="Zone"
    )
    name = models.CharField(max_length=100, verbose_name="Name")
    description = models.TextField(blank=True, default="", verbose_name="Description")
    variety = models.CharField(max_length=100, blank=True, default="", verbose_name="Variety")
    planting_date = models.DateField(null=True, blank=True, verbose_name="Planting Date")
    expected_harvest_date = models.DateField(null=True, blank=True, verbose_name="Expected Harvest Date")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PLANTED, verbose_name="Status")
    notes = models.TextField(blank=True, default="", verbose_name="Notes")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        verbose_name = "Crop"
        verbose_name_plural = "Crops"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.get_status_display()})"


class ActionLog(models.Model):
    """
    A command sent to a device, either by automation or by a user.
    """
    TRIGGER_CHOICES = [
        ("auto", "Automatic"),
        ("manual", "Manual"),
    ]
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("ack", "Acknowledged"),
        ("failed", "Failed"),
    ]

    device = models.ForeignKey(
        Device,
        on_delete=models.CASCADE,
        related_name="actions",
        verbose_name="Device"
    )
    action_uri = models.CharField(max_length=255, verbose_name="Action")
    trigger_source = models.CharField(max_length=10, choices=TRIGGER_CHOICES, default="manual", verbose_name="Trigger")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="pending", verbose_name="Status")
    payload = models.JSONField(null=True, blank=True, verbose_name="Payload")
    error = models.TextField(blank=True, default="", verbose_name="Error")
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="requested_actions",
        verbose_name="Requested By"
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Action Log"
        verbose_name_plural = "Action Logs"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.action_uri} on {self.device_id} ({self.status})"


class Notification(models.Model):
    """
    Farmer-facing notification (threshold breaches, device events).
    """
    LEVEL_CHOICES = [
        ("critical", "Critical"),
        ("warning", "Warning"),
        ("info", "Info"),
        ("success", "Success"),
    ]
    SOURCE_CHOICES = [
        ("sensor", "Sensor"),
        ("device", "Device"),
        ("action", "Action"),
        ("system", "System"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="User"
    )
    level = models.CharField(max_length=10, choices=LEVEL_CHOICES, verbose_name="Level")
    source = models.CharField(max_length=10, choices=SOURCE_CHOICES, default="system", verbose_name="Source")
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    context = models.JSONField(null=True, blank=True, verbose_name="Context")
    is_read = models.BooleanField(default=False, verbose_name="Read")
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at"]

    def __str__(self):
        return f"[{self.level}] {self.title} -> {self.user_id}"
