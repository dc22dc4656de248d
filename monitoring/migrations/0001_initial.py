import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Farm",
            fields=[
                ("farm_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name="Farm ID")),
                ("name", models.CharField(max_length=100, verbose_name="Name")),
                ("location", models.CharField(blank=True, default="", max_length=255, verbose_name="Location")),
                ("latitude", models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True, verbose_name="Latitude")),
                ("longitude", models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True, verbose_name="Longitude")),
                ("city", models.CharField(blank=True, default="", max_length=100, verbose_name="City")),
                ("region", models.CharField(blank=True, default="", max_length=100, verbose_name="Region")),
                ("country", models.CharField(blank=True, default="", max_length=100, verbose_name="Country")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("area_hectares", models.DecimalField(blank=True, decimal_places=2, help_text="Farm size in hectares", max_digits=10, null=True, verbose_name="Area (ha)")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive")], default="active", max_length=20, verbose_name="Status")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="farms", to=settings.AUTH_USER_MODEL, verbose_name="Owner")),
                ("moderators", models.ManyToManyField(blank=True, db_table="farm_moderators", related_name="moderated_farms", to=settings.AUTH_USER_MODEL, verbose_name="Moderators")),
            ],
            options={
                "verbose_name": "Farm",
                "verbose_name_plural": "Farms",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Zone",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=120, verbose_name="Name")),
                ("type", models.CharField(choices=[("indoor", "Indoor"), ("outdoor", "Outdoor"), ("greenhouse", "Greenhouse"), ("hydroponic", "Hydroponic")], default="outdoor", max_length=20, verbose_name="Type")),
                ("area_m2", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="Area (m²)")),
                ("coordinates", models.JSONField(blank=True, null=True, verbose_name="Coordinates")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive")], default="active", max_length=20, verbose_name="Status")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("deleted_at", models.DateTimeField(blank=True, null=True, verbose_name="Deleted At")),
                ("farm", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="zones", to="monitoring.farm", verbose_name="Farm")),
            ],
            options={
                "verbose_name": "Zone",
                "verbose_name_plural": "Zones",
                "ordering": ["name"],
            },
        ),
        migrations.AddConstraint(
            model_name="zone",
            constraint=models.UniqueConstraint(condition=models.Q(("deleted_at__isnull", True)), fields=("farm", "name"), name="unique_live_zone_name_per_farm"),
        ),
        migrations.CreateModel(
            name="Device",
            fields=[
                ("device_id", models.CharField(max_length=100, primary_key=True, serialize=False, verbose_name="Device ID")),
                ("name", models.CharField(max_length=100, verbose_name="Name")),
                ("location", models.CharField(blank=True, default="", max_length=255, verbose_name="Location")),
                ("status", models.CharField(choices=[("online", "Online"), ("offline", "Offline"), ("maintenance", "Maintenance")], default="offline", max_length=20, verbose_name="Status")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("farm", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="devices", to="monitoring.farm", verbose_name="Farm")),
                ("zone", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="devices", to="monitoring.zone", verbose_name="Zone")),
            ],
            options={
                "verbose_name": "Device",
                "verbose_name_plural": "Devices",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Sensor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sensor_id", models.CharField(max_length=100, unique=True, verbose_name="Sensor ID")),
                ("type", models.CharField(max_length=50, verbose_name="Sensor Type")),
                ("unit", models.CharField(blank=True, default="", max_length=20, verbose_name="Unit")),
                ("location", models.CharField(blank=True, default="", max_length=255, verbose_name="Location")),
                ("min_critical", models.FloatField(blank=True, null=True, verbose_name="Min Critical")),
                ("min_warning", models.FloatField(blank=True, null=True, verbose_name="Min Warning")),
                ("max_warning", models.FloatField(blank=True, null=True, verbose_name="Max Warning")),
                ("max_critical", models.FloatField(blank=True, null=True, verbose_name="Max Critical")),
                ("action_low", models.CharField(blank=True, max_length=255, null=True, verbose_name="Action When Low")),
                ("action_high", models.CharField(blank=True, max_length=255, null=True, verbose_name="Action When High")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("device", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sensors", to="monitoring.device", verbose_name="Device")),
                ("farm", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sensors", to="monitoring.farm", verbose_name="Farm")),
                ("zone", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sensors", to="monitoring.zone", verbose_name="Zone")),
            ],
            options={
                "verbose_name": "Sensor",
                "verbose_name_plural": "Sensors",
                "ordering": ["sensor_id"],
            },
        ),
        migrations.CreateModel(
            name="SensorReading",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("value1", models.FloatField(blank=True, null=True, verbose_name="Value 1")),
                ("value2", models.FloatField(blank=True, null=True, verbose_name="Value 2")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="Timestamp")),
                ("sensor", models.ForeignKey(db_column="sensor_id", on_delete=django.db.models.deletion.CASCADE, related_name="readings", to="monitoring.sensor", to_field="sensor_id", verbose_name="Sensor")),
            ],
            options={
                "verbose_name": "Sensor Reading",
                "verbose_name_plural": "Sensor Readings",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Crop",
            fields=[
                ("crop_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name="Crop ID")),
                ("name", models.CharField(max_length=100, verbose_name="Name")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("variety", models.CharField(blank=True, default="", max_length=100, verbose_name="Variety")),
                ("planting_date", models.DateField(blank=True, null=True, verbose_name="Planting Date")),
                ("expected_harvest_date", models.DateField(blank=True, null=True, verbose_name="Expected Harvest Date")),
                ("status", models.CharField(choices=[("planted", "Planted"), ("growing", "Growing"), ("harvested", "Harvested"), ("failed", "Failed")], default="planted", max_length=20, verbose_name="Status")),
                ("notes", models.TextField(blank=True, default="", verbose_name="Notes")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("farm", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="crops", to="monitoring.farm", verbose_name="Farm")),
                ("zone", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="crops", to="monitoring.zone", verbose_name="Zone")),
            ],
            options={
                "verbose_name": "Crop",
                "verbose_name_plural": "Crops",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ActionLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action_uri", models.CharField(max_length=255, verbose_name="Action")),
                ("trigger_source", models.CharField(choices=[("auto", "Automatic"), ("manual", "Manual")], default="manual", max_length=10, verbose_name="Trigger")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("ack", "Acknowledged"), ("failed", "Failed")], default="pending", max_length=10, verbose_name="Status")),
                ("payload", models.JSONField(blank=True, null=True, verbose_name="Payload")),
                ("error", models.TextField(blank=True, default="", verbose_name="Error")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="Created At")),
                ("device", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="actions", to="monitoring.device", verbose_name="Device")),
            ],
            options={
                "verbose_name": "Action Log",
                "verbose_name_plural": "Action Logs",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("level", models.CharField(choices=[("critical", "Critical"), ("warning", "Warning"), ("info", "Info"), ("success", "Success")], max_length=10, verbose_name="Level")),
                ("source", models.CharField(choices=[("sensor", "Sensor"), ("device", "Device"), ("action", "Action"), ("system", "System")], default="system", max_length=10, verbose_name="Source")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("message", models.TextField(verbose_name="Message")),
                ("context", models.JSONField(blank=True, null=True, verbose_name="Context")),
                ("is_read", models.BooleanField(default=False, verbose_name="Read")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="Created At")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "Notification",
                "verbose_name_plural": "Notifications",
                "ordering": ["-created_at"],
            },
        ),
    ]
