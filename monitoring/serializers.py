from rest_framework import serializers

from .models import (
    ActionLog,
    Crop,
    Device,
    Farm,
    Notification,
    Sensor,
    SensorReading,
    Zone,
)


class FarmSerializer(serializers.ModelSerializer):
    class Meta:
        model = Farm
        fields = [
            "farm_id",
            "name",
            "location",
            "latitude",
            "longitude",
            "owner",
            "moderators",
            "city",
            "region",
            "country",
            "description",
            "area_hectares",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["farm_id", "owner", "moderators", "created_at", "updated_at"]
        # owner: user ID, set from the request user


class SensorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Sensor
        fields = [
            "id",
            "sensor_id",
            "farm",
            "device",
            "zone",
            "type",
            "unit",
            "location",
            "min_critical",
            "min_warning",
            "max_warning",
            "max_critical",
            "action_low",
            "action_high",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate(self, attrs):
        farm = attrs.get("farm", getattr(self.instance, "farm", None))
        device = attrs.get("device", getattr(self.instance, "device", None))
        zone = attrs.get("zone", getattr(self.instance, "zone", None))
        if device is not None and farm is not None and device.farm_id != farm.farm_id:
            raise serializers.ValidationError({"device": "Device belongs to another farm."})
        if zone is not None and farm is not None and zone.farm_id != farm.farm_id:
            raise serializers.ValidationError({"zone": "Zone belongs to another farm."})

        # thresholds must be ordered when several are given
        bounds = [attrs.get(name, getattr(self.instance, name, None))
                  for name in ("min_critical", "min_warning", "max_warning", "max_critical")]
        present = [b for b in bounds if b is not None]
        if present != sorted(present):
            raise serializers.ValidationError(
                "Thresholds must satisfy min_critical <= min_warning <= max_warning <= max_critical."
            )
        return attrs


class DeviceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Device
        fields = [
            "device_id",
            "name",
            "location",
            "status",
            "farm",
            "zone",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def get_fields(self):
        fields = super().get_fields()
        if self.instance is not None:
            # a device keeps its id for life
            fields["device_id"].read_only = True
        return fields

    def validate(self, attrs):
        farm = attrs.get("farm", getattr(self.instance, "farm", None))
        zone = attrs.get("zone")
        if zone is not None and farm is not None and zone.farm_id != farm.farm_id:
            raise serializers.ValidationError({"zone": "Zone belongs to another farm."})
        return attrs


class DeviceWithSensorsSerializer(DeviceSerializer):
    sensors = SensorSerializer(many=True, read_only=True)

    class Meta(DeviceSerializer.Meta):
        fields = DeviceSerializer.Meta.fields + ["sensors"]


class DeviceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Device.STATUS_CHOICES)


class FarmWithDevicesSerializer(FarmSerializer):
    devices = DeviceWithSensorsSerializer(many=True, read_only=True)

    class Meta(FarmSerializer.Meta):
        fields = FarmSerializer.Meta.fields + ["devices"]


class FarmWithSensorsSerializer(FarmSerializer):
    sensors = SensorSerializer(many=True, read_only=True)

    class Meta(FarmSerializer.Meta):
        fields = FarmSerializer.Meta.fields + ["sensors"]


class CropSerializer(serializers.ModelSerializer):
    class Meta:
        model = Crop
        fields = [
            "crop_id",
            "farm",
            "zone",
            "name",
            "description",
            "variety",
            "planting_date",
            "expected_harvest_date",
            "status",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["crop_id", "created_at", "updated_at"]

    def validate(self, attrs):
        farm = attrs.get("farm", getattr(self.instance, "farm", None))
        zone = attrs.get("zone", getattr(self.instance, "zone", None))
        if zone is not None and farm is not None and zone.farm_id != farm.farm_id:
            raise serializers.ValidationError({"zone": "Zone belongs to another farm."})
        planted = attrs.get("planting_date", getattr(self.instance, "planting_date", None))
        harvest = attrs.get("expected_harvest_date", getattr(self.instance, "expected_harvest_date", None))
        if planted and harvest and harvest < planted:
            raise serializers.ValidationError(
                {"expected_harvest_date": "Harvest date cannot be before the planting date."}
            )
        return attrs


class CropWithFarmSerializer(CropSerializer):
    farm_detail = FarmSerializer(source="farm", read_only=True)

    class Meta(CropSerializer.Meta):
        fields = CropSerializer.Meta.fields + ["farm_detail"]


class ZoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Zone
        fields = [
            "id",
            "farm",
            "name",
            "type",
            "area_m2",
            "coordinates",
            "description",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        # uniqueness of the name is checked by the view (409)
        validators = []


class ZoneDetailSerializer(ZoneSerializer):
    sensors = SensorSerializer(many=True, read_only=True)
    crops = CropSerializer(many=True, read_only=True)
    devices = DeviceSerializer(many=True, read_only=True)

    class Meta(ZoneSerializer.Meta):
        fields = ZoneSerializer.Meta.fields + ["sensors", "crops", "devices"]


class SensorReadingSerializer(serializers.ModelSerializer):
    sensor_id = serializers.SlugRelatedField(
        source="sensor",
        slug_field="sensor_id",
        queryset=Sensor.objects.all(),
    )

    class Meta:
        model = SensorReading
        fields = [
            "id",
            "sensor_id",
            "value1",
            "value2",
            "created_at",
        ]
        read_only_fields = ["id"]
        extra_kwargs = {"created_at": {"required": False}}

    def validate(self, attrs):
        if attrs.get("value1") is None and attrs.get("value2") is None:
            raise serializers.ValidationError("A reading needs value1 or value2.")
        return attrs


class ActionLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ActionLog
        fields = [
            "id",
            "device",
            "action_uri",
            "trigger_source",
            "status",
            "payload",
            "error",
            "created_at",
        ]
        read_only_fields = ["id", "device", "trigger_source", "status", "error", "created_at"]


class ActionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ActionLog.STATUS_CHOICES)
    error = serializers.CharField(required=False, allow_blank=True)


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "level",
            "source",
            "title",
            "message",
            "context",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields
