from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from rest_framework.validators import UniqueValidator

from monitoring.models import ActionLog, Farm, Sensor
from .models import AdminNotification

User = get_user_model()


class AdminNotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = AdminNotification
        fields = [
            "id",
            "type",
            "severity",
            "domain",
            "title",
            "message",
            "context",
            "status",
            "pinned_until_resolved",
            "created_at",
            "acknowledged_at",
            "acknowledged_by",
            "resolved_at",
            "resolved_by",
        ]
        read_only_fields = fields


class AdminNotificationCreateSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=100)
    severity = serializers.ChoiceField(choices=AdminNotification.SEVERITY_CHOICES)
    domain = serializers.ChoiceField(choices=AdminNotification.DOMAIN_CHOICES)
    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    context = serializers.DictField(required=False)
    pinned_until_resolved = serializers.BooleanField(required=False, default=False)


class BulkIdsSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class AdminUserSerializer(serializers.ModelSerializer):
    farm_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "status",
            "phone",
            "city",
            "country",
            "last_login",
            "created_at",
            "updated_at",
            "farm_count",
        ]
        read_only_fields = ["id", "last_login", "created_at", "updated_at", "farm_count"]
        extra_kwargs = {"username": {"required": False}}

    def get_fields(self):
        fields = super().get_fields()
        # duplicates are reported as 409 by the view, not as field errors
        for name in ("email", "username"):
            fields[name].validators = [
                v for v in fields[name].validators
                if not isinstance(v, UniqueValidator)
            ]
        return fields

    def validate_email(self, value):
        # stored lowercased, login matches the lowercased input
        return value.strip().lower()


class AdminUserCreateSerializer(AdminUserSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta(AdminUserSerializer.Meta):
        fields = AdminUserSerializer.Meta.fields + ["password"]

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        password = validated_data.pop("password")
        validated_data.setdefault("username", validated_data["email"])
        return User.objects.create_user(password=password, **validated_data)


class AdminFarmSerializer(serializers.ModelSerializer):
    owner_id = serializers.PrimaryKeyRelatedField(
        source="owner",
        queryset=User.objects.all(),
        required=False,
        allow_null=True,
    )
    owner_email = serializers.EmailField(source="owner.email", read_only=True, default=None)
    device_count = serializers.IntegerField(read_only=True)
    sensor_count = serializers.IntegerField(read_only=True)
    zone_count = serializers.IntegerField(read_only=True)
    crop_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Farm
        fields = [
            "farm_id",
            "name",
            "location",
            "latitude",
            "longitude",
            "owner_id",
            "owner_email",
            "moderators",
            "city",
            "region",
            "country",
            "description",
            "area_hectares",
            "status",
            "created_at",
            "updated_at",
            "device_count",
            "sensor_count",
            "zone_count",
            "crop_count",
        ]
        read_only_fields = ["farm_id", "moderators", "created_at", "updated_at"]


class ModeratorsSerializer(serializers.Serializer):
    moderator_ids = serializers.PrimaryKeyRelatedField(
        many=True,
        queryset=User.objects.filter(role=User.ROLE_MODERATOR),
    )


class AssignFarmSerializer(serializers.Serializer):
    farm_id = serializers.PrimaryKeyRelatedField(queryset=Farm.objects.all())


class AdminSensorSerializer(serializers.ModelSerializer):
    device_name = serializers.CharField(source="device.name", read_only=True, default=None)
    device_status = serializers.CharField(source="device.status", read_only=True, default=None)
    farm_name = serializers.CharField(source="farm.name", read_only=True, default=None)
    last_reading = serializers.SerializerMethodField()

    class Meta:
        model = Sensor
        fields = [
            "id",
            "sensor_id",
            "type",
            "unit",
            "location",
            "farm",
            "farm_name",
            "device",
            "device_name",
            "device_status",
            "zone",
            "created_at",
            "last_reading",
        ]
        read_only_fields = fields

    def get_last_reading(self, sensor):
        if sensor.last_reading_at is None:
            return None
        return {
            "value1": sensor.last_value1,
            "value2": sensor.last_value2,
            "createdAt": sensor.last_reading_at,
        }


class ActivitySerializer(serializers.ModelSerializer):
    """One action log row as shown in the console log views."""
    device_id = serializers.CharField(read_only=True)
    user_id = serializers.IntegerField(source="requested_by_id", read_only=True, allow_null=True)
    metadata = serializers.JSONField(source="payload", read_only=True)
    timestamp = serializers.DateTimeField(source="created_at", read_only=True)
    action = serializers.CharField(source="action_uri", read_only=True)

    class Meta:
        model = ActionLog
        fields = [
            "id",
            "timestamp",
            "action",
            "trigger_source",
            "device_id",
            "user_id",
            "status",
            "error",
            "metadata",
        ]
        read_only_fields = fields
