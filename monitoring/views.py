import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.generics import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from administration.events import emit
from administration.models import AdminNotification
from smartfarm_backend.exceptions import Conflict
from . import crop_analytics
from .advisor import classify_value
from .dashboard import aggregate_by_farm, aggregate_by_zone
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
from .permissions import HasFarmAccess, accessible_farms, can_access_farm, scope_to_user
from .realtime import broadcast_to_farm
from .serializers import (
    ActionLogSerializer,
    ActionStatusSerializer,
    CropSerializer,
    CropWithFarmSerializer,
    DeviceSerializer,
    DeviceStatusSerializer,
    DeviceWithSensorsSerializer,
    FarmSerializer,
    FarmWithDevicesSerializer,
    FarmWithSensorsSerializer,
    NotificationSerializer,
    SensorReadingSerializer,
    SensorSerializer,
    ZoneDetailSerializer,
    ZoneSerializer,
)

logger = logging.getLogger(__name__)


def flag(request, name):
    return request.query_params.get(name, "").lower() in ("1", "true", "yes")


class FarmScopedMixin:
    """
    Lists are restricted to the caller's farms; detail routes load any object
    and let HasFarmAccess answer 403 for farms the caller cannot see.
    """
    permission_classes = [HasFarmAccess]
    farm_field = "farm"

    def scoped(self, queryset):
        return scope_to_user(queryset, self.request.user, self.farm_field)

    def require_farm_access(self, farm_id):
        if not can_access_farm(self.request.user, farm_id):
            raise PermissionDenied("You do not have access to this farm.")

    def load_farm(self, farm_id):
        """404 for unknown farms, 403 for farms outside the caller's scope."""
        if not farm_id:
            raise ValidationError({"farm": "This field is required."})
        farm = get_object_or_404(Farm.objects.all(), pk=farm_id)
        self.require_farm_access(farm.farm_id)
        return farm


# -------------------- Farms -------------------- #

class FarmViewSet(FarmScopedMixin, viewsets.ModelViewSet):
    serializer_class = FarmSerializer
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        """Farm members see only their farms, admins see all"""
        queryset = Farm.objects.select_related("owner")
        if self.action == "list":
            return accessible_farms(self.request.user).select_related("owner")
        return queryset

    def get_serializer_class(self):
        if self.action in ("list", "retrieve"):
            if flag(self.request, "includeDevices"):
                return FarmWithDevicesSerializer
            if flag(self.request, "includeSensors"):
                return FarmWithSensorsSerializer
        return FarmSerializer

    def perform_create(self, serializer):
        """Auto-set owner when creating farm"""
        farm = serializer.save(owner=self.request.user)
        logger.info("Farm %s created by %s", farm.farm_id, self.request.user.email)
        emit(
            Farm,
            "farm.created",
            farmId=str(farm.farm_id),
            farmName=farm.name,
            ownerId=str(self.request.user.id),
            ownerEmail=self.request.user.email,
        )

    def perform_update(self, serializer):
        user = self.request.user
        if not user.is_admin and serializer.instance.owner_id != user.id:
            raise PermissionDenied("Only the farm owner can edit this farm.")
        serializer.save()

    @action(detail=True, methods=["get"])
    def devices(self, request, pk=None):
        """GET /api/v1/farms/{id}/devices/"""
        farm = self.get_object()
        return Response(DeviceSerializer(farm.devices.all(), many=True).data)

    @action(detail=True, methods=["get"])
    def sensors(self, request, pk=None):
        """GET /api/v1/farms/{id}/sensors/"""
        farm = self.get_object()
        return Response(SensorSerializer(farm.sensors.all(), many=True).data)

    @action(detail=False, methods=["post"], url_path="request-access")
    def request_access(self, request):
        """
        POST /api/v1/farms/request-access/
        A farmer without a farm asks the admins for one.
        """
        user = request.user
        emit(
            Farm,
            "user.farm_request",
            userId=str(user.id),
            email=user.email,
            userName=user.get_full_name() or user.username,
        )
        return Response({"detail": "Your request has been sent to the administrators."},
                        status=status.HTTP_202_ACCEPTED)


# -------------------- Zones -------------------- #

class ZoneViewSet(FarmScopedMixin, viewsets.ModelViewSet):
    serializer_class = ZoneSerializer
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        queryset = Zone.objects.alive().select_related("farm")
        if self.action == "list":
            queryset = self.scoped(queryset).prefetch_related("sensors", "crops", "devices")
            farm_id = self.request.query_params.get("farmId")
            if farm_id:
                self.load_farm(farm_id)
                queryset = queryset.filter(farm_id=farm_id)
            return queryset.order_by("name")
        return queryset

    def get_serializer_class(self):
        if self.action in ("list", "retrieve"):
            return ZoneDetailSerializer
        return ZoneSerializer

    def _check_name(self, farm_id, name, exclude_id=None):
        clash = Zone.objects.alive().filter(farm_id=farm_id, name=name)
        if exclude_id is not None:
            clash = clash.exclude(pk=exclude_id)
        if clash.exists():
            raise Conflict(f'A zone named "{name}" already exists on this farm.')

    def create(self, request, *args, **kwargs):
        farm = self.load_farm(request.data.get("farm") or request.data.get("farmId"))
        serializer = self.get_serializer(data={**request.data, "farm": str(farm.farm_id)})
        serializer.is_valid(raise_exception=True)
        self._check_name(farm.farm_id, serializer.validated_data["name"])
        zone = serializer.save(farm=farm)
        logger.info("Zone %s created on farm %s", zone.id, farm.farm_id)
        return Response(ZoneSerializer(zone).data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        zone = serializer.instance
        if "farm" in serializer.validated_data and serializer.validated_data["farm"].farm_id != zone.farm_id:
            raise ValidationError({"farm": "A zone cannot move to another farm."})
        name = serializer.validated_data.get("name")
        if name and name != zone.name:
            self._check_name(zone.farm_id, name, exclude_id=zone.pk)
        serializer.save()

    def perform_destroy(self, instance):
        """Soft delete: detach sensors, crops and devices, keep the row."""
        with transaction.atomic():
            Sensor.objects.filter(zone=instance).update(zone=None)
            Crop.objects.filter(zone=instance).update(zone=None)
            Device.objects.filter(zone=instance).update(zone=None)
            instance.deleted_at = timezone.now()
            instance.status = "inactive"
            instance.save(update_fields=["deleted_at", "status", "updated_at"])
        logger.info("Zone %s soft-deleted", instance.id)

    @action(detail=True, methods=["post"], url_path="assign-sensor")
    def assign_sensor(self, request, pk=None):
        zone = self.get_object()
        sensor = get_object_or_404(Sensor.objects.all(), sensor_id=request.data.get("sensorId"))
        if sensor.farm_id != zone.farm_id:
            raise ValidationError({"sensorId": "Sensor belongs to another farm."})
        sensor.zone = zone
        sensor.save(update_fields=["zone"])
        return Response(SensorSerializer(sensor).data)

    @action(detail=True, methods=["post"], url_path="assign-device")
    def assign_device(self, request, pk=None):
        zone = self.get_object()
        device = get_object_or_404(Device.objects.all(), pk=request.data.get("deviceId"))
        if device.farm_id != zone.farm_id:
            raise ValidationError({"deviceId": "Device belongs to another farm."})
        device.zone = zone
        device.save(update_fields=["zone", "updated_at"])
        return Response(DeviceSerializer(device).data)


# -------------------- Devices -------------------- #

def after_device_status_change(device, previous_status):
    if device.status == previous_status:
        return
    logger.info("Device %s: %s -> %s", device.device_id, previous_status, device.status)
    broadcast_to_farm(device.farm_id, "device:status", {
        "device_id": device.device_id,
        "status": device.status,
        "previous": previous_status,
        "updated_at": device.updated_at.isoformat(),
    })
    if device.status == Device.STATUS_OFFLINE:
        threshold = settings.DEVICE_OFFLINE_SPIKE_THRESHOLD
        offline = Device.objects.filter(farm_id=device.farm_id, status=Device.STATUS_OFFLINE).count()
        if offline >= threshold:
            emit(Device, "device.offline_spike", count=offline, threshold=threshold, farmId=str(device.farm_id))


class DeviceViewSet(FarmScopedMixin, viewsets.ModelViewSet):
    serializer_class = DeviceSerializer
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        queryset = Device.objects.select_related("farm")
        if self.action in ("list", "statistics", "by_status", "by_farm"):
            queryset = self.scoped(queryset)
            if flag(self.request, "includeSensors"):
                queryset = queryset.prefetch_related("sensors")
        return queryset

    def get_serializer_class(self):
        if flag(self.request, "includeSensors"):
            return DeviceWithSensorsSerializer
        return DeviceSerializer

    def perform_create(self, serializer):
        self.require_farm_access(serializer.validated_data["farm"].farm_id)
        device = serializer.save()
        logger.info("Device %s registered on farm %s", device.device_id, device.farm_id)

    def perform_update(self, serializer):
        farm = serializer.validated_data.get("farm")
        if farm is not None:
            self.require_farm_access(farm.farm_id)
        previous = serializer.instance.status
        device = serializer.save()
        after_device_status_change(device, previous)

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        counts = self.get_queryset().aggregate(
            total=Count("device_id"),
            online=Count("device_id", filter=Q(status=Device.STATUS_ONLINE)),
            offline=Count("device_id", filter=Q(status=Device.STATUS_OFFLINE)),
            maintenance=Count("device_id", filter=Q(status=Device.STATUS_MAINTENANCE)),
        )
        total = counts["total"]
        counts["onlinePercentage"] = round(counts["online"] / total * 100, 1) if total else 0
        return Response(counts)

    @action(detail=False, methods=["get"], url_path=r"by-status/(?P<device_status>[^/.]+)")
    def by_status(self, request, device_status=None):
        if device_status not in dict(Device.STATUS_CHOICES):
            raise ValidationError({"status": f"Unknown status: {device_status}"})
        devices = self.get_queryset().filter(status=device_status)
        return Response(self.get_serializer(devices, many=True).data)

    @action(detail=False, methods=["get"], url_path=r"by-farm/(?P<farm_id>[^/.]+)")
    def by_farm(self, request, farm_id=None):
        farm = self.load_farm(farm_id)
        devices = self.get_queryset().filter(farm=farm)
        return Response(self.get_serializer(devices, many=True).data)

    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request, pk=None):
        device = self.get_object()
        payload = DeviceStatusSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        previous = device.status
        device.status = payload.validated_data["status"]
        device.save(update_fields=["status", "updated_at"])
        after_device_status_change(device, previous)
        return Response(DeviceSerializer(device).data)

    @action(detail=True, methods=["get", "post"], url_path="actions")
    def device_actions(self, request, pk=None):
        """
        GET  /api/v1/devices/{id}/actions/  -> action history
        POST /api/v1/devices/{id}/actions/  -> manual command
        """
        device = self.get_object()
        if request.method == "GET":
            return Response(ActionLogSerializer(device.actions.all()[:100], many=True).data)

        serializer = ActionLogSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        log = serializer.save(device=device, trigger_source="manual", requested_by=request.user)
        emit(
            ActionLog,
            "automation.manual_override",
            userId=str(request.user.id),
            deviceId=device.device_id,
            action=log.action_uri,
            farmId=str(device.farm_id),
        )
        return Response(ActionLogSerializer(log).data, status=status.HTTP_201_CREATED)


# -------------------- Actions -------------------- #

class ActionLogViewSet(FarmScopedMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = ActionLogSerializer
    farm_field = "device__farm"

    def get_queryset(self):
        queryset = ActionLog.objects.select_related("device")
        if self.action == "list":
            queryset = self.scoped(queryset)
            device_id = self.request.query_params.get("device")
            if device_id:
                queryset = queryset.filter(device_id=device_id)
            return queryset[:200]
        return queryset

    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request, pk=None):
        log = self.get_object()
        payload = ActionStatusSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        log.status = payload.validated_data["status"]
        log.error = payload.validated_data.get("error", log.error)
        log.save(update_fields=["status", "error"])
        if log.status == "failed":
            emit(
                ActionLog,
                "action.execution_failed",
                actionId=str(log.id),
                deviceId=log.device_id,
                error=log.error or "unknown error",
                farmId=str(log.device.farm_id),
            )
        return Response(ActionLogSerializer(log).data)


# -------------------- Sensors -------------------- #

class SensorViewSet(FarmScopedMixin, viewsets.ModelViewSet):
    serializer_class = SensorSerializer
    lookup_field = "sensor_id"
    lookup_value_regex = r"[^/]+"
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        queryset = Sensor.objects.select_related("farm", "device", "zone")
        if self.action == "list":
            queryset = self.scoped(queryset)
            for param, field in (("farm", "farm_id"), ("zone", "zone_id"), ("device", "device_id")):
                value = self.request.query_params.get(param)
                if value:
                    queryset = queryset.filter(**{field: value})
        return queryset

    def perform_create(self, serializer):
        self.require_farm_access(serializer.validated_data["farm"].farm_id)
        serializer.save()

    def perform_update(self, serializer):
        farm = serializer.validated_data.get("farm")
        if farm is not None:
            self.require_farm_access(farm.farm_id)
        serializer.save()

    @action(detail=True, methods=["get"])
    def readings(self, request, sensor_id=None):
        """GET /api/v1/sensors/{sensor_id}/readings/?limit=100"""
        sensor = self.get_object()
        try:
            limit = min(1000, max(1, int(request.query_params.get("limit", 100))))
        except ValueError:
            raise ValidationError({"limit": "Must be an integer."})
        readings = sensor.readings.all()[:limit]
        return Response(SensorReadingSerializer(readings, many=True).data)

    @action(detail=True, methods=["get"], url_path="status")
    def reading_status(self, request, sensor_id=None):
        sensor = self.get_object()
        latest = sensor.readings.order_by("-created_at", "-id").first()
        value = latest.value1 if latest else None
        state, direction = classify_value(sensor, value)
        return Response({
            "sensor_id": sensor.sensor_id,
            "status": state,
            "direction": direction,
            "latest": SensorReadingSerializer(latest).data if latest else None,
        })


# -------------------- Sensor Readings -------------------- #

class SensorReadingViewSet(FarmScopedMixin,
                           mixins.CreateModelMixin,
                           mixins.ListModelMixin,
                           viewsets.GenericViewSet):
    serializer_class = SensorReadingSerializer
    farm_field = "sensor__farm"

    def get_queryset(self):
        queryset = self.scoped(SensorReading.objects.select_related("sensor"))
        sensor_id = self.request.query_params.get("sensor")
        if sensor_id:
            queryset = queryset.filter(sensor_id=sensor_id)
        farm_id = self.request.query_params.get("farm")
        if farm_id:
            queryset = queryset.filter(sensor__farm_id=farm_id)
        return queryset

    def list(self, request, *args, **kwargs):
        """Latest readings, limited to 100"""
        readings = self.get_queryset()[:100]
        return Response(self.get_serializer(readings, many=True).data)

    def perform_create(self, serializer):
        self.require_farm_access(serializer.validated_data["sensor"].farm_id)
        serializer.save()


# -------------------- Crops -------------------- #

class CropViewSet(FarmScopedMixin, viewsets.ModelViewSet):
    serializer_class = CropSerializer
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]
    collection_actions = (
        "list", "by_status", "by_date_range", "by_farm",
        "grouped_by_farm", "grouped_by_growth_stage", "grouped_by_planting_date",
    )

    def get_queryset(self):
        queryset = Crop.objects.select_related("farm", "zone")
        if self.action in self.collection_actions:
            return self.scoped(queryset)
        return queryset

    def get_serializer_class(self):
        if flag(self.request, "includeFarm"):
            return CropWithFarmSerializer
        return CropSerializer

    def create(self, request, *args, **kwargs):
        farm = self.load_farm(request.data.get("farm") or request.data.get("farmId"))
        serializer = self.get_serializer(data={**request.data, "farm": str(farm.farm_id)})
        serializer.is_valid(raise_exception=True)
        crop = serializer.save()
        logger.info("Crop %s planted on farm %s", crop.crop_id, farm.farm_id)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        farm = serializer.validated_data.get("farm")
        if farm is not None and farm.farm_id != serializer.instance.farm_id:
            self.require_farm_access(farm.farm_id)
        serializer.save()

    def _grouped(self, groups):
        return Response({
            key: CropSerializer(crops, many=True).data
            for key, crops in groups.items()
        })

    @action(detail=False, methods=["get"], url_path=r"by-status/(?P<crop_status>[^/.]+)")
    def by_status(self, request, crop_status=None):
        if crop_status not in dict(Crop.STATUS_CHOICES):
            raise ValidationError({"status": f"Unknown status: {crop_status}"})
        return Response(self.get_serializer(self.get_queryset().filter(status=crop_status), many=True).data)

    @action(detail=False, methods=["get"], url_path="by-date-range")
    def by_date_range(self, request):
        start = parse_date(request.query_params.get("startDate", "") or "")
        end = parse_date(request.query_params.get("endDate", "") or "")
        if start is None or end is None:
            raise ValidationError("startDate and endDate (YYYY-MM-DD) are required.")
        crops = self.get_queryset().filter(
            planting_date__gte=start, planting_date__lte=end
        ).order_by("planting_date")
        return Response(self.get_serializer(crops, many=True).data)

    @action(detail=False, methods=["get"], url_path=r"by-farm/(?P<farm_id>[^/.]+)")
    def by_farm(self, request, farm_id=None):
        farm = self.load_farm(farm_id)
        return Response(self.get_serializer(self.get_queryset().filter(farm=farm), many=True).data)

    @action(detail=False, methods=["get"], url_path="grouped/by-farm")
    def grouped_by_farm(self, request):
        return self._grouped(crop_analytics.group_by_farm(self.get_queryset()))

    @action(detail=False, methods=["get"], url_path="grouped/by-growth-stage")
    def grouped_by_growth_stage(self, request):
        return self._grouped(crop_analytics.group_by_growth_stage(self.get_queryset()))

    @action(detail=False, methods=["get"], url_path="grouped/by-planting-date")
    def grouped_by_planting_date(self, request):
        crops = self.get_queryset().order_by("planting_date")
        return self._grouped(crop_analytics.group_by_planting_month(crops))

    @action(detail=True, methods=["get"])
    def dashboard(self, request, pk=None):
        return Response(crop_analytics.crop_dashboard(self.get_object()))

    @action(detail=True, methods=["get"])
    def sustainability(self, request, pk=None):
        return Response(crop_analytics.sustainability(self.get_object()))

    @action(detail=True, methods=["get"])
    def comparison(self, request, pk=None):
        crop = self.get_object()
        mode = request.query_params.get("mode", "farm_avg")
        other = None
        if mode == "other_crop":
            other_id = request.query_params.get("compareCropId")
            if not other_id:
                raise ValidationError({"compareCropId": "Required for mode=other_crop."})
            other = get_object_or_404(Crop.objects.select_related("farm", "zone"), pk=other_id)
            self.require_farm_access(other.farm_id)
        try:
            result = crop_analytics.compare(crop, mode=mode, other=other)
        except ValueError as exc:
            raise ValidationError({"mode": str(exc)})
        return Response(result)


# -------------------- Farmer notifications -------------------- #

class NotificationViewSet(viewsets.GenericViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    def list(self, request):
        queryset = self.get_queryset()
        level = request.query_params.get("level")
        if level:
            queryset = queryset.filter(level=level)
        is_read = request.query_params.get("is_read")
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read.lower() in ("1", "true", "yes"))
        try:
            limit = min(100, max(1, int(request.query_params.get("limit", 50))))
            offset = max(0, int(request.query_params.get("offset", 0)))
        except ValueError:
            raise ValidationError("limit and offset must be integers.")
        return Response({
            "items": self.get_serializer(queryset[offset:offset + limit], many=True).data,
            "total": queryset.count(),
        })

    @action(detail=True, methods=["patch"])
    def read(self, request, pk=None):
        notification = get_object_or_404(self.get_queryset(), pk=pk)
        notification.is_read = True
        notification.save(update_fields=["is_read"])
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=["post"], url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = self.get_queryset().filter(is_read=False).update(is_read=True)
        return Response({"updated": updated})

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return Response({"count": self.get_queryset().filter(is_read=False).count()})


# -------------------- Dashboard -------------------- #

@api_view(["GET"])
@permission_classes([IsAuthenticated])
def farm_dashboard(request, farm_id):
    """
    GET /api/v1/dashboard/farm/{farm_id}/
    Zones with sensors, crops, alerts, recommendations and health scores
    """
    farm = get_object_or_404(Farm.objects.all(), pk=farm_id)
    if not can_access_farm(request.user, farm.farm_id):
        raise PermissionDenied("You do not have access to this farm.")
    return Response(aggregate_by_farm(farm.farm_id))


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def zone_dashboard(request, zone_id):
    """GET /api/v1/dashboard/zone/{zone_id}/"""
    zone = get_object_or_404(Zone.objects.alive(), pk=zone_id)
    if not can_access_farm(request.user, zone.farm_id):
        raise PermissionDenied("You do not have access to this farm.")
    return Response(aggregate_by_zone(zone.pk))


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    """
    GET /api/v1/dashboard/stats/
    Totals for everything the caller can see
    """
    user = request.user
    farms = accessible_farms(user)
    farm_ids = list(farms.values_list("farm_id", flat=True))

    alerts = AdminNotification.objects.exclude(status=AdminNotification.STATUS_RESOLVED)
    if not user.is_admin:
        alerts = alerts.filter(context__farmId__in=[str(f) for f in farm_ids])

    return Response({
        "total_farms": len(farm_ids),
        "total_zones": Zone.objects.alive().filter(farm_id__in=farm_ids).count(),
        "total_devices": Device.objects.filter(farm_id__in=farm_ids).count(),
        "total_sensors": Sensor.objects.filter(farm_id__in=farm_ids).count(),
        "total_crops": Crop.objects.filter(farm_id__in=farm_ids).count(),
        "active_alerts": alerts.count(),
        "unread_notifications": Notification.objects.filter(user=user, is_read=False).count(),
    })
