import logging
import math
import os
import resource
import shutil
import time
from datetime import datetime, timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import DatabaseError, connection, transaction
from django.db.models import Count, OuterRef, Q, Subquery
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from accounts.authentication import issue_tokens
from accounts.permissions import IsAdmin
from monitoring.models import ActionLog, Device, Farm, Sensor, SensorReading
from smartfarm_backend.exceptions import Conflict
from .events import emit
from .models import AdminNotification, SystemSettings, default_system_settings
from .notifications import admin_notifications, int_param
from .serializers import (
    ActivitySerializer,
    AdminFarmSerializer,
    AdminNotificationCreateSerializer,
    AdminNotificationSerializer,
    AdminSensorSerializer,
    AdminUserCreateSerializer,
    AdminUserSerializer,
    AssignFarmSerializer,
    BulkIdsSerializer,
    ModeratorsSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()

OVERVIEW_CACHE_KEY = "admin:overview:summary"
TREND_PERIODS = {"7days": 7, "30days": 30, "90days": 90}
USER_SORT_FIELDS = ("created_at", "email", "first_name", "last_name", "last_login", "role", "status", "farm_count")


def paginate(request, queryset, serializer_class, default_limit=10):
    """{items, total, page, limit, totalPages} for page/limit query params."""
    page = max(1, int_param(request.query_params.get("page"), "page", 1))
    limit = min(100, max(1, int_param(request.query_params.get("limit"), "limit", default_limit)))
    total = queryset.count()
    offset = (page - 1) * limit
    return {
        "items": serializer_class(queryset[offset:offset + limit], many=True).data,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0,
    }


# -------------------- Notifications -------------------- #

class AdminNotificationViewSet(viewsets.ViewSet):
    """
    Admin console notifications, admin role only.
    """
    permission_classes = [IsAdmin]

    def list(self, request):
        return Response(admin_notifications.list(request.query_params))

    def create(self, request):
        serializer = AdminNotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        notification = admin_notifications.create(**serializer.validated_data)
        return Response(AdminNotificationSerializer(notification).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        return Response(AdminNotificationSerializer(admin_notifications.get(pk)).data)

    @action(detail=False, methods=["get"])
    def counts(self, request):
        return Response(admin_notifications.counts())

    @action(detail=False, methods=["get"])
    def critical(self, request):
        return Response(AdminNotificationSerializer(admin_notifications.critical(), many=True).data)

    @action(detail=True, methods=["patch"])
    def acknowledge(self, request, pk=None):
        notification = admin_notifications.acknowledge(pk, request.user)
        return Response(AdminNotificationSerializer(notification).data)

    @action(detail=True, methods=["patch"])
    def resolve(self, request, pk=None):
        notification = admin_notifications.resolve(pk, request.user)
        return Response(AdminNotificationSerializer(notification).data)

    @action(detail=False, methods=["post"], url_path="bulk-acknowledge")
    def bulk_acknowledge(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(admin_notifications.bulk_acknowledge(serializer.validated_data["ids"], request.user))

    @action(detail=False, methods=["post"], url_path="bulk-resolve")
    def bulk_resolve(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(admin_notifications.bulk_resolve(serializer.validated_data["ids"], request.user))

    @action(detail=False, methods=["get"], url_path="export/audit")
    def export_audit(self, request):
        return Response(admin_notifications.export_audit(request.query_params))


# -------------------- Overview -------------------- #

def build_overview_summary():
    today = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)

    devices = Device.objects.aggregate(
        total=Count("device_id"),
        online=Count("device_id", filter=Q(status=Device.STATUS_ONLINE)),
        offline=Count("device_id", filter=Q(status=Device.STATUS_OFFLINE)),
        maintenance=Count("device_id", filter=Q(status=Device.STATUS_MAINTENANCE)),
    )
    users = User.objects.aggregate(
        total=Count("id"),
        farmers=Count("id", filter=Q(role=User.ROLE_FARMER)),
        admins=Count("id", filter=Q(role=User.ROLE_ADMIN)),
        active=Count("id", filter=Q(status=User.STATUS_ACTIVE)),
    )
    actions = ActionLog.objects.filter(created_at__gte=today).aggregate(
        total=Count("id"),
        auto=Count("id", filter=Q(trigger_source="auto")),
        manual=Count("id", filter=Q(trigger_source="manual")),
    )
    return {
        "totalFarms": Farm.objects.count(),
        "totalDevices": devices["total"],
        "onlineDevices": devices["online"],
        "offlineDevices": devices["offline"],
        "maintenanceDevices": devices["maintenance"],
        "totalSensors": Sensor.objects.count(),
        "totalUsers": users["total"],
        "totalFarmers": users["farmers"],
        "totalAdmins": users["admins"],
        "activeUsers": users["active"],
        "alertsToday": AdminNotification.objects.filter(created_at__gte=today).count(),
        "criticalAlertsUnread": AdminNotification.objects.filter(
            severity=AdminNotification.SEVERITY_CRITICAL,
            status=AdminNotification.STATUS_NEW,
        ).count(),
        "actionsToday": actions["total"],
        "autoActionsToday": actions["auto"],
        "manualActionsToday": actions["manual"],
        "generatedAt": timezone.now().isoformat(),
    }


@api_view(["GET"])
@permission_classes([IsAdmin])
def overview_summary(request):
    """
    GET /api/v1/admin/overview/summary/
    Cached for OVERVIEW_CACHE_SECONDS
    """
    summary = cache.get(OVERVIEW_CACHE_KEY)
    if summary is None:
        summary = build_overview_summary()
        cache.set(OVERVIEW_CACHE_KEY, summary, settings.OVERVIEW_CACHE_SECONDS)
    return Response(summary)


def _daily_counts(queryset, since):
    rows = (
        queryset.filter(created_at__gte=since)
        .annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(count=Count("pk"))
        .order_by()
    )
    return {row["day"]: row["count"] for row in rows}


@api_view(["GET"])
@permission_classes([IsAdmin])
def overview_trends(request):
    """GET /api/v1/admin/overview/trends/?period=7days|30days|90days"""
    period = request.query_params.get("period", "7days")
    if period not in TREND_PERIODS:
        raise ValidationError({"period": f"Expected one of {', '.join(TREND_PERIODS)}."})
    days = TREND_PERIODS[period]

    today = timezone.localdate()
    first_day = today - timedelta(days=days - 1)
    since = timezone.make_aware(datetime(first_day.year, first_day.month, first_day.day))

    series = {
        "newUsers": _daily_counts(User.objects.all(), since),
        "newFarms": _daily_counts(Farm.objects.all(), since),
        "sensorReadings": _daily_counts(SensorReading.objects.all(), since),
        "alerts": _daily_counts(AdminNotification.objects.all(), since),
    }
    points = []
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        points.append({"date": day.isoformat(), **{name: counts.get(day, 0) for name, counts in series.items()}})
    return Response({"period": period, "data": points})


# -------------------- Users -------------------- #

class AdminUserViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAdmin]
    serializer_class = AdminUserSerializer

    def get_queryset(self):
        return User.objects.annotate(farm_count=Count("farms", distinct=True))

    def get_serializer_class(self):
        if self.action == "create":
            return AdminUserCreateSerializer
        return AdminUserSerializer

    def list(self, request, *args, **kwargs):
        params = request.query_params
        queryset = self.get_queryset()
        if params.get("role"):
            queryset = queryset.filter(role=params["role"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("farm_id"):
            queryset = queryset.filter(
                Q(farms__farm_id=params["farm_id"]) | Q(moderated_farms__farm_id=params["farm_id"])
            ).distinct()
        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(email__icontains=search)
                | Q(username__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )

        sort_by = params.get("sortBy", "created_at")
        if sort_by not in USER_SORT_FIELDS:
            raise ValidationError({"sortBy": f"Expected one of {', '.join(USER_SORT_FIELDS)}."})
        prefix = "" if params.get("sortOrder", "desc").lower() == "asc" else "-"
        queryset = queryset.order_by(f"{prefix}{sort_by}", "id")
        return Response(paginate(request, queryset, AdminUserSerializer))

    def _check_email(self, email, exclude_id=None):
        if not email:
            return
        clash = User.objects.filter(email__iexact=email)
        if exclude_id is not None:
            clash = clash.exclude(pk=exclude_id)
        if clash.exists():
            raise Conflict("A user with this email already exists.")

    def perform_create(self, serializer):
        self._check_email(serializer.validated_data.get("email"))
        user = serializer.save()
        logger.info("Admin %s created user %s (%s)", self.request.user.email, user.email, user.role)

    def perform_update(self, serializer):
        self._check_email(serializer.validated_data.get("email"), exclude_id=serializer.instance.pk)
        serializer.save()

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError("You cannot delete your own account.")
        logger.warning("Admin %s deleted user %s", self.request.user.email, instance.email)
        instance.delete()

    @action(detail=True, methods=["post"])
    def impersonate(self, request, pk=None):
        """POST /api/v1/admin/users/{id}/impersonate/"""
        target = self.get_object()
        logger.warning("Admin %s is impersonating %s", request.user.email, target.email)
        return Response({**issue_tokens(target), "user": AdminUserSerializer(target).data})


class FarmerViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAdmin]
    serializer_class = AdminUserSerializer

    def get_queryset(self):
        return (
            User.objects.filter(role=User.ROLE_FARMER)
            .annotate(farm_count=Count("farms", distinct=True))
            .prefetch_related("farms")
            .order_by("-created_at")
        )

    def list(self, request, *args, **kwargs):
        farmers = []
        for farmer in self.get_queryset():
            farmers.append({
                **AdminUserSerializer(farmer).data,
                "farms": [{"farm_id": str(f.farm_id), "name": f.name} for f in farmer.farms.all()],
            })
        return Response(farmers)

    @action(detail=True, methods=["get"])
    def farms(self, request, pk=None):
        farmer = self.get_object()
        return Response(AdminFarmSerializer(farms_with_counts().filter(owner=farmer), many=True).data)

    @action(detail=True, methods=["post"], url_path="assign-farm")
    def assign_farm(self, request, pk=None):
        farmer = self.get_object()
        serializer = AssignFarmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        farm = serializer.validated_data["farm_id"]
        farm.owner = farmer
        farm.save(update_fields=["owner", "updated_at"])
        logger.info("Farm %s assigned to %s", farm.farm_id, farmer.email)
        return Response(AdminFarmSerializer(farms_with_counts().get(pk=farm.pk)).data)


# -------------------- Farms -------------------- #

def farms_with_counts():
    return Farm.objects.select_related("owner").annotate(
        device_count=Count("devices", distinct=True),
        sensor_count=Count("sensors", distinct=True),
        zone_count=Count("zones", filter=Q(zones__deleted_at__isnull=True), distinct=True),
        crop_count=Count("crops", distinct=True),
    )


class AdminFarmViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAdmin]
    serializer_class = AdminFarmSerializer

    def get_queryset(self):
        return farms_with_counts().order_by("name")

    def list(self, request, *args, **kwargs):
        queryset = self.get_queryset()
        search = request.query_params.get("search")
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search)
                | Q(location__icontains=search)
                | Q(city__icontains=search)
                | Q(owner__email__icontains=search)
            )
        if request.query_params.get("status"):
            queryset = queryset.filter(status=request.query_params["status"])
        return Response(paginate(request, queryset, AdminFarmSerializer))

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        farm = serializer.save()
        owner = farm.owner
        emit(
            Farm,
            "farm.created",
            farmId=str(farm.farm_id),
            farmName=farm.name,
            ownerId=str(owner.id) if owner else None,
            ownerEmail=owner.email if owner else None,
        )
        return Response(self.get_serializer(self.get_queryset().get(pk=farm.pk)).data,
                        status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        farm = self.get_object()
        serializer = self.get_serializer(farm, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(self.get_serializer(self.get_queryset().get(pk=farm.pk)).data)

    @action(detail=True, methods=["put"])
    def moderators(self, request, pk=None):
        """PUT /api/v1/admin/farms/{id}/moderators/ {moderator_ids: [...]}"""
        farm = self.get_object()
        serializer = ModeratorsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            farm.moderators.set(serializer.validated_data["moderator_ids"])
        logger.info("Farm %s moderators set to %s", farm.farm_id, [u.id for u in farm.moderators.all()])
        return Response(self.get_serializer(self.get_queryset().get(pk=farm.pk)).data)

    @action(detail=True, methods=["get"])
    def activity(self, request, pk=None):
        """GET /api/v1/admin/farms/{id}/activity/?limit=50  (newest device actions first)"""
        farm = self.get_object()
        limit = min(500, max(1, int_param(request.query_params.get("limit"), "limit", 50)))
        actions = ActionLog.objects.filter(device__farm=farm).order_by("-created_at", "-id")[:limit]
        return Response(ActivitySerializer(actions, many=True).data)


# -------------------- Settings -------------------- #

def deep_merge(base, changes):
    """Recursively merge `changes` into a copy of `base`."""
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@api_view(["GET", "PUT"])
@permission_classes([IsAdmin])
def system_settings(request):
    """
    GET /api/v1/admin/settings/
    PUT /api/v1/admin/settings/  (sections are merged, not replaced)
    """
    if request.method == "GET":
        stored = SystemSettings.objects.filter(pk="main").first()
        return Response(stored.settings if stored else default_system_settings())

    if not isinstance(request.data, dict):
        raise ValidationError("Settings must be a JSON object.")
    with transaction.atomic():
        stored, _ = SystemSettings.objects.select_for_update().get_or_create(pk="main")
        stored.settings = deep_merge(stored.settings or default_system_settings(), request.data)
        stored.save(update_fields=["settings", "updated_at"])
    logger.info("System settings updated by %s", request.user.email)
    return Response(stored.settings)


# -------------------- System -------------------- #

@api_view(["GET"])
@permission_classes([IsAdmin])
def system_health(request):
    """GET /api/v1/admin/system/health/"""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as exc:
        logger.error("Database health check failed: %s", exc)
        emit(SystemSettings, "database.unhealthy", error=str(exc))
        return Response(
            {"status": "unhealthy", "database": "down", "timestamp": timezone.now().isoformat()},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response({"status": "ok", "database": "up", "timestamp": timezone.now().isoformat()})



PROCESS_STARTED = time.monotonic()
LOG_LEVELS = {"failed": "error", "pending": "warn", "ack": "info"}


def format_uptime(seconds):
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days}d {hours}h {minutes}m {seconds}s"


@api_view(["GET"])
@permission_classes([IsAdmin])
def system_metrics(request):
    """GET /api/v1/admin/system/metrics/  (this process and its host)"""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    disk = shutil.disk_usage(settings.BASE_DIR)
    try:
        load = list(os.getloadavg())
    except OSError:
        load = None
    return Response({
        "cpu": {
            "cores": os.cpu_count(),
            "loadAverage": load,
            "userSeconds": usage.ru_utime,
            "systemSeconds": usage.ru_stime,
        },
        # ru_maxrss is reported in kilobytes on Linux
        "memory": {"maxRss": usage.ru_maxrss * 1024},
        "disk": {"total": disk.total, "used": disk.used, "free": disk.free},
        "uptime": time.monotonic() - PROCESS_STARTED,
        "timestamp": timezone.now().isoformat(),
    })


@api_view(["GET"])
@permission_classes([IsAdmin])
def system_uptime(request):
    """GET /api/v1/admin/system/uptime/"""
    uptime = time.monotonic() - PROCESS_STARTED
    devices = Device.objects.aggregate(
        total=Count("device_id"),
        online=Count("device_id", filter=Q(status=Device.STATUS_ONLINE)),
        offline=Count("device_id", filter=Q(status=Device.STATUS_OFFLINE)),
    )
    devices["uptimePercentage"] = round(devices["online"] / devices["total"] * 100) if devices["total"] else 0
    return Response({
        "uptime": uptime,
        "uptimeFormatted": format_uptime(uptime),
        "startTime": (timezone.now() - timedelta(seconds=uptime)).isoformat(),
        "devices": devices,
        "timestamp": timezone.now().isoformat(),
    })


# -------------------- Logs -------------------- #

def log_entry(log):
    return {
        "id": str(log.id),
        "timestamp": log.created_at,
        "level": LOG_LEVELS.get(log.status, "debug"),
        "module": log.device_id or "system",
        "message": f"{log.trigger_source} action: {log.action_uri} - {log.status}",
        "metadata": {"device_id": log.device_id, "status": log.status, "error_message": log.error or None},
    }


def page_of(request, queryset, default_limit=50):
    page = max(1, int_param(request.query_params.get("page"), "page", 1))
    limit = min(500, max(1, int_param(request.query_params.get("limit"), "limit", default_limit)))
    offset = (page - 1) * limit
    return queryset[offset:offset + limit], queryset.count(), page, limit


@api_view(["GET"])
@permission_classes([IsAdmin])
def logs(request):
    """
    GET /api/v1/admin/logs/?level=error|warn|info&module=<device_id>
    Action logs presented as system log lines.
    """
    queryset = ActionLog.objects.order_by("-created_at", "-id")
    level = request.query_params.get("level")
    if level:
        statuses = [key for key, name in LOG_LEVELS.items() if name == level]
        queryset = queryset.filter(status__in=statuses)
    if request.query_params.get("module"):
        queryset = queryset.filter(device_id=request.query_params["module"])
    rows, total, page, limit = page_of(request, queryset)
    return Response({"logs": [log_entry(log) for log in rows], "total": total, "page": page, "limit": limit})


@api_view(["GET"])
@permission_classes([IsAdmin])
def audit_logs(request):
    """GET /api/v1/admin/audit-logs/?userId=  (who triggered which device action)"""
    queryset = ActionLog.objects.order_by("-created_at", "-id")
    user_id = request.query_params.get("userId")
    if user_id:
        queryset = queryset.filter(requested_by_id=int_param(user_id, "userId", None))
    rows, total, page, limit = page_of(request, queryset)
    return Response({"logs": ActivitySerializer(rows, many=True).data, "total": total, "page": page, "limit": limit})


# -------------------- Sensors -------------------- #

class AdminSensorViewSet(viewsets.ReadOnlyModelViewSet):
    """Every sensor on the platform with its device, farm and latest reading."""
    permission_classes = [IsAdmin]
    serializer_class = AdminSensorSerializer

    def get_queryset(self):
        latest = SensorReading.objects.filter(sensor_id=OuterRef("sensor_id")).order_by("-created_at", "-id")
        return Sensor.objects.select_related("device", "farm").annotate(
            last_reading_at=Subquery(latest.values("created_at")[:1]),
            last_value1=Subquery(latest.values("value1")[:1]),
            last_value2=Subquery(latest.values("value2")[:1]),
        ).order_by("-created_at")

    def list(self, request, *args, **kwargs):
        queryset = self.get_queryset()
        params = request.query_params
        if params.get("farm_id"):
            queryset = queryset.filter(farm_id=params["farm_id"])
        if params.get("device_id"):
            queryset = queryset.filter(device_id=params["device_id"])
        if params.get("type"):
            queryset = queryset.filter(type=params["type"])
        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(type__icontains=search)
                | Q(sensor_id__icontains=search)
                | Q(device__name__icontains=search)
                | Q(farm__name__icontains=search)
            )
        return Response(paginate(request, queryset, AdminSensorSerializer, default_limit=50))
