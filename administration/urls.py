from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AdminFarmViewSet,
    AdminNotificationViewSet,
    AdminSensorViewSet,
    AdminUserViewSet,
    FarmerViewSet,
    audit_logs,
    logs,
    overview_summary,
    overview_trends,
    system_health,
    system_metrics,
    system_settings,
    system_uptime,
)

router = DefaultRouter()
router.register(r"notifications", AdminNotificationViewSet, basename="admin-notification")
router.register(r"users", AdminUserViewSet, basename="admin-user")
router.register(r"farmers", FarmerViewSet, basename="admin-farmer")
router.register(r"farms", AdminFarmViewSet, basename="admin-farm")
router.register(r"sensors", AdminSensorViewSet, basename="admin-sensor")

urlpatterns = [
    path("overview/summary/", overview_summary, name="admin-overview-summary"),
    path("overview/trends/", overview_trends, name="admin-overview-trends"),
    path("settings/", system_settings, name="admin-settings"),
    path("system/health/", system_health, name="admin-system-health"),
    path("system/metrics/", system_metrics, name="admin-system-metrics"),
    path("system/uptime/", system_uptime, name="admin-system-uptime"),
    path("logs/", logs, name="admin-logs"),
    path("audit-logs/", audit_logs, name="admin-audit-logs"),
    path("", include(router.urls)),
]
