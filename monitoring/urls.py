from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    ActionLogViewSet,
    CropViewSet,
    DeviceViewSet,
    FarmViewSet,
    NotificationViewSet,
    SensorReadingViewSet,
    SensorViewSet,
    ZoneViewSet,
    dashboard_stats,
    farm_dashboard,
    zone_dashboard,
)

router = DefaultRouter()
router.register(r"farms", FarmViewSet, basename="farm")
router.register(r"zones", ZoneViewSet, basename="zone")
router.register(r"devices", DeviceViewSet, basename="device")
router.register(r"actions", ActionLogViewSet, basename="action")
router.register(r"sensors", SensorViewSet, basename="sensor")
router.register(r"sensor-readings", SensorReadingViewSet, basename="sensor-reading")
router.register(r"crops", CropViewSet, basename="crop")
router.register(r"notifications", NotificationViewSet, basename="notification")

urlpatterns = [
    # Dashboard
    path("dashboard/farm/<uuid:farm_id>/", farm_dashboard, name="dashboard-farm"),
    path("dashboard/zone/<uuid:zone_id>/", zone_dashboard, name="dashboard-zone"),
    path("dashboard/stats/", dashboard_stats, name="dashboard-stats"),

    # ViewSet routes
    path("", include(router.urls)),
]
