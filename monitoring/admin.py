from django.contrib import admin

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


@admin.register(Farm)
class FarmAdmin(admin.ModelAdmin):
    list_display = ("name", "owner", "city", "country", "status", "created_at")
    list_filter = ("status", "country")
    search_fields = ("name", "location", "owner__email")
    filter_horizontal = ("moderators",)


@admin.register(Zone)
class ZoneAdmin(admin.ModelAdmin):
    list_display = ("name", "farm", "type", "status", "deleted_at")
    list_filter = ("type", "status")


@admin.register(Sensor)
class SensorAdmin(admin.ModelAdmin):
    list_display = ("sensor_id", "type", "farm", "device", "zone")
    search_fields = ("sensor_id", "type")


admin.site.register(Device)
admin.site.register(SensorReading)
admin.site.register(Crop)
admin.site.register(ActionLog)
admin.site.register(Notification)
