from django.contrib import admin

from .models import AdminNotification, SystemSettings


@admin.register(AdminNotification)
class AdminNotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "severity", "domain", "status", "pinned_until_resolved", "created_at")
    list_filter = ("severity", "domain", "status")
    search_fields = ("title", "message", "type")
    readonly_fields = ("created_at", "acknowledged_at", "resolved_at")


admin.site.register(SystemSettings)
