import copy
import uuid

from django.conf import settings
from django.db import models


class AdminNotification(models.Model):
    """
    Platform alert shown in the admin console.
    Fields:
        type: machine name of the event ("device_offline_spike", "sensor_critical"...)
        severity / domain: used for filtering and WebSocket subscriptions
        context: JSON with farmId, zoneId, deviceId, sensorId, userId, suggestedActions...
        pinned_until_resolved: stays at the top of the list until resolved
    """
    SEVERITY_CRITICAL = "critical"
    SEVERITY_WARNING = "warning"
    SEVERITY_INFO = "info"
    SEVERITY_SUCCESS = "success"
    SEVERITY_CHOICES = [
        (SEVERITY_CRITICAL, "Critical"),
        (SEVERITY_WARNING, "Warning"),
        (SEVERITY_INFO, "Info"),
        (SEVERITY_SUCCESS, "Success"),
    ]

    DOMAIN_CHOICES = [
        ("system", "System"),
        ("farms", "Farms"),
        ("devices", "Devices"),
        ("crops", "Crops"),
        ("users", "Users"),
        ("automation", "Automation"),
    ]

    STATUS_NEW = "new"
    STATUS_ACKNOWLEDGED = "acknowledged"
    STATUS_RESOLVED = "resolved"
    STATUS_CHOICES = [
        (STATUS_NEW, "New"),
        (STATUS_ACKNOWLEDGED, "Acknowledged"),
        (STATUS_RESOLVED, "Resolved"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=100, verbose_name="Type")
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, verbose_name="Severity")
    domain = models.CharField(max_length=20, choices=DOMAIN_CHOICES, verbose_name="Domain")
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    context = models.JSONField(default=dict, blank=True, verbose_name="Context")
    status = models.CharField(
        max_length=15,
        choices=STATUS_CHOICES,
        default=STATUS_NEW,
        db_index=True,
        verbose_name="Status"
    )
    pinned_until_resolved = models.BooleanField(default=False, verbose_name="Pinned")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Created At")
    acknowledged_at = models.DateTimeField(null=True, blank=True, verbose_name="Acknowledged At")
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Acknowledged By"
    )
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name="Resolved At")
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Resolved By"
    )

    class Meta:
        verbose_name = "Admin Notification"
        verbose_name_plural = "Admin Notifications"
        ordering = ["-created_at"]

    def __str__(self):
        return f"[{self.severity}] {self.title} ({self.status})"


DEFAULT_SYSTEM_SETTINGS = {
    "general": {
        "site_name": "Smart Farm Management System",
        "contact_email": "admin@smartfarm.com",
        "maintenance_mode": False,
    },
    "notifications": {
        "email_enabled": True,
        "sms_enabled": False,
    },
    "security": {
        "session_timeout": 86400,
        "max_login_attempts": 5,
    },
}


def default_system_settings():
    return copy.deepcopy(DEFAULT_SYSTEM_SETTINGS)


class SystemSettings(models.Model):
    """Single-row platform configuration (id "main")."""
    id = models.CharField(max_length=20, primary_key=True, default="main")
    settings = models.JSONField(default=default_system_settings, verbose_name="Settings")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        verbose_name = "System Settings"
        verbose_name_plural = "System Settings"

    def __str__(self):
        return f"System settings ({self.id})"
