import uuid

import administration.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AdminNotification",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type", models.CharField(max_length=100, verbose_name="Type")),
                ("severity", models.CharField(choices=[("critical", "Critical"), ("warning", "Warning"), ("info", "Info"), ("success", "Success")], max_length=10, verbose_name="Severity")),
                ("domain", models.CharField(choices=[("system", "System"), ("farms", "Farms"), ("devices", "Devices"), ("crops", "Crops"), ("users", "Users"), ("automation", "Automation")], max_length=20, verbose_name="Domain")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("message", models.TextField(verbose_name="Message")),
                ("context", models.JSONField(blank=True, default=dict, verbose_name="Context")),
                ("status", models.CharField(choices=[("new", "New"), ("acknowledged", "Acknowledged"), ("resolved", "Resolved")], db_index=True, default="new", max_length=15, verbose_name="Status")),
                ("pinned_until_resolved", models.BooleanField(default=False, verbose_name="Pinned")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Created At")),
                ("acknowledged_at", models.DateTimeField(blank=True, null=True, verbose_name="Acknowledged At")),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="Resolved At")),
                ("acknowledged_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="Acknowledged By")),
                ("resolved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="Resolved By")),
            ],
            options={
                "verbose_name": "Admin Notification",
                "verbose_name_plural": "Admin Notifications",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="SystemSettings",
            fields=[
                ("id", models.CharField(default="main", max_length=20, primary_key=True, serialize=False)),
                ("settings", models.JSONField(default=administration.models.default_system_settings, verbose_name="Settings")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
            ],
            options={
                "verbose_name": "System Settings",
                "verbose_name_plural": "System Settings",
            },
        ),
    ]
