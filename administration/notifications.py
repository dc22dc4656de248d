"""
ADMIN NOTIFICATIONS SERVICE
Creates, queries and transitions admin notifications, and pushes every change
to the admin WebSocket group.
"""
import logging
from datetime import datetime, timedelta

from django.db.models import Case, Count, IntegerField, Q, Value, When
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework.exceptions import ValidationError
from rest_framework.generics import get_object_or_404

from monitoring.realtime import group_send_on_commit
from .models import AdminNotification
from .serializers import AdminNotificationSerializer

logger = logging.getLogger(__name__)

ADMIN_GROUP = "admin_notifications"
DEFAULT_LIMIT = 50
MAX_LIMIT = 100
EXPORT_LIMIT = 1000
UNRESOLVED = (AdminNotification.STATUS_NEW, AdminNotification.STATUS_ACKNOWLEDGED)


def broadcast_admin(event, payload):
    group_send_on_commit(
        ADMIN_GROUP,
        {"type": "admin.notification", "event": event, "payload": payload},
    )


def _parse_moment(value, name):
    moment = parse_datetime(value)
    if moment is None:
        day = parse_date(value)
        if day is None:
            raise ValidationError({name: f"Invalid date: {value}"})
        moment = datetime(day.year, day.month, day.day)
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


def int_param(value, name, default):
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({name: "Must be an integer."})


class AdminNotificationService:

    def create(self, *, type, severity, domain, title, message, context=None, pinned_until_resolved=False):
        """Critical notifications are always pinned until resolved."""
        context = {k: v for k, v in (context or {}).items() if v is not None}
        notification = AdminNotification.objects.create(
            type=type,
            severity=severity,
            domain=domain,
            title=title,
            message=message,
            context=context,
            status=AdminNotification.STATUS_NEW,
            pinned_until_resolved=pinned_until_resolved or severity == AdminNotification.SEVERITY_CRITICAL,
        )
        logger.info("Admin notification %s [%s/%s] %s", notification.id, severity, domain, title)
        broadcast_admin("notification:new", AdminNotificationSerializer(notification).data)
        return notification

    def has_unresolved(self, type, **context):
        lookups = {f"context__{key}": value for key, value in context.items() if value is not None}
        return AdminNotification.objects.filter(type=type, status__in=UNRESOLVED, **lookups).exists()

    def filtered(self, params):
        """Queryset for the list/export filters (severity, domain, status, from, to, context ids, search)."""
        qs = AdminNotification.objects.all()
        for field in ("severity", "domain", "status"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        if params.get("from"):
            qs = qs.filter(created_at__gte=_parse_moment(params["from"], "from"))
        if params.get("to"):
            qs = qs.filter(created_at__lte=_parse_moment(params["to"], "to"))
        for key in ("farmId", "userId", "deviceId"):
            if params.get(key):
                qs = qs.filter(**{f"context__{key}": params[key]})
        search = params.get("search")
        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(message__icontains=search))
        return qs

    def list(self, params):
        page = max(1, int_param(params.get("page"), "page", 1))
        limit = min(MAX_LIMIT, max(1, int_param(params.get("limit"), "limit", DEFAULT_LIMIT)))

        qs = self.filtered(params).annotate(
            status_rank=Case(
                When(status=AdminNotification.STATUS_NEW, then=Value(0)),
                default=Value(1),
                output_field=IntegerField(),
            )
        ).order_by("-pinned_until_resolved", "status_rank", "-created_at")

        total = qs.count()
        offset = (page - 1) * limit
        items = qs[offset:offset + limit]
        return {
            "items": AdminNotificationSerializer(items, many=True).data,
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": offset + limit < total,
        }

    def counts(self):
        per_severity = {
            key: Count("id", filter=Q(severity=key))
            for key, _ in AdminNotification.SEVERITY_CHOICES
        }
        result = AdminNotification.objects.aggregate(
            total=Count("id"),
            unresolved=Count("id", filter=Q(status__in=UNRESOLVED)),
            newCount=Count("id", filter=Q(status=AdminNotification.STATUS_NEW)),
            **per_severity,
        )
        return result

    def critical(self):
        return AdminNotification.objects.filter(
            severity=AdminNotification.SEVERITY_CRITICAL,
            status__in=UNRESOLVED,
            pinned_until_resolved=True,
        ).order_by("-created_at")

    def get(self, notification_id):
        return get_object_or_404(AdminNotification.objects.all(), pk=notification_id)

    def acknowledge(self, notification_id, user):
        notification = self.get(notification_id)
        if notification.status == AdminNotification.STATUS_RESOLVED:
            return notification
        notification.status = AdminNotification.STATUS_ACKNOWLEDGED
        notification.acknowledged_at = timezone.now()
        notification.acknowledged_by = user
        notification.save(update_fields=["status", "acknowledged_at", "acknowledged_by"])
        broadcast_admin("notification:updated", AdminNotificationSerializer(notification).data)
        return notification

    def resolve(self, notification_id, user):
        notification = self.get(notification_id)
        notification.status = AdminNotification.STATUS_RESOLVED
        notification.resolved_at = timezone.now()
        notification.resolved_by = user
        notification.pinned_until_resolved = False
        notification.save(update_fields=["status", "resolved_at", "resolved_by", "pinned_until_resolved"])
        broadcast_admin("notification:updated", AdminNotificationSerializer(notification).data)
        return notification

    def bulk_acknowledge(self, ids, user):
        updated = AdminNotification.objects.filter(
            id__in=ids, status=AdminNotification.STATUS_NEW
        ).update(
            status=AdminNotification.STATUS_ACKNOWLEDGED,
            acknowledged_at=timezone.now(),
            acknowledged_by=user,
        )
        broadcast_admin("notification:bulk-updated", {
            "ids": [str(i) for i in ids],
            "status": AdminNotification.STATUS_ACKNOWLEDGED,
            "updated": updated,
        })
        return {"updated": updated}

    def bulk_resolve(self, ids, user):
        updated = AdminNotification.objects.filter(id__in=ids).exclude(
            status=AdminNotification.STATUS_RESOLVED
        ).update(
            status=AdminNotification.STATUS_RESOLVED,
            resolved_at=timezone.now(),
            resolved_by=user,
            pinned_until_resolved=False,
        )
        broadcast_admin("notification:bulk-updated", {
            "ids": [str(i) for i in ids],
            "status": AdminNotification.STATUS_RESOLVED,
            "updated": updated,
        })
        return {"updated": updated}

    def export_audit(self, params):
        rows = self.filtered(params).order_by("-created_at")[:EXPORT_LIMIT]
        data = AdminNotificationSerializer(rows, many=True).data
        return {
            "exportedAt": timezone.now().isoformat(),
            "count": len(data),
            "data": data,
        }

    def cleanup_old_resolved(self, days=90):
        cutoff = timezone.now() - timedelta(days=days)
        deleted, _ = AdminNotification.objects.filter(
            status=AdminNotification.STATUS_RESOLVED,
            resolved_at__lt=cutoff,
        ).delete()
        logger.info("Deleted %d resolved admin notifications older than %d days", deleted, days)
        return deleted


# Global instance for easy import
admin_notifications = AdminNotificationService()
