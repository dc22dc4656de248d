"""
ADMIN ALERTING
Turns platform events into admin notifications.
Noisy events carry an alert key; a key that fired less than the dedup window
ago is suppressed. The dedup map lives in process memory.
"""
import logging
import threading
import time

from django.conf import settings
from django.dispatch import receiver

from .events import platform_event
from .notifications import admin_notifications

logger = logging.getLogger(__name__)


class AdminAlertingService:
    """
    Maps event names to handlers. Each handler builds one admin notification:
    type, severity, domain, title, message, context (with suggestedActions).
    """

    def __init__(self, window_seconds=None, clock=time.monotonic):
        self._window = window_seconds
        self._clock = clock
        self._recent = {}
        self._lock = threading.Lock()
        self.handlers = {
            "database.unhealthy": self.database_unhealthy,
            "health.degraded": self.health_degraded,
            "device.offline_spike": self.device_offline_spike,
            "sensor.reading_delay": self.sensor_reading_delay,
            "sensor.critical": self.sensor_critical,
            "farm.orphan_entities": self.orphan_entities,
            "user.registered": self.user_registered,
            "user.farm_request": self.farm_access_request,
            "farm.created": self.farm_created,
            "action.execution_failed": self.action_execution_failed,
            "automation.manual_override": self.manual_override,
            "platform.weekly_summary": self.weekly_summary,
        }

    @property
    def window(self):
        if self._window is not None:
            return self._window
        return settings.ALERT_DEDUP_WINDOW_SECONDS

    # -------------------- Deduplication -------------------- #

    def should_alert(self, alert_key):
        """True the first time a key fires inside the window; records the firing."""
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            last = self._recent.get(alert_key)
            if last is not None and now - last < self.window:
                logger.debug("Suppressed duplicate alert %s", alert_key)
                return False
            self._recent[alert_key] = now
            return True

    def forget(self, alert_key):
        with self._lock:
            self._recent.pop(alert_key, None)

    def _alert_once(self, alert_key, open_match=None, **fields):
        """
        Creates the notification unless the key fired inside the window.
        With open_match, an unresolved notification of the same type whose
        context matches also suppresses it, so repeated scans stay quiet
        across processes. A failed create releases the key.
        """
        if not self.should_alert(alert_key):
            return None
        try:
            if open_match and admin_notifications.has_unresolved(fields["type"], **open_match):
                logger.debug("Alert %s already open", alert_key)
                return None
            return admin_notifications.create(**fields)
        except Exception:
            self.forget(alert_key)
            raise

    def _cleanup(self, now):
        expired = [key for key, at in self._recent.items() if now - at > 2 * self.window]
        for key in expired:
            del self._recent[key]

    def reset(self):
        with self._lock:
            self._recent.clear()

    # -------------------- Dispatch -------------------- #

    def handle(self, event, **data):
        handler = self.handlers.get(event)
        if handler is None:
            logger.debug("No alert handler for event %s", event)
            return None
        return handler(**data)

    # -------------------- System -------------------- #

    def database_unhealthy(self, error=None, **_):
        return self._alert_once(
            "database_unhealthy",
            type="database_unhealthy",
            severity="critical",
            domain="system",
            title="Database Connection Issues",
            message=f"Database health check failed. Application may experience issues. {error or ''}".strip(),
            context={
                "error": error,
                "suggestedActions": [
                    "Check database server status",
                    "Verify connection pool settings",
                    "Review database logs",
                ],
            },
            pinned_until_resolved=True,
        )

    def health_degraded(self, service, details=None, **_):
        return self._alert_once(
            f"health_degraded_{service}",
            type="service_degraded",
            severity="warning",
            domain="system",
            title=f"Service Degraded: {service}",
            message=f"The {service} service is experiencing performance issues. {details or ''}".strip(),
            context={"service": service, "details": details},
        )

    # -------------------- Devices & sensors -------------------- #

    def device_offline_spike(self, count, threshold, farmId=None, **_):
        return self._alert_once(
            f"device_offline_spike_{farmId or 'global'}",
            type="device_offline_spike",
            severity="warning",
            domain="devices",
            title="Device Offline Spike Detected",
            message=f"{count} devices went offline (threshold: {threshold}). Possible network or power issue.",
            context={
                "offlineCount": count,
                "threshold": threshold,
                "farmId": farmId,
                "suggestedActions": [
                    "Check farm network connectivity",
                    "Verify power supply to devices",
                    "Contact farm operator",
                ],
            },
        )

    def sensor_reading_delay(self, sensorId, lastReading=None, farmId=None, zoneId=None, **_):
        if lastReading is None:
            message = f"Sensor {sensorId} has never reported data."
            last = None
        else:
            last = lastReading.isoformat() if hasattr(lastReading, "isoformat") else str(lastReading)
            message = f"Sensor {sensorId} has not reported data since {last}."
        return self._alert_once(
            f"sensor_delay_{sensorId}",
            open_match={"sensorId": sensorId},
            type="sensor_reading_delay",
            severity="warning",
            domain="devices",
            title="Sensor Reading Delayed",
            message=message,
            context={"sensorId": sensorId, "lastReading": last, "farmId": farmId, "zoneId": zoneId},
        )

    def sensor_critical(self, sensorId, sensorType, value, direction, farmId=None, zoneId=None,
                        deviceId=None, suggestedAction=None, **_):
        return self._alert_once(
            f"sensor_critical_{sensorId}",
            type="sensor_critical",
            severity="critical",
            domain="devices",
            title=f"Critical {sensorType} reading",
            message=f"Sensor {sensorId} reported {value}, {direction} the critical threshold.",
            context={
                "sensorId": sensorId,
                "value": value,
                "farmId": farmId,
                "zoneId": zoneId,
                "deviceId": deviceId,
                "suggestedActions": [suggestedAction] if suggestedAction else None,
            },
        )

    def orphan_entities(self, type, count, farmId=None, **_):
        descriptions = {
            "device": "registered but no sensors attached",
            "crop": "exists without linked sensors",
            "sensor": "attached to non-existent device",
        }
        return self._alert_once(
            f"orphan_{type}_{farmId or 'global'}",
            open_match={"farmId": farmId},
            type=f"orphan_{type}",
            severity="info",
            domain="crops" if type == "crop" else "devices",
            title=f"Orphan {type}s Detected",
            message=f"{count} {type}(s) {descriptions.get(type, 'need attention')}.",
            context={"entityType": type, "count": count, "farmId": farmId},
        )

    # -------------------- Users & farms -------------------- #

    def user_registered(self, userId, email, role, status=None, firstName="", lastName="", **_):
        if status == "pending":
            return admin_notifications.create(
                type="user_pending_approval",
                severity="warning",
                domain="users",
                title="New Account Approval Required",
                message=f"{firstName} {lastName} ({email}) registered and is waiting for approval.".strip(),
                context={
                    "userId": userId,
                    "email": email,
                    "suggestedActions": ["Review user profile", "Activate the account", "Assign a farm"],
                },
            )
        return admin_notifications.create(
            type="user_registered",
            severity="info",
            domain="users",
            title="New User Registered",
            message=f"{firstName} {lastName} ({email}) registered as {role}.".strip(),
            context={"userId": userId, "email": email, "role": role},
        )

    def farm_access_request(self, userId, email, userName, **_):
        return admin_notifications.create(
            type="user_farm_request",
            severity="info",
            domain="users",
            title="Farm Access Request",
            message=f"User {userName} ({email}) requested farm access.",
            context={
                "userId": userId,
                "email": email,
                "userName": userName,
                "suggestedActions": ["Review user profile", "Assign farm to user", "Contact user"],
            },
        )

    def farm_created(self, farmId, farmName, ownerId=None, ownerEmail=None, **_):
        return admin_notifications.create(
            type="farm_created",
            severity="info",
            domain="farms",
            title="New Farm Created",
            message=f'Farm "{farmName}" created by {ownerEmail or ownerId or "an administrator"}.',
            context={"farmId": farmId, "farmName": farmName, "ownerId": ownerId},
        )

    # -------------------- Automation -------------------- #

    def action_execution_failed(self, actionId, deviceId, error, farmId=None, **_):
        return self._alert_once(
            f"action_failed_{deviceId}",
            type="action_execution_failed",
            severity="warning",
            domain="automation",
            title="Action Execution Failed",
            message=f"Failed to execute action on device {deviceId}: {error}",
            context={
                "actionId": actionId,
                "deviceId": deviceId,
                "error": error,
                "farmId": farmId,
                "suggestedActions": [
                    "Check device connectivity",
                    "Verify actuator hardware",
                    "Review action configuration",
                ],
            },
        )

    def manual_override(self, userId, deviceId, action, farmId=None, **_):
        return admin_notifications.create(
            type="automation_manual_override",
            severity="info",
            domain="automation",
            title="Manual Override Detected",
            message=f"User manually triggered {action} on device {deviceId}.",
            context={"userId": userId, "deviceId": deviceId, "action": action, "farmId": farmId},
        )

    # -------------------- Insights -------------------- #

    def weekly_summary(self, newUsers, newFarms, sensorReadings, actionsExecuted, weekStart, weekEnd, **_):
        return admin_notifications.create(
            type="weekly_summary",
            severity="success",
            domain="system",
            title="Weekly Platform Summary",
            message=(
                f"Week of {weekStart}: {newUsers} new users, {newFarms} new farms, "
                f"{sensorReadings:,} sensor readings."
            ),
            context={
                "newUsers": newUsers,
                "newFarms": newFarms,
                "sensorReadings": sensorReadings,
                "actionsExecuted": actionsExecuted,
                "weekStart": weekStart,
                "weekEnd": weekEnd,
                "suggestedActions": ["Review growth trends", "Plan capacity if needed"],
            },
        )


# Global instance for easy import
alerting = AdminAlertingService()


@receiver(platform_event)
def create_alert_for_platform_event(sender, event, **data):
    data.pop("signal", None)
    try:
        alerting.handle(event, **data)
    except Exception:
        # Alerting never breaks the request that raised the event
        logger.exception("Failed to create admin alert for %s", event)
