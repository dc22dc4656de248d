"""
SIGNALS - AUTOMATIC EVENT HANDLING
Triggers follow-up processing when a sensor reading is stored:
threshold check, farmer notification, admin alert, live broadcast.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db.models.signals import post_save  # Signal sent after save
from django.dispatch import receiver
from django.utils import timezone

from administration.events import emit
from .advisor import STATUS_CRITICAL, STATUS_WARNING, advisor, classify_value
from .models import Notification, SensorReading
from .realtime import broadcast_to_farm

logger = logging.getLogger(__name__)


def _notify_owner(sensor, reading, status, direction, advice):
    owner = sensor.farm.owner
    if owner is None:
        return None

    # Don't repeat the same level for the same sensor inside the dedup window
    recent_duplicate = Notification.objects.filter(
        user=owner,
        source="sensor",
        level=status,
        context__sensorId=sensor.sensor_id,
        created_at__gte=timezone.now() - timedelta(seconds=settings.READING_ALERT_DEDUP_SECONDS),
    ).exists()
    if recent_duplicate:
        logger.debug("Skipping duplicate %s notification for sensor %s", status, sensor.sensor_id)
        return None

    return Notification.objects.create(
        user=owner,
        level=status,
        source="sensor",
        title=f"{sensor.type.replace('_', ' ').title()} {direction}: {reading.value1}{sensor.unit}",
        message=advice["message"] if advice else f"Sensor {sensor.sensor_id} reading is {direction}.",
        context={
            "farmId": str(sensor.farm_id),
            "zoneId": str(sensor.zone_id) if sensor.zone_id else None,
            "deviceId": sensor.device_id,
            "sensorId": sensor.sensor_id,
            "readingId": reading.id,
            "value": reading.value1,
        },
    )


@receiver(post_save, sender=SensorReading)
def process_new_reading(sender, instance, created, **kwargs):
    """
    Triggered AFTER a SensorReading is saved.
    Only new readings are processed, not updates.
    """
    if not created:
        return

    sensor = instance.sensor
    status, direction = classify_value(sensor, instance.value1)
    logger.debug("Reading %s for %s: %s -> %s", instance.id, sensor.sensor_id, instance.value1, status)

    if status in (STATUS_CRITICAL, STATUS_WARNING):
        advice = advisor.advise(sensor, status, direction, instance.value1)
        _notify_owner(sensor, instance, status, direction, advice)

        if status == STATUS_CRITICAL:
            emit(
                SensorReading,
                "sensor.critical",
                sensorId=sensor.sensor_id,
                sensorType=sensor.type,
                value=instance.value1,
                direction="below" if direction == "low" else "above",
                farmId=str(sensor.farm_id),
                zoneId=str(sensor.zone_id) if sensor.zone_id else None,
                deviceId=sensor.device_id,
                suggestedAction=advice["action"] if advice else None,
            )

    broadcast_to_farm(sensor.farm_id, "reading:new", {
        "id": instance.id,
        "sensor_id": sensor.sensor_id,
        "type": sensor.type,
        "unit": sensor.unit,
        "value1": instance.value1,
        "value2": instance.value2,
        "status": status,
        "created_at": instance.created_at.isoformat(),
    })
