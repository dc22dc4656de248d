"""
DASHBOARD AGGREGATION
Builds the per-farm and per-zone dashboard: zones joined with their sensors,
crops and devices, the latest reading of every sensor, unresolved admin
alerts, recommendations and an arithmetic health score.
"""
import logging
import math
from datetime import timedelta

from django.conf import settings
from django.db.models import Max, Q
from django.utils import timezone
from rest_framework.generics import get_object_or_404

from administration.models import AdminNotification
from .advisor import advisor, classify_value
from .models import Crop, Farm, SensorReading, Zone

logger = logging.getLogger(__name__)

ALERT_LIMIT = 50
CRITICAL_PENALTY = 15
NO_DATA_PENALTY = 5
STALE_PENALTY = 3


def round_half_up(value):
    return int(math.floor(value + 0.5))


def health_score(critical_alerts, no_data_sensors, stale_sensors):
    score = (
        100
        - CRITICAL_PENALTY * critical_alerts
        - NO_DATA_PENALTY * no_data_sensors
        - STALE_PENALTY * stale_sensors
    )
    return max(0, min(100, score))


def latest_readings_for(sensor_ids):
    """
    {sensor_id: SensorReading} with the newest reading of each sensor.
    Two queries regardless of the number of sensors.
    """
    if not sensor_ids:
        return {}
    latest_ids = (
        SensorReading.objects.filter(sensor_id__in=sensor_ids)
        .order_by()
        .values("sensor_id")
        .annotate(latest_id=Max("id"))
        .values_list("latest_id", flat=True)
    )
    return {
        reading.sensor_id: reading
        for reading in SensorReading.objects.filter(id__in=list(latest_ids))
    }


def _alerts_for(farm_id, zone_ids):
    farm_key = str(farm_id)
    scope = Q(context__farmId=farm_key, context__zoneId__isnull=True)
    if zone_ids:
        scope |= Q(context__zoneId__in=[str(z) for z in zone_ids])
    return list(
        AdminNotification.objects.exclude(status=AdminNotification.STATUS_RESOLVED)
        .filter(scope)
        .order_by("-created_at")[:ALERT_LIMIT]
    )


def _alert_payload(alert):
    return {
        "id": str(alert.id),
        "type": alert.type,
        "severity": alert.severity,
        "title": alert.title,
        "message": alert.message,
        "status": alert.status,
        "created_at": alert.created_at.isoformat(),
    }


def _zone_block(zone, alerts, latest, now):
    stale_before = now - timedelta(minutes=settings.STALE_READING_MINUTES)
    sensors = list(zone.sensors.all())
    active_crops = [c for c in zone.crops.all() if c.status in Crop.ACTIVE_STATUSES]
    zone_key = str(zone.id)

    # zone alerts plus farm-level alerts (those without a zoneId)
    zone_alerts = [
        a for a in alerts
        if (a.context or {}).get("zoneId") in (zone_key, None)
    ]

    snapshots = []
    recommendations = []
    no_data = 0
    stale = 0
    for sensor in sensors:
        reading = latest.get(sensor.sensor_id)
        value = reading.value1 if reading else None
        snapshots.append({
            "sensor_id": sensor.sensor_id,
            "type": sensor.type,
            "unit": sensor.unit,
            "latest_value": value,
            "latest_timestamp": reading.created_at.isoformat() if reading else None,
        })
        if value is None:
            no_data += 1
        if reading is None:
            continue
        if reading.created_at < stale_before:
            stale += 1
            recommendations.append({
                "id": f"rec-stale-{sensor.sensor_id}",
                "title": f"Stale readings: {sensor.type}",
                "message": f"Sensor {sensor.sensor_id} ({sensor.type}) has not reported since "
                           f"{reading.created_at.isoformat()}. Check connectivity.",
                "priority": "medium",
                "sensorId": sensor.sensor_id,
            })
            continue
        if value is None:
            continue
        status, direction = classify_value(sensor, value)
        advice = advisor.advise(sensor, status, direction, value)
        if advice:
            recommendations.append(advice)

    if not sensors and active_crops:
        recommendations.insert(0, {
            "id": f"rec-no-sensors-{zone_key}",
            "title": "No sensors in zone",
            "message": f"This zone has {len(active_crops)} active crop(s) but no sensors. Consider adding monitoring.",
            "priority": "high",
        })
    if sensors and not active_crops:
        recommendations.append({
            "id": f"rec-no-crops-{zone_key}",
            "title": "No active crops",
            "message": "Sensors are active but no crops are planted. Data is being collected for future use.",
            "priority": "low",
        })

    critical = [a for a in zone_alerts if a.severity == AdminNotification.SEVERITY_CRITICAL]
    block = {
        "zone": {
            "id": zone_key,
            "name": zone.name,
            "type": zone.type,
            "status": zone.status,
            "area_m2": float(zone.area_m2) if zone.area_m2 is not None else None,
        },
        "crops": [
            {
                "crop_id": str(c.crop_id),
                "name": c.name,
                "variety": c.variety,
                "status": c.status,
                "planting_date": c.planting_date.isoformat() if c.planting_date else None,
            }
            for c in active_crops
        ],
        "sensors": snapshots,
        "alerts": [_alert_payload(a) for a in zone_alerts],
        "recommendations": recommendations,
        "deviceCount": len(zone.devices.all()),
        "healthScore": health_score(len(critical), no_data, stale),
    }
    return block, {a.id for a in critical}


def _zones_queryset():
    return Zone.objects.alive().prefetch_related("sensors", "crops", "devices")


def aggregate_by_farm(farm_id):
    farm = get_object_or_404(Farm.objects.all(), pk=farm_id)

    now = timezone.now()
    zones = list(_zones_queryset().filter(farm=farm).order_by("name"))
    sensor_ids = [s.sensor_id for z in zones for s in z.sensors.all()]
    latest = latest_readings_for(sensor_ids)
    alerts = _alerts_for(farm.farm_id, [z.id for z in zones])

    blocks = []
    critical_ids = set()
    for zone in zones:
        block, zone_critical = _zone_block(zone, alerts, latest, now)
        blocks.append(block)
        critical_ids |= zone_critical
    total_crops = sum(len(z.crops.all()) for z in zones)

    overall = (
        round_half_up(sum(b["healthScore"] for b in blocks) / len(blocks))
        if blocks else 100
    )
    logger.debug("Aggregated dashboard for farm %s: %d zones", farm.farm_id, len(blocks))

    return {
        "farm": {
            "farm_id": str(farm.farm_id),
            "name": farm.name,
            "location": farm.location,
        },
        "zones": blocks,
        "summary": {
            "totalZones": len(blocks),
            "totalSensors": len(sensor_ids),
            "totalCrops": total_crops,
            "totalDevices": sum(b["deviceCount"] for b in blocks),
            "criticalAlerts": len(critical_ids),
            "overallHealth": overall,
        },
        "generatedAt": now.isoformat(),
    }


def aggregate_by_zone(zone_id):
    zone = get_object_or_404(_zones_queryset().select_related("farm"), pk=zone_id)

    now = timezone.now()
    latest = latest_readings_for([s.sensor_id for s in zone.sensors.all()])
    alerts = _alerts_for(zone.farm_id, [zone.id])
    block, _ = _zone_block(zone, alerts, latest, now)
    block["farm_id"] = str(zone.farm_id)
    block["generatedAt"] = now.isoformat()
    return block
