"""
CROP ANALYTICS
Growth stages, groupings, the crop dashboard (farm sensors + KPIs),
sustainability metrics and crop comparison.
Plain arithmetic over query results.
"""
import logging
from collections import OrderedDict
from datetime import timedelta

from django.db.models import Avg, Q
from django.utils import timezone

from .advisor import STATUS_OFFLINE, classify_value, sensor_kind
from .dashboard import latest_readings_for
from .models import ActionLog, Crop, SensorReading

logger = logging.getLogger(__name__)

GROWTH_STAGES = [
    (7, "Germination"),
    (30, "Seedling"),
    (60, "Vegetative"),
    (90, "Flowering"),
]
KINDS = ("moisture", "temperature", "humidity")
OPTIMAL_MOISTURE = (40, 70)
LITERS_PER_IRRIGATION = 15
KWH_PER_AUTO_ACTION = 0.1
TREND_THRESHOLD = 0.05
SAME_BAND_PERCENT = 5


def growth_stage(planting_date, today=None):
    if planting_date is None:
        return "Unknown"
    today = today or timezone.localdate()
    days = (today - planting_date).days
    for limit, stage in GROWTH_STAGES:
        if days < limit:
            return stage
    return "Mature"


def health_status(crop):
    if crop.status in (Crop.STATUS_PLANTED, Crop.STATUS_GROWING, Crop.STATUS_HARVESTED):
        return "healthy"
    if crop.status == Crop.STATUS_FAILED:
        return "critical"
    return "unknown"


def _mean(values):
    values = [v for v in values if v is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


# -------------------- Grouping -------------------- #

def group_by_farm(crops):
    groups = OrderedDict()
    for crop in crops:
        name = crop.farm.name if crop.farm_id and crop.farm else "Unknown Farm"
        groups.setdefault(name, []).append(crop)
    return groups


def group_by_growth_stage(crops):
    groups = OrderedDict()
    for crop in crops:
        groups.setdefault(growth_stage(crop.planting_date), []).append(crop)
    return groups


def group_by_planting_month(crops):
    groups = OrderedDict()
    for crop in crops:
        key = crop.planting_date.strftime("%B %Y") if crop.planting_date else "No Planting Date"
        groups.setdefault(key, []).append(crop)
    return groups


# -------------------- Sensor statistics -------------------- #

def _kind_filter(kind):
    if kind == "temperature":
        return Q(sensor__type__icontains="temp")
    if kind == "humidity":
        return Q(sensor__type__icontains="humid")
    return Q(sensor__type__icontains="moisture")


def average_since(sensor_ids, kind, since, until=None):
    qs = SensorReading.objects.filter(sensor_id__in=sensor_ids, created_at__gte=since).filter(_kind_filter(kind))
    if until is not None:
        qs = qs.filter(created_at__lt=until)
    value = qs.aggregate(avg=Avg("value1"))["avg"]
    return round(value, 2) if value is not None else None


def trend(sensor_ids, kind, now):
    """Last 3 days against the 4 days before them."""
    recent = average_since(sensor_ids, kind, now - timedelta(days=3))
    previous = average_since(sensor_ids, kind, now - timedelta(days=7), until=now - timedelta(days=3))
    if recent is None or previous is None or previous == 0:
        return "stable"
    change = (recent - previous) / abs(previous)
    if change > TREND_THRESHOLD:
        return "up"
    if change < -TREND_THRESHOLD:
        return "down"
    return "stable"


# -------------------- Dashboard -------------------- #

def crop_dashboard(crop):
    now = timezone.now()
    farm = crop.farm
    sensors = list(farm.sensors.all())
    sensor_ids = [s.sensor_id for s in sensors]
    latest = latest_readings_for(sensor_ids)
    active_since = now - timedelta(hours=1)

    sensor_rows = []
    latest_by_kind = {kind: [] for kind in KINDS}
    active = 0
    last_updated = None
    for sensor in sensors:
        reading = latest.get(sensor.sensor_id)
        value = reading.value1 if reading else None
        status, _ = classify_value(sensor, value)
        is_active = reading is not None and reading.created_at >= active_since
        if is_active:
            active += 1
        if reading and (last_updated is None or reading.created_at > last_updated):
            last_updated = reading.created_at
        kind = sensor_kind(sensor.type)
        if kind and value is not None:
            latest_by_kind[kind].append(value)
        sensor_rows.append({
            "sensor_id": sensor.sensor_id,
            "type": sensor.type,
            "unit": sensor.unit,
            "location": sensor.location,
            "value": value,
            "timestamp": reading.created_at.isoformat() if reading else None,
            "status": status,
            "isActive": is_active,
            "thresholds": {
                "min_critical": sensor.min_critical,
                "min_warning": sensor.min_warning,
                "max_warning": sensor.max_warning,
                "max_critical": sensor.max_critical,
            },
        })

    farm_crops = list(farm.crops.all())
    kpis = {
        "totalCrops": len(farm_crops),
        "healthyCount": sum(1 for c in farm_crops if c.status in Crop.ACTIVE_STATUSES),
        "stressedCount": sum(1 for c in farm_crops if c.status == Crop.STATUS_FAILED),
        "avgSoilMoisture": _mean(latest_by_kind["moisture"]),
        "avgTemperature": _mean(latest_by_kind["temperature"]),
        "avgHumidity": _mean(latest_by_kind["humidity"]),
        "totalSensors": len(sensors),
        "activeSensors": active,
        "lastUpdated": last_updated.isoformat() if last_updated else None,
        "currentGrowthStage": growth_stage(crop.planting_date),
    }

    statistics = {
        kind: {
            "last7Days": average_since(sensor_ids, kind, now - timedelta(days=7)),
            "last30Days": average_since(sensor_ids, kind, now - timedelta(days=30)),
            "trend": trend(sensor_ids, kind, now),
        }
        for kind in KINDS
    }

    return {
        "crop": {
            "crop_id": str(crop.crop_id),
            "name": crop.name,
            "variety": crop.variety,
            "status": crop.status,
            "planting_date": crop.planting_date.isoformat() if crop.planting_date else None,
            "expected_harvest_date": crop.expected_harvest_date.isoformat() if crop.expected_harvest_date else None,
            "healthStatus": health_status(crop),
        },
        "farm": {
            "farm_id": str(farm.farm_id),
            "name": farm.name,
            "location": farm.location,
        },
        "sensors": sensor_rows,
        "kpis": kpis,
        "statistics": statistics,
        "offlineSensors": sum(1 for row in sensor_rows if row["status"] == STATUS_OFFLINE),
    }


# -------------------- Sustainability -------------------- #

def water_efficiency(sensor_ids, since):
    """Share of moisture readings inside the optimal band."""
    if not sensor_ids:
        return 0
    readings = SensorReading.objects.filter(
        sensor_id__in=sensor_ids,
        sensor__type__icontains="moisture",
        created_at__gte=since,
        value1__isnull=False,
    )
    total = readings.count()
    if total == 0:
        return 50
    low, high = OPTIMAL_MOISTURE
    optimal = readings.filter(value1__gte=low, value1__lte=high).count()
    return round(optimal / total * 100)


def sustainability(crop, days=30):
    now = timezone.now()
    since = now - timedelta(days=days)
    farm = crop.farm
    sensor_ids = list(farm.sensors.values_list("sensor_id", flat=True))

    acked = ActionLog.objects.filter(device__farm=farm, status="ack", created_at__gte=since)
    irrigation_acks = acked.filter(Q(action_uri__icontains="irrigat") | Q(action_uri__icontains="water")).count()
    auto_acks = acked.filter(trigger_source="auto").count()

    water_saved = irrigation_acks * LITERS_PER_IRRIGATION
    energy_saved = round(auto_acks * KWH_PER_AUTO_ACTION, 2)
    carbon_offset = round(water_saved * 0.001 + energy_saved * 0.5, 3)

    water_eff = water_efficiency(sensor_ids, since)
    energy_eff = 75

    return {
        "cropId": str(crop.crop_id),
        "waterSaved": water_saved,
        "energySaved": energy_saved,
        "carbonOffset": carbon_offset,
        "sustainabilityScore": round(0.6 * water_eff + 0.4 * energy_eff),
        "efficiency": {
            "waterEfficiency": water_eff,
            "energyEfficiency": energy_eff,
            "resourceScore": round((water_eff + energy_eff) / 2),
        },
        "period": {
            "startDate": since.isoformat(),
            "endDate": now.isoformat(),
            "daysAnalyzed": days,
        },
    }


# -------------------- Comparison -------------------- #

METRICS = (
    ("moisture", "Soil Moisture", "water_drop", "%"),
    ("temperature", "Temperature", "thermostat", "°C"),
    ("humidity", "Humidity", "cloud", "%"),
)


def compare_metric(label, icon, current, baseline, unit):
    """A zero baseline has no meaningful percentage and reads as "same"."""
    metric = {
        "label": label,
        "icon": icon,
        "currentValue": current,
        "compareValue": baseline,
        "unit": unit,
    }
    if current is None or baseline is None:
        return {**metric, "status": "unknown", "difference": 0, "percentChange": 0}

    difference = round(current - baseline, 2)
    percent = round(difference / baseline * 100, 2) if baseline != 0 else 0
    if abs(percent) < SAME_BAND_PERCENT:
        status = "same"
    elif percent > 0:
        status = "better"
    else:
        status = "worse"
    return {**metric, "status": status, "difference": difference, "percentChange": percent}


def overall_verdict(metrics):
    """(overallStatus, summary counts) for a list of metrics."""
    better = sum(1 for m in metrics if m["status"] == "better")
    worse = sum(1 for m in metrics if m["status"] == "worse")
    same = sum(1 for m in metrics if m["status"] == "same")
    if better > worse:
        verdict = "better"
    elif worse > better:
        verdict = "worse"
    elif same or not better:
        verdict = "same"
    else:
        verdict = "unknown"
    return verdict, {"betterCount": better, "worseCount": worse, "sameCount": same}


def _averages(sensor_ids, since, until=None):
    return {kind: average_since(sensor_ids, kind, since, until) for kind in KINDS}


def compare(crop, mode="farm_avg", other=None, days=30):
    """
    farm_avg: this crop's zone sensors against all farm sensors
    last_season: this period against the same period one year earlier
    other_crop: this crop's sensors against another crop's sensors
    """
    now = timezone.now()
    since = now - timedelta(days=days)

    def sensors_of(target):
        if target.zone_id:
            ids = list(target.zone.sensors.values_list("sensor_id", flat=True))
            if ids:
                return ids
        return list(target.farm.sensors.values_list("sensor_id", flat=True))

    own_sensors = sensors_of(crop)
    current = _averages(own_sensors, since)

    if mode == "farm_avg":
        baseline = _averages(list(crop.farm.sensors.values_list("sensor_id", flat=True)), since)
        label = f"{crop.farm.name} average"
    elif mode == "last_season":
        year_ago = now - timedelta(days=365)
        baseline = _averages(own_sensors, year_ago - timedelta(days=days), until=year_ago)
        label = "Same period last season"
    elif mode == "other_crop":
        baseline = _averages(sensors_of(other), since)
        label = other.name
    else:
        raise ValueError(f"Unknown comparison mode: {mode}")

    metrics = [
        compare_metric(name, icon, current[kind], baseline[kind], unit)
        for kind, name, icon, unit in METRICS
    ]
    verdict, summary = overall_verdict(metrics)
    return {
        "cropId": str(crop.crop_id),
        "mode": mode,
        "compareCropId": str(other.crop_id) if other is not None else None,
        "baseline": label,
        "metrics": metrics,
        "overallStatus": verdict,
        "summary": summary,
        "period": {"startDate": since.isoformat(), "endDate": now.isoformat()},
    }
