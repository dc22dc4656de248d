import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from administration.models import AdminNotification
from monitoring.dashboard import health_score, round_half_up
from monitoring.models import Crop, Sensor, SensorReading, Zone


def test_health_score_penalties():
    assert health_score(0, 0, 0) == 100
    assert health_score(1, 1, 1) == 100 - 15 - 5 - 3
    assert health_score(10, 0, 0) == 0


def test_round_half_up():
    assert round_half_up(74.5) == 75
    assert round_half_up(74.4) == 74
    assert round_half_up(2.5) == 3


def alert(farm, zone=None, severity="critical", status="new"):
    context = {"farmId": str(farm.farm_id)}
    if zone is not None:
        context["zoneId"] = str(zone.id)
    return AdminNotification.objects.create(
        type="sensor_critical",
        severity=severity,
        domain="devices",
        title="Critical reading",
        message="...",
        context=context,
        status=status,
    )


@pytest.mark.django_db
def test_farm_dashboard_scores_and_summary(farmer_client, farm):
    zone_a = Zone.objects.create(farm=farm, name="A Block")
    zone_b = Zone.objects.create(farm=farm, name="B Block")
    Sensor.objects.create(sensor_id="silent-1", farm=farm, zone=zone_a, type="soil_moisture")
    Crop.objects.create(farm=farm, zone=zone_a, name="Pepper", status=Crop.STATUS_GROWING)
    Crop.objects.create(farm=farm, zone=zone_b, name="Melon", status=Crop.STATUS_PLANTED)

    alert(farm, zone_a)
    alert(farm)  # farm-wide, counts for every zone
    alert(farm, zone_a, status="resolved")
    alert(farm, zone_b, severity="info")

    response = farmer_client.get(f"/api/v1/dashboard/farm/{farm.farm_id}/")

    assert response.status_code == 200
    zones = {z["zone"]["name"]: z for z in response.data["zones"]}
    # A: two critical alerts and one sensor without data
    assert zones["A Block"]["healthScore"] == 100 - 2 * 15 - 5
    # B: the farm-wide critical alert only
    assert zones["B Block"]["healthScore"] == 85
    assert len(zones["B Block"]["alerts"]) == 2

    summary = response.data["summary"]
    assert summary["criticalAlerts"] == 2
    assert summary["totalZones"] == 2
    assert summary["totalSensors"] == 1
    assert summary["overallHealth"] == round_half_up((65 + 85) / 2)


@pytest.mark.django_db
def test_zone_without_sensors_recommends_adding_them(farmer_client, farm):
    zone = Zone.objects.create(farm=farm, name="Open field")
    Crop.objects.create(farm=farm, zone=zone, name="Wheat", status=Crop.STATUS_GROWING)

    response = farmer_client.get(f"/api/v1/dashboard/zone/{zone.id}/")

    assert response.status_code == 200
    first = response.data["recommendations"][0]
    assert first["id"] == f"rec-no-sensors-{zone.id}"
    assert first["priority"] == "high"


@pytest.mark.django_db
def test_stale_and_breached_sensors(farmer_client, zone, sensor, crop):
    hot = Sensor.objects.create(
        sensor_id="air-temp", farm=zone.farm, zone=zone, type="temperature", unit="°C", max_warning=30,
    )
    SensorReading.objects.create(sensor=sensor, value1=50, created_at=timezone.now() - timedelta(hours=3))
    SensorReading.objects.create(sensor=hot, value1=34)

    response = farmer_client.get(f"/api/v1/dashboard/zone/{zone.id}/")

    ids = [r["id"] for r in response.data["recommendations"]]
    assert "rec-stale-soil-01" in ids
    assert "rec-threshold-air-temp" in ids
    assert response.data["healthScore"] == 100 - 3


@pytest.mark.django_db
def test_dashboard_access_control(other_client, farmer_client, farm, zone):
    assert other_client.get(f"/api/v1/dashboard/farm/{farm.farm_id}/").status_code == 403
    assert other_client.get(f"/api/v1/dashboard/zone/{zone.id}/").status_code == 403
    assert farmer_client.get(f"/api/v1/dashboard/farm/{uuid.uuid4()}/").status_code == 404


@pytest.mark.django_db
def test_dashboard_stats(farmer_client, farmer, farm, zone, device, sensor, crop):
    response = farmer_client.get("/api/v1/dashboard/stats/")

    assert response.data["total_farms"] == 1
    assert response.data["total_zones"] == 1
    assert response.data["total_devices"] == 1
    assert response.data["total_sensors"] == 1
    assert response.data["total_crops"] == 1


@pytest.mark.django_db
def test_zone_block_shape(farmer_client, farm, zone, sensor, crop):
    SensorReading.objects.create(sensor=sensor, value1=50)

    response = farmer_client.get(f"/api/v1/dashboard/farm/{farm.farm_id}/")

    [block] = response.data["zones"]
    assert block["zone"] == {
        "id": str(zone.id),
        "name": "Greenhouse A",
        "type": zone.type,
        "status": zone.status,
        "area_m2": None if zone.area_m2 is None else float(zone.area_m2),
    }
    assert set(block) == {"zone", "crops", "sensors", "alerts", "recommendations", "deviceCount", "healthScore"}
    assert block["sensors"][0]["latest_value"] == 50
    assert block["crops"][0]["name"] == "Tomato"


@pytest.mark.django_db
def test_recommendations_carry_a_message(farmer_client, farm):
    zone = Zone.objects.create(farm=farm, name="Open field")
    Crop.objects.create(farm=farm, zone=zone, name="Wheat", status=Crop.STATUS_GROWING)

    [recommendation] = farmer_client.get(f"/api/v1/dashboard/zone/{zone.id}/").data["recommendations"]

    assert recommendation["message"] == "This zone has 1 active crop(s) but no sensors. Consider adding monitoring."
    assert "description" not in recommendation


@pytest.mark.django_db
def test_latest_reading_without_value_counts_as_no_data(farmer_client, zone, sensor, crop):
    SensorReading.objects.create(sensor=sensor, value1=None)

    response = farmer_client.get(f"/api/v1/dashboard/zone/{zone.id}/")

    assert response.data["sensors"][0]["latest_value"] is None
    assert response.data["healthScore"] == 100 - 5
