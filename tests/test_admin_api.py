from datetime import timedelta
from unittest import mock

import pytest
from django.core.management import call_command
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from administration.alerting import alerting
from administration.models import AdminNotification, SystemSettings
from administration.notifications import admin_notifications
from monitoring.models import Device, Farm, Sensor, SensorReading
from tests.conftest import PASSWORD, make_user

pytestmark = pytest.mark.django_db

NOTIFICATIONS_URL = "/api/v1/admin/notifications/"


def notify(severity="info", **kwargs):
    return admin_notifications.create(
        type=kwargs.pop("type", "test_event"),
        severity=severity,
        domain=kwargs.pop("domain", "system"),
        title=kwargs.pop("title", f"{severity} event"),
        message=kwargs.pop("message", "Something happened"),
        context=kwargs.pop("context", None),
    )


# -------------------- Notifications -------------------- #

def test_list_orders_pinned_then_new_then_newest(admin_client, admin_user):
    acknowledged = notify("warning")
    admin_notifications.acknowledge(acknowledged.id, admin_user)
    fresh = notify("info")
    pinned = notify("critical")

    response = admin_client.get(NOTIFICATIONS_URL)

    assert response.status_code == 200
    ids = [item["id"] for item in response.data["items"]]
    assert ids == [str(pinned.id), str(fresh.id), str(acknowledged.id)]
    assert response.data["total"] == 3
    assert response.data["hasMore"] is False


def test_list_filters(admin_client):
    notify("warning", domain="devices", title="Gateway down", context={"farmId": "farm-1"})
    notify("info", domain="users", title="New user")

    assert admin_client.get(f"{NOTIFICATIONS_URL}?domain=devices").data["total"] == 1
    assert admin_client.get(f"{NOTIFICATIONS_URL}?search=gateway").data["total"] == 1
    assert admin_client.get(f"{NOTIFICATIONS_URL}?farmId=farm-1").data["total"] == 1
    paged = admin_client.get(f"{NOTIFICATIONS_URL}?limit=1&page=2").data
    assert len(paged["items"]) == 1
    assert paged["page"] == 2
    assert admin_client.get(f"{NOTIFICATIONS_URL}?from=yesterday").status_code == 400


def test_counts_and_critical(admin_client):
    notify("critical")
    notify("warning")
    notify("warning")

    counts = admin_client.get(f"{NOTIFICATIONS_URL}counts/").data
    assert counts["total"] == 3
    assert counts["critical"] == 1
    assert counts["warning"] == 2
    assert counts["unresolved"] == 3
    assert counts["newCount"] == 3

    critical = admin_client.get(f"{NOTIFICATIONS_URL}critical/").data
    assert len(critical) == 1


def test_acknowledge_and_resolve(admin_client, admin_user):
    notification = notify("critical")

    acked = admin_client.patch(f"{NOTIFICATIONS_URL}{notification.id}/acknowledge/")
    assert acked.data["status"] == "acknowledged"
    assert acked.data["acknowledged_by"] == admin_user.id

    resolved = admin_client.patch(f"{NOTIFICATIONS_URL}{notification.id}/resolve/")
    assert resolved.data["status"] == "resolved"
    assert resolved.data["pinned_until_resolved"] is False

    # acknowledging a resolved notification changes nothing
    again = admin_client.patch(f"{NOTIFICATIONS_URL}{notification.id}/acknowledge/")
    assert again.data["status"] == "resolved"


def test_unknown_notification_is_not_found(admin_client):
    assert admin_client.get(f"{NOTIFICATIONS_URL}not-a-uuid/").status_code == 404


def test_bulk_acknowledge_only_touches_new(admin_client, admin_user):
    first, second, third = notify(), notify(), notify()
    admin_notifications.resolve(third.id, admin_user)

    response = admin_client.post(f"{NOTIFICATIONS_URL}bulk-acknowledge/", {
        "ids": [str(first.id), str(second.id), str(third.id)],
    }, format="json")

    assert response.data == {"updated": 2}
    third.refresh_from_db()
    assert third.status == "resolved"


def test_bulk_resolve(admin_client):
    first, second = notify(), notify("critical")

    response = admin_client.post(f"{NOTIFICATIONS_URL}bulk-resolve/", {
        "ids": [str(first.id), str(second.id)],
    }, format="json")

    assert response.data == {"updated": 2}
    assert not AdminNotification.objects.filter(pinned_until_resolved=True).exists()


def test_create_and_export(admin_client):
    created = admin_client.post(NOTIFICATIONS_URL, {
        "type": "maintenance_window",
        "severity": "critical",
        "domain": "system",
        "title": "Planned maintenance",
        "message": "Database upgrade tonight",
    }, format="json")
    assert created.status_code == 201
    assert created.data["pinned_until_resolved"] is True

    export = admin_client.get(f"{NOTIFICATIONS_URL}export/audit/").data
    assert export["count"] == 1
    assert export["data"][0]["title"] == "Planned maintenance"


def test_notifications_are_admin_only(farmer_client, moderator_client):
    assert farmer_client.get(NOTIFICATIONS_URL).status_code == 403
    assert moderator_client.get(NOTIFICATIONS_URL).status_code == 403
    assert moderator_client.get(f"{NOTIFICATIONS_URL}export/audit/").status_code == 403


def test_moderators_cannot_change_notifications(moderator_client):
    notification = notify()

    created = moderator_client.post(NOTIFICATIONS_URL, {
        "type": "custom",
        "severity": "info",
        "domain": "system",
        "title": "Hello",
        "message": "...",
    }, format="json")
    resolved = moderator_client.post(f"{NOTIFICATIONS_URL}bulk-resolve/", {"ids": [str(notification.id)]},
                                     format="json")

    assert created.status_code == 403
    assert resolved.status_code == 403
    notification.refresh_from_db()
    assert notification.status == "new"


def test_cleanup_command_deletes_old_resolved(admin_user):
    old = notify()
    recent = notify()
    admin_notifications.resolve(old.id, admin_user)
    admin_notifications.resolve(recent.id, admin_user)
    AdminNotification.objects.filter(pk=old.pk).update(resolved_at=timezone.now() - timedelta(days=120))
    open_one = notify()

    call_command("cleanup_notifications", "--days", "90")

    assert set(AdminNotification.objects.values_list("id", flat=True)) == {recent.id, open_one.id}


def test_scan_platform_health(farm, sensor, device):
    SensorReading.objects.create(sensor=sensor, value1=50, created_at=timezone.now() - timedelta(hours=5))
    Device.objects.create(device_id="lonely", name="No sensors", farm=farm)

    call_command("scan_platform_health", "--weekly-summary")

    delay = AdminNotification.objects.get(type="sensor_reading_delay")
    assert delay.context["sensorId"] == "soil-01"
    orphan = AdminNotification.objects.get(type="orphan_device")
    assert orphan.context["count"] == 1
    assert AdminNotification.objects.filter(type="weekly_summary").exists()


def test_repeated_scans_do_not_duplicate_open_alerts(farm, sensor, device):
    SensorReading.objects.create(sensor=sensor, value1=50, created_at=timezone.now() - timedelta(hours=5))
    Device.objects.create(device_id="lonely", name="No sensors", farm=farm)

    call_command("scan_platform_health")
    # a later cron run starts with an empty dedup map
    alerting.reset()
    call_command("scan_platform_health")

    assert AdminNotification.objects.filter(type="sensor_reading_delay").count() == 1
    assert AdminNotification.objects.filter(type="orphan_device").count() == 1


def test_scan_alerts_again_once_resolved(admin_user, sensor):
    SensorReading.objects.create(sensor=sensor, value1=50, created_at=timezone.now() - timedelta(hours=5))
    call_command("scan_platform_health")
    first = AdminNotification.objects.get(type="sensor_reading_delay")
    admin_notifications.resolve(first.id, admin_user)

    alerting.reset()
    call_command("scan_platform_health")

    assert AdminNotification.objects.filter(type="sensor_reading_delay", status="new").count() == 1


def test_scan_flags_sensors_that_never_reported(farm):
    silent = Sensor.objects.create(sensor_id="never-01", farm=farm, type="humidity")
    Sensor.objects.create(sensor_id="brand-new", farm=farm, type="humidity")
    Sensor.objects.filter(pk=silent.pk).update(created_at=timezone.now() - timedelta(days=1))

    call_command("scan_platform_health")

    [delay] = AdminNotification.objects.filter(type="sensor_reading_delay")
    assert delay.context["sensorId"] == "never-01"
    assert delay.message == "Sensor never-01 has never reported data."


# -------------------- Overview -------------------- #

def test_overview_summary_is_cached(admin_client, farm, device):
    first = admin_client.get("/api/v1/admin/overview/summary/").data
    assert first["totalFarms"] == 1
    assert first["onlineDevices"] == 1

    Farm.objects.create(name="Late farm")
    second = admin_client.get("/api/v1/admin/overview/summary/").data
    assert second["totalFarms"] == 1


def test_overview_trends(admin_client, farm):
    response = admin_client.get("/api/v1/admin/overview/trends/?period=7days")

    points = response.data["data"]
    assert len(points) == 7
    assert points[-1]["date"] == timezone.localdate().isoformat()
    assert points[-1]["newFarms"] == 1
    assert admin_client.get("/api/v1/admin/overview/trends/?period=1year").status_code == 400


def test_overview_requires_admin(moderator_client):
    assert moderator_client.get("/api/v1/admin/overview/summary/").status_code == 403


# -------------------- Users & farmers -------------------- #

def test_user_list_pagination_and_farm_count(admin_client, farmer, farm, other_farmer):
    response = admin_client.get("/api/v1/admin/users/?role=farmer&limit=1&sortBy=email&sortOrder=asc")

    assert response.data["total"] == 2
    assert response.data["totalPages"] == 2
    [first] = response.data["items"]
    assert first["email"] == farmer.email
    assert first["farm_count"] == 1

    assert admin_client.get("/api/v1/admin/users/?sortBy=password").status_code == 400


def test_create_user_with_taken_email_is_conflict(admin_client, farmer):
    response = admin_client.post("/api/v1/admin/users/", {
        "email": farmer.email,
        "password": PASSWORD,
        "role": "moderator",
    }, format="json")

    assert response.status_code == 409


def test_create_and_update_user(admin_client, farmer):
    created = admin_client.post("/api/v1/admin/users/", {
        "email": "mod@smartfarm.test",
        "password": PASSWORD,
        "role": "moderator",
    }, format="json")
    assert created.status_code == 201
    user = User.objects.get(email="mod@smartfarm.test")
    assert user.check_password(PASSWORD)

    clash = admin_client.patch(f"/api/v1/admin/users/{user.id}/", {"email": farmer.email}, format="json")
    assert clash.status_code == 409

    ok = admin_client.patch(f"/api/v1/admin/users/{user.id}/", {"status": "inactive"}, format="json")
    assert ok.data["status"] == "inactive"


def test_admin_cannot_delete_self(admin_client, admin_user):
    assert admin_client.delete(f"/api/v1/admin/users/{admin_user.id}/").status_code == 400


def test_impersonate_issues_tokens_for_target(admin_client, farmer):
    response = admin_client.post(f"/api/v1/admin/users/{farmer.id}/impersonate/")

    assert response.status_code == 200
    assert response.data["user"]["email"] == farmer.email
    me = APIClient().get("/api/v1/auth/me/", HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
    assert me.data["email"] == farmer.email


def test_users_endpoint_is_admin_only(farmer_client):
    assert farmer_client.get("/api/v1/admin/users/").status_code == 403


def test_assign_farm_to_farmer(admin_client, other_farmer, farm):
    response = admin_client.post(f"/api/v1/admin/farmers/{other_farmer.id}/assign-farm/",
                                 {"farm_id": str(farm.farm_id)}, format="json")

    assert response.status_code == 200
    farm.refresh_from_db()
    assert farm.owner == other_farmer
    owned = admin_client.get(f"/api/v1/admin/farmers/{other_farmer.id}/farms/").data
    assert [f["name"] for f in owned] == ["Oasis Farm"]


def test_farmers_list_includes_farms(admin_client, farmer, farm):
    response = admin_client.get("/api/v1/admin/farmers/")

    [listed] = [f for f in response.data if f["email"] == farmer.email]
    assert listed["farms"] == [{"farm_id": str(farm.farm_id), "name": "Oasis Farm"}]


# -------------------- Farms -------------------- #

def test_admin_farm_list_with_counts(admin_client, farm, zone, device, sensor, crop):
    response = admin_client.get("/api/v1/admin/farms/?search=oasis")

    assert response.data["total"] == 1
    [item] = response.data["items"]
    assert item["device_count"] == 1
    assert item["sensor_count"] == 1
    assert item["zone_count"] == 1
    assert item["crop_count"] == 1
    assert item["owner_email"] == "farmer@smartfarm.test"


def test_admin_creates_unassigned_farm(admin_client):
    response = admin_client.post("/api/v1/admin/farms/", {"name": "State farm"}, format="json")

    assert response.status_code == 201
    assert response.data["owner_id"] is None
    assert AdminNotification.objects.filter(type="farm_created").exists()


def test_replace_moderators(admin_client, moderator, farm):
    second = make_user("second.mod@smartfarm.test", role=User.ROLE_MODERATOR)

    response = admin_client.put(f"/api/v1/admin/farms/{farm.farm_id}/moderators/",
                                {"moderator_ids": [moderator.id, second.id]}, format="json")
    assert response.status_code == 200
    assert set(farm.moderators.values_list("id", flat=True)) == {moderator.id, second.id}

    admin_client.put(f"/api/v1/admin/farms/{farm.farm_id}/moderators/", {"moderator_ids": [second.id]},
                     format="json")
    assert list(farm.moderators.values_list("id", flat=True)) == [second.id]


def test_farmer_cannot_be_moderator(admin_client, farmer, farm):
    response = admin_client.put(f"/api/v1/admin/farms/{farm.farm_id}/moderators/",
                                {"moderator_ids": [farmer.id]}, format="json")

    assert response.status_code == 400


# -------------------- Settings & system -------------------- #

def test_settings_defaults_and_merge(admin_client):
    defaults = admin_client.get("/api/v1/admin/settings/").data
    assert defaults["general"]["site_name"] == "Smart Farm Management System"
    assert not SystemSettings.objects.exists()

    response = admin_client.put("/api/v1/admin/settings/", {
        "general": {"maintenance_mode": True},
        "integrations": {"weather_api": "on"},
    }, format="json")

    assert response.status_code == 200
    stored = SystemSettings.objects.get(pk="main").settings
    assert stored["general"]["maintenance_mode"] is True
    assert stored["general"]["site_name"] == "Smart Farm Management System"
    assert stored["security"]["max_login_attempts"] == 5
    assert stored["integrations"] == {"weather_api": "on"}


def test_system_health_ok(admin_client):
    response = admin_client.get("/api/v1/admin/system/health/")

    assert response.status_code == 200
    assert response.data["database"] == "up"


def test_system_health_reports_database_failure(admin_client):
    with mock.patch("administration.views.connection") as connection:
        connection.cursor.side_effect = DatabaseError("server closed the connection")
        response = admin_client.get("/api/v1/admin/system/health/")

    assert response.status_code == 503
    alert = AdminNotification.objects.get(type="database_unhealthy")
    assert alert.severity == "critical"


def test_admin_created_user_can_log_in_with_mixed_case_email(admin_client, client):
    created = admin_client.post("/api/v1/admin/users/", {
        "email": "Bob@Example.com",
        "password": PASSWORD,
        "role": "farmer",
    }, format="json")
    assert created.status_code == 201
    assert created.data["email"] == "bob@example.com"

    login = client.post("/api/v1/auth/login/", {"email": "Bob@Example.com", "password": PASSWORD},
                        content_type="application/json")
    assert login.status_code == 200


def test_admin_email_update_is_lowercased(admin_client, farmer):
    response = admin_client.patch(f"/api/v1/admin/users/{farmer.id}/", {"email": "Renamed@Farm.IO"}, format="json")

    assert response.status_code == 200
    farmer.refresh_from_db()
    assert farmer.email == "renamed@farm.io"


# -------------------- System, logs and sensors -------------------- #

def test_system_metrics_and_uptime(admin_client, device):
    Device.objects.create(device_id="gw-002", name="Gateway 2", farm=device.farm, status="offline")

    metrics = admin_client.get("/api/v1/admin/system/metrics/").data
    assert metrics["cpu"]["cores"] >= 1
    assert metrics["disk"]["total"] >= metrics["disk"]["free"]
    assert metrics["uptime"] >= 0

    uptime = admin_client.get("/api/v1/admin/system/uptime/").data
    assert uptime["devices"] == {"total": 2, "online": 1, "offline": 1, "uptimePercentage": 50}
    assert uptime["uptimeFormatted"].endswith("s")


def test_format_uptime():
    from administration.views import format_uptime

    assert format_uptime(90061.7) == "1d 1h 1m 1s"
    assert format_uptime(0) == "0d 0h 0m 0s"


def test_logs_map_action_status_to_level(admin_client, device):
    device.actions.create(action_uri="mqtt:pump/on", trigger_source="auto", status="failed", error="timeout")
    device.actions.create(action_uri="mqtt:fan/on", status="ack")
    device.actions.create(action_uri="mqtt:fan/off", status="pending")

    everything = admin_client.get("/api/v1/admin/logs/").data
    assert everything["total"] == 3
    assert [row["level"] for row in everything["logs"]] == ["warn", "info", "error"]

    errors = admin_client.get("/api/v1/admin/logs/?level=error").data["logs"]
    assert len(errors) == 1
    assert errors[0]["message"] == "auto action: mqtt:pump/on - failed"
    assert errors[0]["module"] == "gw-001"
    assert errors[0]["metadata"]["error_message"] == "timeout"
    assert admin_client.get("/api/v1/admin/logs/?module=gw-999").data["total"] == 0


def test_audit_logs_filter_by_requesting_user(admin_client, farmer_client, farmer, device):
    response = farmer_client.post(f"/api/v1/devices/{device.device_id}/actions/", {
        "action_uri": "mqtt:irrigation/open",
        "payload": {"duration": 60},
    }, format="json")
    assert response.status_code == 201
    device.actions.create(action_uri="mqtt:fan/on", trigger_source="auto")

    mine = admin_client.get(f"/api/v1/admin/audit-logs/?userId={farmer.id}").data
    assert mine["total"] == 1
    row = mine["logs"][0]
    assert row["action"] == "mqtt:irrigation/open"
    assert row["trigger_source"] == "manual"
    assert row["user_id"] == farmer.id
    assert row["metadata"] == {"duration": 60}
    assert admin_client.get("/api/v1/admin/audit-logs/").data["total"] == 2


def test_farm_activity(admin_client, farm, device):
    for uri in ("mqtt:a", "mqtt:b", "mqtt:c"):
        device.actions.create(action_uri=uri)
    other = Farm.objects.create(name="Elsewhere")
    Device.objects.create(device_id="gw-x", name="X", farm=other).actions.create(action_uri="mqtt:x")

    response = admin_client.get(f"/api/v1/admin/farms/{farm.farm_id}/activity/?limit=2")

    assert response.status_code == 200
    assert [row["action"] for row in response.data] == ["mqtt:c", "mqtt:b"]
    assert admin_client.get(f"/api/v1/admin/farms/{other.farm_id}/activity/").data[0]["device_id"] == "gw-x"


def test_admin_sensor_list_with_latest_reading(admin_client, sensor):
    Sensor.objects.create(sensor_id="temp-01", farm=sensor.farm, type="temperature")
    SensorReading.objects.create(sensor=sensor, value1=40)
    SensorReading.objects.create(sensor=sensor, value1=44)

    listing = admin_client.get("/api/v1/admin/sensors/").data
    assert listing["total"] == 2
    assert listing["limit"] == 50
    rows = {row["sensor_id"]: row for row in listing["items"]}
    assert rows["soil-01"]["last_reading"]["value1"] == 44
    assert rows["soil-01"]["device_name"] == "Gateway 1"
    assert rows["soil-01"]["farm_name"] == "Oasis Farm"
    assert rows["temp-01"]["last_reading"] is None
    assert rows["temp-01"]["device_name"] is None

    assert admin_client.get("/api/v1/admin/sensors/?type=temperature").data["total"] == 1
    assert admin_client.get("/api/v1/admin/sensors/?search=gateway").data["total"] == 1
    assert admin_client.get("/api/v1/admin/sensors/?device_id=gw-001").data["total"] == 1


@pytest.mark.parametrize("url", [
    "/api/v1/admin/system/metrics/",
    "/api/v1/admin/system/uptime/",
    "/api/v1/admin/logs/",
    "/api/v1/admin/audit-logs/",
    "/api/v1/admin/sensors/",
])
def test_console_endpoints_are_admin_only(moderator_client, url):
    assert moderator_client.get(url).status_code == 403
