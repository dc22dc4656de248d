from unittest import mock

import pytest
from django.db import DatabaseError

from administration.alerting import AdminAlertingService
from administration.events import emit
from administration.models import AdminNotification
from administration.notifications import admin_notifications


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return AdminAlertingService(window_seconds=300, clock=clock)


def test_key_is_suppressed_inside_window(service, clock):
    assert service.should_alert("sensor_delay_soil-01")
    clock.now += 299
    assert not service.should_alert("sensor_delay_soil-01")
    clock.now += 2
    assert service.should_alert("sensor_delay_soil-01")


def test_keys_are_independent(service):
    assert service.should_alert("a")
    assert service.should_alert("b")
    assert not service.should_alert("a")


def test_old_entries_are_purged(service, clock):
    service.should_alert("old")
    clock.now += 601
    service.should_alert("new")

    assert "old" not in service._recent
    assert "new" in service._recent


@pytest.mark.django_db
def test_unknown_event_is_ignored(service):
    assert service.handle("something.else", foo=1) is None
    assert not AdminNotification.objects.exists()


@pytest.mark.django_db
def test_unkeyed_events_always_alert(service):
    service.handle("farm.created", farmId="f-1", farmName="A")
    service.handle("farm.created", farmId="f-1", farmName="A")

    assert AdminNotification.objects.filter(type="farm_created").count() == 2


@pytest.mark.django_db
def test_database_unhealthy_is_pinned_critical(service, clock):
    first = service.handle("database.unhealthy", error="connection refused")
    second = service.handle("database.unhealthy", error="connection refused")

    assert first.severity == "critical"
    assert first.pinned_until_resolved
    assert first.context["error"] == "connection refused"
    assert second is None


@pytest.mark.django_db
def test_registered_active_user_is_info(service):
    notification = service.handle("user.registered", userId="7", email="a@b.c", role="moderator", status="active")

    assert notification.title == "New User Registered"
    assert notification.severity == "info"


@pytest.mark.django_db
def test_weekly_summary(service):
    notification = service.handle(
        "platform.weekly_summary",
        newUsers=3, newFarms=1, sensorReadings=12500, actionsExecuted=40,
        weekStart="2024-05-01", weekEnd="2024-05-08",
    )

    assert notification.severity == "success"
    assert "12,500 sensor readings" in notification.message


@pytest.mark.django_db
def test_broken_event_payload_does_not_raise():
    # missing required fields: the receiver logs and carries on
    emit(None, "sensor.critical", sensorId="x")

    assert not AdminNotification.objects.exists()


@pytest.mark.django_db
def test_emit_reaches_the_global_service():
    emit(None, "health.degraded", service="channel-layer", details="slow")
    emit(None, "health.degraded", service="channel-layer", details="slow")

    assert AdminNotification.objects.filter(type="service_degraded").count() == 1


@pytest.mark.django_db
def test_failed_create_does_not_suppress_the_next_alert(service):
    with mock.patch.object(admin_notifications, "create", side_effect=DatabaseError("disk full")):
        with pytest.raises(DatabaseError):
            service.handle("health.degraded", service="mqtt", details="timeouts")

    notification = service.handle("health.degraded", service="mqtt", details="timeouts")

    assert notification is not None
    assert AdminNotification.objects.filter(type="service_degraded").count() == 1


@pytest.mark.django_db
def test_open_reading_delay_suppresses_a_new_one(clock):
    first_process = AdminAlertingService(window_seconds=300, clock=clock)
    second_process = AdminAlertingService(window_seconds=300, clock=clock)

    assert first_process.handle("sensor.reading_delay", sensorId="soil-01", lastReading=None)
    assert second_process.handle("sensor.reading_delay", sensorId="soil-01", lastReading=None) is None
    assert second_process.handle("sensor.reading_delay", sensorId="soil-02", lastReading=None)
