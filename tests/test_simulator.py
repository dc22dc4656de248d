import random
from datetime import datetime
from unittest import mock

from simulator.simulator import (
    PROFILES,
    Anomaly,
    FarmSimulator,
    SensorState,
    diurnal_value,
    sensor_kind,
)

NOON = datetime(2024, 6, 1, 12, 0)


def test_sensor_kind():
    assert sensor_kind("soil_moisture") == "moisture"
    assert sensor_kind("Air Temperature") == "temperature"
    assert sensor_kind("humidity") == "humidity"
    assert sensor_kind("ph") is None


def test_temperature_peaks_in_the_afternoon():
    profile = PROFILES["temperature"]
    afternoon = diurnal_value(profile, datetime(2024, 6, 1, 15, 0))
    night = diurnal_value(profile, datetime(2024, 6, 1, 3, 0))

    assert afternoon == profile.mean + profile.amplitude
    assert night < profile.mean


def test_sudden_drop_then_recovery():
    rng = random.Random(1)
    state = SensorState("soil-01", PROFILES["moisture"])
    baseline = state.next_value(NOON, rng)

    state.inject(Anomaly.SUDDEN_DROP, steps=1)
    dropped = state.next_value(NOON, rng)
    recovered = state.next_value(NOON, rng)

    assert dropped < baseline * 0.5
    assert recovered > baseline * 0.8
    assert state.anomaly is None


def test_stuck_sensor_repeats_last_value():
    rng = random.Random(2)
    state = SensorState("temp-01", PROFILES["temperature"])
    last = state.next_value(NOON, rng)

    state.inject(Anomaly.STUCK, steps=3)

    assert [state.next_value(NOON, rng) for _ in range(3)] == [last, last, last]


def test_drift_grows_each_step():
    rng = random.Random(3)
    state = SensorState("hum-01", PROFILES["humidity"])
    state.inject(Anomaly.DRIFT, steps=3)

    values = [state.next_value(NOON, rng) for _ in range(3)]

    assert values[0] < values[1] < values[2]


def test_values_are_clamped():
    state = SensorState("hum-01", PROFILES["humidity"])
    state.inject(Anomaly.SPIKE, steps=1)

    assert state.next_value(datetime(2024, 6, 1, 5, 0), random.Random(4)) <= 100


def test_login_sets_bearer_header_and_readings_are_posted():
    session = mock.Mock()
    session.headers = {}
    session.post.side_effect = [
        mock.Mock(status_code=200, json=lambda: {"access": "tok"}),
        mock.Mock(status_code=201),
    ]
    session.get.return_value = mock.Mock(json=lambda: [{"sensor_id": "soil-01", "type": "soil_moisture"}])

    simulator = FarmSimulator("http://api", "f@x.io", "pw", session=session, rng=random.Random(5))

    assert simulator.login()
    assert session.headers["Authorization"] == "Bearer tok"
    assert simulator.load_sensors() == ["soil-01"]
    assert simulator.cycle(moment=NOON) == 1

    url, = session.post.call_args.args
    assert url == "http://api/api/v1/sensor-readings/"
    assert session.post.call_args.kwargs["json"]["sensor_id"] == "soil-01"


def test_failed_login():
    session = mock.Mock()
    session.post.return_value = mock.Mock(status_code=401)

    assert not FarmSimulator("http://api", "f@x.io", "bad", session=session).login()
