"""
Smart farm sensor simulator
Logs in with a user account, loads the sensors that account can see and posts
readings that follow a day/night cycle. Anomalies can be injected to exercise
the alerting pipeline.

    python -m simulator.simulator quick
    python -m simulator.simulator run --minutes 5 --interval 10 --anomaly-rate 0.05
    python -m simulator.simulator anomaly --sensor soil-01 --kind sudden_drop --steps 3
"""
import argparse
import logging
import math
import os
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import requests

logger = logging.getLogger("simulator")


class Anomaly(Enum):
    SUDDEN_DROP = "sudden_drop"
    SPIKE = "spike"
    DRIFT = "drift"
    STUCK = "stuck"
    NOISY = "noisy"


@dataclass(frozen=True)
class Profile:
    """Daily cycle of one sensor kind: mean +/- amplitude, peak at peak_hour."""
    mean: float
    amplitude: float
    peak_hour: float
    noise: float
    low: float
    high: float


PROFILES = {
    "temperature": Profile(mean=23, amplitude=6, peak_hour=15, noise=0.4, low=-10, high=55),
    "humidity": Profile(mean=62, amplitude=12, peak_hour=5, noise=1.0, low=0, high=100),
    "moisture": Profile(mean=58, amplitude=4, peak_hour=7, noise=0.6, low=0, high=100),
}
DEFAULT_PROFILE = Profile(mean=50, amplitude=5, peak_hour=12, noise=1.0, low=0, high=100)


def sensor_kind(sensor_type):
    sensor_type = (sensor_type or "").lower()
    if "moisture" in sensor_type:
        return "moisture"
    if "temp" in sensor_type:
        return "temperature"
    if "humid" in sensor_type:
        return "humidity"
    return None


def diurnal_value(profile, moment):
    hours = moment.hour + moment.minute / 60
    phase = 2 * math.pi * (hours - profile.peak_hour) / 24
    return profile.mean + profile.amplitude * math.cos(phase)


@dataclass
class SensorState:
    sensor_id: str
    profile: Profile
    anomaly: Anomaly = None
    remaining: int = 0
    drift: float = 0.0
    last_value: float = None
    history: list = field(default_factory=list)

    def inject(self, anomaly, steps):
        self.anomaly = anomaly
        self.remaining = steps
        self.drift = 0.0
        logger.info("Anomaly %s on %s for %d step(s)", anomaly.value, self.sensor_id, steps)

    def apply_anomaly(self, value, rng):
        if self.anomaly is None or self.remaining <= 0:
            self.anomaly = None
            return value
        self.remaining -= 1
        if self.anomaly is Anomaly.SUDDEN_DROP:
            value *= 0.35
        elif self.anomaly is Anomaly.SPIKE:
            value *= 1.7
        elif self.anomaly is Anomaly.DRIFT:
            self.drift += self.profile.amplitude * 0.5
            value += self.drift
        elif self.anomaly is Anomaly.STUCK and self.last_value is not None:
            value = self.last_value
        elif self.anomaly is Anomaly.NOISY:
            value += rng.gauss(0, self.profile.amplitude * 1.5)
        return value

    def next_value(self, moment, rng):
        stuck = self.anomaly is Anomaly.STUCK and self.remaining > 0 and self.last_value is not None
        value = diurnal_value(self.profile, moment)
        if not stuck:
            value += rng.gauss(0, self.profile.noise)
        value = self.apply_anomaly(value, rng)
        value = round(min(self.profile.high, max(self.profile.low, value)), 2)
        self.last_value = value
        self.history.append(value)
        return value


class FarmSimulator:
    def __init__(self, base_url="http://localhost:8000", email=None, password=None, timeout=5,
                 session=None, rng=None):
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.password = password
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rng = rng or random.Random()
        self.states = {}

    def url(self, path):
        return f"{self.base_url}/api/v1/{path.lstrip('/')}"

    def login(self):
        """JWT login, the token is sent as a Bearer header afterwards"""
        try:
            response = self.session.post(
                self.url("auth/login/"),
                json={"email": self.email, "password": self.password},
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError:
            logger.error("Cannot reach %s", self.base_url)
            return False

        if response.status_code != 200:
            logger.error("Login failed for %s: HTTP %s", self.email, response.status_code)
            return False
        self.session.headers["Authorization"] = f"Bearer {response.json()['access']}"
        logger.info("Authenticated as %s", self.email)
        return True

    def load_sensors(self):
        response = self.session.get(self.url("sensors/"), timeout=self.timeout)
        response.raise_for_status()
        for sensor in response.json():
            profile = PROFILES.get(sensor_kind(sensor.get("type")), DEFAULT_PROFILE)
            self.states[sensor["sensor_id"]] = SensorState(sensor["sensor_id"], profile)
        logger.info("%d sensor(s) available", len(self.states))
        return list(self.states)

    def send_reading(self, sensor_id, value):
        try:
            response = self.session.post(
                self.url("sensor-readings/"),
                json={"sensor_id": sensor_id, "value1": value},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("Reading for %s not sent: %s", sensor_id, exc)
            return False
        if response.status_code not in (200, 201):
            logger.warning("Reading for %s rejected: HTTP %s", sensor_id, response.status_code)
            return False
        return True

    def maybe_inject(self, state, rate):
        if rate and state.anomaly is None and self.rng.random() < rate:
            state.inject(self.rng.choice(list(Anomaly)), steps=self.rng.randint(1, 5))

    def cycle(self, moment=None, anomaly_rate=0.0):
        """One reading per sensor; returns how many were accepted"""
        moment = moment or datetime.now()
        sent = 0
        for sensor_id, state in self.states.items():
            self.maybe_inject(state, anomaly_rate)
            if self.send_reading(sensor_id, state.next_value(moment, self.rng)):
                sent += 1
        return sent

    def quick_test(self):
        sent = self.cycle()
        logger.info("%d/%d readings sent", sent, len(self.states))
        return sent > 0

    def run(self, minutes=2, interval=10, anomaly_rate=0.0):
        """Continuous simulation, one reading per sensor every `interval` seconds"""
        deadline = time.monotonic() + minutes * 60
        count = 0
        try:
            while time.monotonic() < deadline:
                count += self.cycle(anomaly_rate=anomaly_rate)
                logger.info("%d readings so far", count)
                time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("Stopped manually")
        logger.info("Simulation finished: %d readings", count)
        return count

    def inject_anomaly(self, sensor_id, anomaly, steps=3, interval=2):
        state = self.states.get(sensor_id)
        if state is None:
            logger.error("Unknown sensor %s", sensor_id)
            return False
        state.inject(anomaly, steps)
        ok = True
        for step in range(steps):
            ok = self.send_reading(sensor_id, state.next_value(datetime.now(), self.rng)) and ok
            if step < steps - 1:
                time.sleep(interval)
        logger.info("Anomaly %s on %s: %s", anomaly.value, sensor_id, state.history[-steps:])
        return ok


def build_parser():
    parser = argparse.ArgumentParser(description="Smart farm sensor simulator")
    parser.add_argument("--url", default=os.getenv("SIMULATOR_URL", "http://localhost:8000"))
    parser.add_argument("--email", default=os.getenv("SIMULATOR_EMAIL", "farmer@smartfarm.local"))
    parser.add_argument("--password", default=os.getenv("SIMULATOR_PASSWORD", ""))
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("quick", help="one reading per sensor")
    commands.add_parser("login", help="check the credentials only")

    run = commands.add_parser("run", help="continuous simulation")
    run.add_argument("--minutes", type=float, default=2)
    run.add_argument("--interval", type=float, default=10)
    run.add_argument("--anomaly-rate", type=float, default=0.0,
                     help="probability per reading of starting a random anomaly")

    anomaly = commands.add_parser("anomaly", help="inject an anomaly on one sensor")
    anomaly.add_argument("--sensor", required=True)
    anomaly.add_argument("--kind", choices=[a.value for a in Anomaly], default=Anomaly.SUDDEN_DROP.value)
    anomaly.add_argument("--steps", type=int, default=3)
    return parser


def main(argv=None):
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(message)s")
    args = build_parser().parse_args(argv)

    simulator = FarmSimulator(args.url, args.email, args.password)
    if not simulator.login():
        return 1
    if args.command == "login":
        return 0

    simulator.load_sensors()
    if args.command == "quick":
        return 0 if simulator.quick_test() else 1
    if args.command == "run":
        simulator.run(minutes=args.minutes, interval=args.interval, anomaly_rate=args.anomaly_rate)
        return 0
    return 0 if simulator.inject_anomaly(args.sensor, Anomaly(args.kind), steps=args.steps) else 1


if __name__ == "__main__":
    raise SystemExit(main())
