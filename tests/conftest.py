import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from accounts.models import User
from administration.alerting import alerting
from monitoring.models import Crop, Device, Farm, Sensor, Zone

PASSWORD = "Gr33nhouse-Pass!"


def make_user(email, role=User.ROLE_FARMER, status=User.STATUS_ACTIVE, **extra):
    return User.objects.create_user(
        username=email,
        email=email,
        password=PASSWORD,
        role=role,
        status=status,
        **extra,
    )


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture(autouse=True)
def fresh_state():
    """Alert dedup map and the overview cache are process-wide."""
    alerting.reset()
    cache.clear()
    yield
    alerting.reset()
    cache.clear()


@pytest.fixture
def admin_user(db):
    return make_user("admin@smartfarm.test", role=User.ROLE_ADMIN, first_name="Ada")


@pytest.fixture
def farmer(db):
    return make_user("farmer@smartfarm.test", first_name="Fatma", last_name="Ben Ali")


@pytest.fixture
def other_farmer(db):
    return make_user("neighbour@smartfarm.test")


@pytest.fixture
def moderator(db):
    return make_user("moderator@smartfarm.test", role=User.ROLE_MODERATOR)


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def farmer_client(farmer):
    return client_for(farmer)


@pytest.fixture
def other_client(other_farmer):
    return client_for(other_farmer)


@pytest.fixture
def moderator_client(moderator):
    return client_for(moderator)


@pytest.fixture
def farm(farmer):
    return Farm.objects.create(name="Oasis Farm", location="Gabes", owner=farmer)


@pytest.fixture
def zone(farm):
    return Zone.objects.create(farm=farm, name="Greenhouse A", type="greenhouse")


@pytest.fixture
def device(farm, zone):
    return Device.objects.create(device_id="gw-001", name="Gateway 1", farm=farm, zone=zone, status="online")


@pytest.fixture
def sensor(farm, zone, device):
    return Sensor.objects.create(
        sensor_id="soil-01",
        farm=farm,
        zone=zone,
        device=device,
        type="soil_moisture",
        unit="%",
        min_critical=20,
        min_warning=30,
        max_warning=70,
        max_critical=85,
    )


@pytest.fixture
def crop(farm, zone):
    return Crop.objects.create(farm=farm, zone=zone, name="Tomato", variety="Roma", status=Crop.STATUS_GROWING)
