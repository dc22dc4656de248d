import pytest
from channels.db import database_sync_to_async
from channels.layers import channel_layers
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from accounts.authentication import issue_tokens
from accounts.models import User
from administration.notifications import admin_notifications
from monitoring.models import Farm, Sensor, SensorReading
from smartfarm_backend.routing import websocket_urlpatterns
from tests.conftest import make_user

application = URLRouter(websocket_urlpatterns)


@pytest.fixture(autouse=True)
def fresh_channel_layer():
    # in-memory queues are bound to the event loop of the test that made them
    channel_layers.backends.clear()
    yield
    channel_layers.backends.clear()


@pytest.fixture
def admin_token(transactional_db):
    return issue_tokens(make_user("ws-admin@smartfarm.test", role=User.ROLE_ADMIN))["access"]


@pytest.fixture
def ws_farmer(transactional_db):
    return make_user("ws-farmer@smartfarm.test")


@pytest.fixture
def farmer_token(ws_farmer):
    return issue_tokens(ws_farmer)["access"]


@pytest.fixture
def own_farm(ws_farmer):
    farm = Farm.objects.create(name="Home Farm", owner=ws_farmer)
    Sensor.objects.create(sensor_id="ws-soil", farm=farm, type="soil_moisture", unit="%")
    return farm


@pytest.fixture
def foreign_farm(transactional_db):
    owner = make_user("ws-owner@smartfarm.test")
    farm = Farm.objects.create(name="Elsewhere", owner=owner)
    Sensor.objects.create(sensor_id="ws-elsewhere", farm=farm, type="soil_moisture", unit="%")
    return farm


@database_sync_to_async
def record_reading(sensor_id, value):
    return SensorReading.objects.create(sensor_id=sensor_id, value1=value)


@database_sync_to_async
def notify(severity, domain, title):
    return admin_notifications.create(
        type="test_event",
        severity=severity,
        domain=domain,
        title=title,
        message="Something happened",
    )


async def connected_admin(token):
    communicator = WebsocketCommunicator(application, f"/ws/admin-notifications/?token={token}")
    connected, _ = await communicator.connect()
    assert connected
    assert (await communicator.receive_json_from())["event"] == "connected"
    return communicator


@pytest.mark.django_db(transaction=True)
async def test_admin_socket_rejects_missing_token():
    communicator = WebsocketCommunicator(application, "/ws/admin-notifications/")

    connected, code = await communicator.connect()

    assert not connected
    assert code == 4401


async def test_admin_socket_rejects_farmers(farmer_token):
    communicator = WebsocketCommunicator(application, f"/ws/admin-notifications/?token={farmer_token}")

    connected, code = await communicator.connect()

    assert not connected
    assert code == 4403


async def test_admin_socket_handshake_and_ping(admin_token):
    communicator = WebsocketCommunicator(application, f"/ws/admin-notifications/?token={admin_token}")

    connected, _ = await communicator.connect()
    assert connected
    hello = await communicator.receive_json_from()
    assert hello["event"] == "connected"
    assert hello["payload"]["role"] == "admin"

    await communicator.send_json_to({"action": "subscribe", "severities": ["critical"]})
    subscribed = await communicator.receive_json_from()
    assert subscribed == {"event": "subscribed", "payload": {"severities": ["critical"], "domains": []}}

    await communicator.send_json_to({"action": "ping"})
    assert await communicator.receive_json_from() == {"event": "pong"}

    await communicator.disconnect()


async def test_admin_socket_receives_new_notifications(admin_token):
    communicator = await connected_admin(admin_token)

    created = await notify("warning", "devices", "Gateway down")

    message = await communicator.receive_json_from()
    assert message["event"] == "notification:new"
    assert message["payload"]["id"] == str(created.id)
    assert message["payload"]["title"] == "Gateway down"

    await communicator.disconnect()


async def test_subscription_drops_other_severities_and_domains(admin_token):
    communicator = await connected_admin(admin_token)
    await communicator.send_json_to({"action": "subscribe", "severities": ["critical"], "domains": ["system"]})
    await communicator.receive_json_from()

    await notify("info", "system", "Routine")
    await notify("critical", "devices", "Other domain")
    await notify("critical", "system", "Database down")

    message = await communicator.receive_json_from()
    assert message["payload"]["title"] == "Database down"
    assert await communicator.receive_nothing()

    await communicator.disconnect()


async def test_farm_socket_rejects_foreign_farm(farmer_token, foreign_farm):
    communicator = WebsocketCommunicator(application, f"/ws/farms/{foreign_farm.farm_id}/?token={farmer_token}")

    connected, code = await communicator.connect()

    assert not connected
    assert code == 4403


async def test_farm_socket_streams_only_its_farm_readings(farmer_token, own_farm, foreign_farm):
    communicator = WebsocketCommunicator(application, f"/ws/farms/{own_farm.farm_id}/?token={farmer_token}")

    connected, _ = await communicator.connect()
    assert connected
    hello = await communicator.receive_json_from()
    assert hello == {"event": "connected", "payload": {"farmId": str(own_farm.farm_id)}}

    await record_reading("ws-elsewhere", 12)
    await record_reading("ws-soil", 41.5)

    message = await communicator.receive_json_from()
    assert message["event"] == "reading:new"
    assert message["payload"]["sensor_id"] == "ws-soil"
    assert message["payload"]["value1"] == 41.5
    assert await communicator.receive_nothing()

    await communicator.disconnect()


async def test_farm_socket_accepts_uppercase_ids(farmer_token, own_farm):
    path = f"/ws/farms/{str(own_farm.farm_id).upper()}/?token={farmer_token}"
    communicator = WebsocketCommunicator(application, path)

    connected, _ = await communicator.connect()
    assert connected
    await communicator.receive_json_from()

    await record_reading("ws-soil", 38)

    message = await communicator.receive_json_from()
    assert message["payload"]["value1"] == 38

    await communicator.disconnect()
