"""
WEBSOCKET BROADCAST HELPERS
Pushes entity changes to channel-layer groups once the surrounding
transaction has committed.
"""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)


def farm_group(farm_id):
    return f"farm_{farm_id}"


def group_send_on_commit(group, message):
    layer = get_channel_layer()
    if layer is None:
        return

    def send():
        try:
            async_to_sync(layer.group_send)(group, message)
        except Exception:
            # A dead channel layer must not break the request that saved the data
            logger.exception("Broadcast to %s failed", group)

    transaction.on_commit(send)


def broadcast_to_farm(farm_id, event, payload):
    """Consumers receive {"type": "farm.event", "event": ..., "payload": ...}."""
    group_send_on_commit(
        farm_group(farm_id),
        {"type": "farm.event", "event": event, "payload": payload},
    )
