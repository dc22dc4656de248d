import logging

from asgiref.sync import async_to_sync
from channels.generic.websocket import JsonWebsocketConsumer

from accounts.authentication import user_from_scope
from .permissions import can_access_farm
from .realtime import farm_group

logger = logging.getLogger(__name__)


class FarmUpdatesConsumer(JsonWebsocketConsumer):
    """
    ws/farms/<farm_id>/
    Live readings (reading:new) and device status changes (device:status)
    for one farm.
    """
    group = None

    def connect(self):
        # broadcasts address the group by the lowercase UUID
        farm_id = self.scope["url_route"]["kwargs"]["farm_id"].lower()
        user = user_from_scope(self.scope)
        if user is None:
            self.close(code=4401)
            return
        if not can_access_farm(user, farm_id):
            logger.info("Farm socket rejected for %s on farm %s", user.email, farm_id)
            self.close(code=4403)
            return

        self.group = farm_group(farm_id)
        async_to_sync(self.channel_layer.group_add)(self.group, self.channel_name)
        self.accept()
        self.send_json({"event": "connected", "payload": {"farmId": farm_id}})

    def disconnect(self, code):
        if self.group:
            async_to_sync(self.channel_layer.group_discard)(self.group, self.channel_name)

    def farm_event(self, message):
        self.send_json({"event": message["event"], "payload": message["payload"]})
