import logging

from asgiref.sync import async_to_sync
from channels.generic.websocket import JsonWebsocketConsumer

from accounts.authentication import user_from_scope
from .notifications import ADMIN_GROUP

logger = logging.getLogger(__name__)

CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403


class AdminNotificationsConsumer(JsonWebsocketConsumer):
    """
    ws/admin-notifications/
    Pushes notification:new / notification:updated / notification:bulk-updated
    and system:status to admins and moderators.
    Clients can narrow the stream with
        {"action": "subscribe", "severities": [...], "domains": [...]}
    """
    joined = False

    def connect(self):
        self.user = user_from_scope(self.scope)
        if self.user is None:
            logger.info("Admin socket rejected: missing or invalid token")
            self.close(code=CLOSE_UNAUTHORIZED)
            return
        if not (self.user.is_admin or self.user.is_moderator):
            logger.info("Admin socket rejected for %s: role %s", self.user.email, self.user.role)
            self.close(code=CLOSE_FORBIDDEN)
            return

        self.severities = None
        self.domains = None
        async_to_sync(self.channel_layer.group_add)(ADMIN_GROUP, self.channel_name)
        self.joined = True
        self.accept()
        self.send_json({
            "event": "connected",
            "payload": {"userId": self.user.id, "role": self.user.role},
        })
        logger.info("Admin socket connected: %s", self.user.email)

    def disconnect(self, code):
        if self.joined:
            async_to_sync(self.channel_layer.group_discard)(ADMIN_GROUP, self.channel_name)

    def receive_json(self, content, **kwargs):
        action = content.get("action")
        if action == "subscribe":
            self.severities = set(content.get("severities") or []) or None
            self.domains = set(content.get("domains") or []) or None
            self.send_json({
                "event": "subscribed",
                "payload": {
                    "severities": sorted(self.severities or []),
                    "domains": sorted(self.domains or []),
                },
            })
        elif action == "ping":
            self.send_json({"event": "pong"})
        else:
            self.send_json({"event": "error", "payload": {"detail": f"Unknown action: {action}"}})

    def admin_notification(self, message):
        payload = message.get("payload") or {}
        if self.severities and payload.get("severity") and payload["severity"] not in self.severities:
            return
        if self.domains and payload.get("domain") and payload["domain"] not in self.domains:
            return
        self.send_json({"event": message["event"], "payload": payload})
