from django.urls import re_path

from administration.consumers import AdminNotificationsConsumer
from monitoring.consumers import FarmUpdatesConsumer

websocket_urlpatterns = [
    re_path(r"^ws/admin-notifications/?$", AdminNotificationsConsumer.as_asgi()),
    re_path(r"^ws/farms/(?P<farm_id>[0-9a-fA-F-]{36})/?$", FarmUpdatesConsumer.as_asgi()),
]
