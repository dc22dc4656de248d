"""WSGI entrypoint (REST only; WebSockets need the ASGI application)."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "smartfarm_backend.settings")

application = get_wsgi_application()
