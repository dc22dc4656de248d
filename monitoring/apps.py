import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class MonitoringConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "monitoring"

    def ready(self):
        # Import signals to register them
        import monitoring.signals  # noqa: F401
        logger.debug("Reading signals registered")
