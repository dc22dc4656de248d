from django.apps import AppConfig


class AdministrationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "administration"

    def ready(self):
        # Connects the platform_event receiver
        import administration.alerting  # noqa: F401
