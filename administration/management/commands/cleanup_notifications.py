from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from administration.models import AdminNotification
from administration.notifications import admin_notifications


class Command(BaseCommand):
    help = "Delete resolved admin notifications older than the retention period"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=settings.NOTIFICATION_RETENTION_DAYS,
            help="Retention in days (default: NOTIFICATION_RETENTION_DAYS)",
        )

    def handle(self, *args, **options):
        days = options["days"]
        if days < 1:
            raise CommandError("--days must be at least 1")

        before = AdminNotification.objects.count()
        deleted = admin_notifications.cleanup_old_resolved(days=days)

        self.stdout.write(f"Admin notifications before: {before}, after: {before - deleted}")
        self.stdout.write(self.style.SUCCESS(
            f"{deleted} resolved notification(s) older than {days} days deleted"
        ))
