"""
Periodic platform scan, meant to run from cron:

    python manage.py scan_platform_health
    python manage.py scan_platform_health --weekly-summary
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db.models import Count, Max, Q
from django.utils import timezone

from administration.events import emit
from monitoring.models import ActionLog, Device, Farm, Sensor, SensorReading

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Raise admin alerts for silent sensors and orphan devices"

    def add_arguments(self, parser):
        parser.add_argument(
            "--stale-minutes",
            type=int,
            default=settings.STALE_READING_MINUTES,
            help="A sensor silent for longer than this is reported",
        )
        parser.add_argument(
            "--weekly-summary",
            action="store_true",
            help="Also send the weekly platform summary",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        delayed = self.check_reading_delays(now, options["stale_minutes"])
        orphans = self.check_orphan_devices()
        self.stdout.write(f"Delayed sensors: {delayed}")
        self.stdout.write(f"Farms with orphan devices: {orphans}")

        if options["weekly_summary"]:
            self.send_weekly_summary(now)
            self.stdout.write("Weekly summary sent")

        self.stdout.write(self.style.SUCCESS("Platform scan finished"))

    def check_reading_delays(self, now, stale_minutes):
        cutoff = now - timedelta(minutes=stale_minutes)
        sensors = (
            Sensor.objects.annotate(last_reading=Max("readings__created_at"))
            .filter(
                Q(last_reading__lt=cutoff)
                | Q(last_reading__isnull=True, created_at__lt=cutoff)
            )
        )
        count = 0
        for sensor in sensors:
            emit(
                Sensor,
                "sensor.reading_delay",
                sensorId=sensor.sensor_id,
                lastReading=sensor.last_reading,
                farmId=str(sensor.farm_id),
                zoneId=str(sensor.zone_id) if sensor.zone_id else None,
            )
            count += 1
        logger.info("%d sensor(s) silent since before %s", count, cutoff)
        return count

    def check_orphan_devices(self):
        per_farm = (
            Device.objects.filter(sensors__isnull=True)
            .values("farm_id")
            .annotate(orphans=Count("device_id"))
            .order_by()
        )
        farms = 0
        for row in per_farm:
            emit(Device, "farm.orphan_entities", type="device", count=row["orphans"], farmId=str(row["farm_id"]))
            farms += 1
        return farms

    def send_weekly_summary(self, now):
        week_start = now - timedelta(days=7)
        User = get_user_model()
        emit(
            Farm,
            "platform.weekly_summary",
            newUsers=User.objects.filter(created_at__gte=week_start).count(),
            newFarms=Farm.objects.filter(created_at__gte=week_start).count(),
            sensorReadings=SensorReading.objects.filter(created_at__gte=week_start).count(),
            actionsExecuted=ActionLog.objects.filter(created_at__gte=week_start, status="ack").count(),
            weekStart=week_start.date().isoformat(),
            weekEnd=now.date().isoformat(),
        )
