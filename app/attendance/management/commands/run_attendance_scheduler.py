from apscheduler.schedulers.blocking import BlockingScheduler
from django.conf import settings
from django.core.management.base import BaseCommand

from attendance.scheduler import SweepScheduler


class Command(BaseCommand):
    help = "Run the absence and auto-checkout sweeps until interrupted"

    def handle(self, *args, **options):
        sweeps = SweepScheduler(
            scheduler=BlockingScheduler(
                timezone=settings.TIME_ZONE,
                job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
            )
        )
        self.stdout.write(
            self.style.SUCCESS(f"Attendance sweeps scheduled every {sweeps.interval_minutes} minute(s)")
        )
        try:
            sweeps.start()
        except (KeyboardInterrupt, SystemExit):
            sweeps.stop()
            self.stdout.write("Scheduler stopped")
