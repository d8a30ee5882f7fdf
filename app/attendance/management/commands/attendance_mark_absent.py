from django.core.management.base import BaseCommand, CommandError

from attendance.services.absence_sweep import mark_absent_for_ended_events
from organizations.models import Organization


class Command(BaseCommand):
    help = "Create ABSENT check-ins for athletes who missed recently ended events"

    def add_arguments(self, parser):
        parser.add_argument("--lookback-minutes", type=int, default=None)
        parser.add_argument("--organization", help="Organization code; all organizations when omitted")

    def handle(self, *args, **options):
        organization = None
        code = (options.get("organization") or "").strip()
        if code:
            organization = Organization.objects.filter(code=code).first()
            if organization is None:
                raise CommandError(f"Unknown organization '{code}'")

        created = mark_absent_for_ended_events(organization=organization, lookback_minutes=options["lookback_minutes"])
        self.stdout.write(self.style.SUCCESS(f"Created {created} ABSENT record(s)"))
