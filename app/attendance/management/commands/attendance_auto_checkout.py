from django.core.management.base import BaseCommand, CommandError

from attendance.services.auto_checkout import auto_checkout_ended_events
from organizations.models import Organization


class Command(BaseCommand):
    help = "Check out open check-ins of recently ended events at the event end time"

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

        closed = auto_checkout_ended_events(organization=organization, lookback_minutes=options["lookback_minutes"])
        self.stdout.write(self.style.SUCCESS(f"Checked out {closed} open check-in(s)"))
