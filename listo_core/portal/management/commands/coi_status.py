from django.core.management.base import BaseCommand
from django.utils import timezone
from django.utils.dateparse import parse_date

from portal.models import PrequalStatus
from portal.prequal import REMINDER_ACTIVE, REMINDER_EXPIRED, REMINDER_EXPIRING, coi_reminder_state


class Command(BaseCommand):
    help = "List users whose certificate of insurance is missing, expired or expiring soon."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            help="Evaluate as of this ISO date instead of today.",
        )
        parser.add_argument(
            "--include-active",
            action="store_true",
            help="Also list users whose certificate is active.",
        )

    def handle(self, *args, **options):
        today = timezone.localdate()
        if options.get("date"):
            today = parse_date(options["date"])
            if today is None:
                self.stderr.write(self.style.ERROR("Use an ISO date such as 2025-01-31."))
                return

        counts = {}
        for status in PrequalStatus.objects.select_related("user").order_by("user__username"):
            state = coi_reminder_state(status, today)
            counts[state] = counts.get(state, 0) + 1
            if state == REMINDER_ACTIVE and not options["include_active"]:
                continue
            expires = status.coi_expires_on
            line = f"{status.user.get_username():<30} {state:<9} {expires.isoformat() if expires else '-'}"
            if state == REMINDER_EXPIRED:
                self.stdout.write(self.style.ERROR(line))
            elif state == REMINDER_EXPIRING:
                self.stdout.write(self.style.WARNING(line))
            else:
                self.stdout.write(line)

        summary = ", ".join(f"{state}: {count}" for state, count in sorted(counts.items())) or "no users"
        self.stdout.write(self.style.SUCCESS(f"COI status as of {today.isoformat()}: {summary}"))
