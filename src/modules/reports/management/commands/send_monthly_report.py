"""Send the monthly report for the month before ``--today`` (default: now)."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from modules.reports.mail import send_monthly_report


class Command(BaseCommand):
    help = "E-mail last month's sales report to staff users."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--today",
            default=None,
            help="Pretend today is this ISO date (YYYY-MM-DD).",
        )

    def handle(self, *args, **options) -> None:
        today = None
        if options["today"]:
            try:
                today = date.fromisoformat(options["today"])
            except ValueError as exc:
                raise CommandError(f"Invalid --today: {options['today']}") from exc

        result = send_monthly_report(today=today)
        self.stdout.write(
            f"Report {result['period']}: sent {result['sent']}, failed {result['failed']}."
        )
        if not result["sent"] and not result["failed"]:
            self.stdout.write(self.style.WARNING("No staff recipients."))
        else:
            self.stdout.write(self.style.SUCCESS("Monthly report sent."))
