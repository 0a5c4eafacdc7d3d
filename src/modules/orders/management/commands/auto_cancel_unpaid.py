"""``orders:auto-cancel-unpaid``: run one settlement pass now."""

from datetime import timedelta

from django.core.management.base import BaseCommand

from modules.orders.settlement import build_settlement_service


class Command(BaseCommand):
    help = "Cancel orders left unpaid past ORDER_PAYMENT_TIMEOUT_MINUTES and restock."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--minutes",
            type=int,
            default=None,
            help="Override the payment timeout in minutes.",
        )

    def handle(self, *args, **options) -> None:
        minutes = options["minutes"]
        threshold = timedelta(minutes=minutes) if minutes is not None else None
        report = build_settlement_service().run_settlement_pass(threshold=threshold)

        if not report.lock_acquired:
            self.stdout.write(self.style.WARNING("Another settlement pass is running."))
            return

        self.stdout.write(
            f"Scanned {report.scanned}, cancelled {report.cancelled}, "
            f"skipped {report.skipped}, failed {report.failed}."
        )
        for error in report.errors:
            self.stderr.write(f"  {error.order_id}: {error.reason}")
        if report.truncated:
            self.stdout.write(
                self.style.WARNING("Run budget exhausted; remaining orders left.")
            )
        else:
            self.stdout.write(self.style.SUCCESS("Settlement pass complete."))
