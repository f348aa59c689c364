"""
PATH: orders/management/commands/expire_pending_orders.py

Expire card orders whose reservation deadline passed without payment.
Each expired order releases its held stock once.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand

from orders.services.order_service import expire_stale_orders, stale_pending_orders


class Command(BaseCommand):
    help = "Expire pending-payment orders past their reservation deadline (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None, help="Maximum orders to expire in this run.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many orders would be expired.",
        )

    def handle(self, *args, **options):
        if options["dry_run"]:
            count = stale_pending_orders().count()
            self.stdout.write(f"{count} pending order(s) would be expired.")
            return

        expired = expire_stale_orders(limit=options["limit"])
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} pending order(s)."))
