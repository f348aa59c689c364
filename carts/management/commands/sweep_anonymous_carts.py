"""
PATH: carts/management/commands/sweep_anonymous_carts.py

Delete anonymous carts past their retention window.

- Idempotent: running twice deletes nothing the second time.
- --dry-run reports the count without deleting.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand

from carts.services.cleanup import expired_anonymous_carts, sweep_expired_anonymous_carts


class Command(BaseCommand):
    help = "Delete expired anonymous carts (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many carts would be deleted.",
        )

    def handle(self, *args, **options):
        if options["dry_run"]:
            count = expired_anonymous_carts().count()
            self.stdout.write(f"{count} expired anonymous cart(s) would be deleted.")
            return

        deleted = sweep_expired_anonymous_carts()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} expired anonymous cart(s)."))
