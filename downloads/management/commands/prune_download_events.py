from __future__ import annotations

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from downloads.models import DownloadEvent


class Command(BaseCommand):
    help = "Delete DownloadEvent audit rows older than N days (default 180)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=180,
            help="Delete events older than this many days (default: 180).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show how many rows would be deleted without deleting them.",
        )
        parser.add_argument(
            "--chunk",
            type=int,
            default=5000,
            help="Delete in chunks of this size to avoid long locks (default: 5000).",
        )

    def handle(self, *args, **options):
        days: int = options["days"]
        dry_run: bool = options["dry_run"]
        chunk: int = options["chunk"]

        if days < 1:
            raise CommandError("--days must be at least 1.")
        if chunk < 1:
            raise CommandError("--chunk must be at least 1.")

        cutoff = timezone.now() - timedelta(days=days)

        qs = DownloadEvent.objects.filter(created_at__lt=cutoff).order_by("id")
        total = qs.count()

        if total == 0:
            self.stdout.write(self.style.SUCCESS("No download events to prune."))
            return

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    f"[DRY RUN] Would delete {total} download events older than {days} days (cutoff={cutoff})."
                )
            )
            return

        deleted = 0
        while True:
            ids = list(qs.values_list("id", flat=True)[:chunk])
            if not ids:
                break
            DownloadEvent.objects.filter(id__in=ids).delete()
            deleted += len(ids)
            self.stdout.write(f"Deleted {deleted}/{total}...")

        self.stdout.write(
            self.style.SUCCESS(f"Pruned {deleted} download events older than {days} days (cutoff={cutoff}).")
        )
