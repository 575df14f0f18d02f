import time

from django.conf import settings
from django.core.management.base import BaseCommand

from lms.services.batch_scheduler import reconcile_all_batches


class Command(BaseCommand):
    help = "Move course batches to enrolling, ongoing or completed according to their dates"

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep running, reconciling every --interval seconds",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=None,
            help="Seconds between runs with --loop (defaults to BATCH_SCHEDULER_INTERVAL_SECONDS)",
        )

    def handle(self, *args, **options):
        loop = options.get("loop")
        interval = options.get("interval") or settings.BATCH_SCHEDULER_INTERVAL_SECONDS

        while True:
            self.run_once()
            if not loop:
                break
            time.sleep(interval)

    def run_once(self):
        summary = reconcile_all_batches()
        if summary.lock_held:
            self.stdout.write(self.style.WARNING("Another batch status update is running; nothing done."))
            return summary

        for label, batch_ids in (
            ("enrolling", summary.enrolling),
            ("ongoing", summary.ongoing),
            ("completed", summary.completed),
        ):
            for batch_id in batch_ids:
                self.stdout.write(f"  - {batch_id} -> {label}")

        self.stdout.write(f"Skipped batches: {summary.skipped}")
        self.stdout.write(self.style.SUCCESS(f"Batches updated: {summary.changed}"))
        return summary
