"""Management command to expire overdue reward grants and packages."""

import time

from django.core.management.base import BaseCommand
from django.db import close_old_connections

from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.services.sweeper import ExpirySweeper


class Command(BaseCommand):
    help = "Expire reward grants and packages past their expiry (once, or periodically with --loop)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep running, sweeping every --interval seconds",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=None,
            help="Override SWEEP_INTERVAL_SECONDS setting",
        )
        parser.add_argument(
            "--max-runs",
            type=int,
            default=None,
            help="Stop after this many sweeps (with --loop)",
        )

    def handle(self, *args, **options):
        interval = options["interval"]
        if interval is None:
            interval = rewardman_settings.SWEEP_INTERVAL_SECONDS
        max_runs = options["max_runs"]
        runs = 0

        while True:
            try:
                stats = ExpirySweeper.sweep()
            except RewardmanError as exc:
                if not options["loop"]:
                    raise
                self.stderr.write(self.style.WARNING(f"Sweep skipped: {exc.message}"))
            else:
                self.stdout.write(
                    self.style.SUCCESS(
                        f"Expired {stats.grants_expired} reward(s) and {stats.packages_expired} package(s)."
                    )
                )

            runs += 1
            if not options["loop"] or (max_runs is not None and runs >= max_runs):
                break
            time.sleep(interval)
            close_old_connections()
