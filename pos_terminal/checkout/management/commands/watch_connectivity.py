# checkout/management/commands/watch_connectivity.py

from __future__ import annotations

import time

from django.core.management.base import BaseCommand

from checkout.services import wiring


class Command(BaseCommand):
    help = "Probe the persistence API and replay pending sales when the station reconnects."

    def add_arguments(self, parser):
        parser.add_argument("--interval", type=int, default=30, help="Seconds between probes (default 30)")
        parser.add_argument("--once", action="store_true", help="Probe a single time and exit")

    def handle(self, *args, **options):
        interval = max(1, int(options.get("interval") or 30))
        once = bool(options.get("once"))

        monitor = wiring.build_connectivity()
        monitor.on_reconnect(lambda: self.stdout.write(self.style.SUCCESS("Reconnected: pending sales replayed.")))

        while True:
            online = monitor.probe()
            self.stdout.write(f"online={online}")

            if once:
                return
            time.sleep(interval)
