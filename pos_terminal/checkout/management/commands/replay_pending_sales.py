# checkout/management/commands/replay_pending_sales.py

from __future__ import annotations

from django.core.management.base import BaseCommand

from checkout.services import wiring
from checkout.services.exceptions import CheckoutError, OfflineDuringSubmission
from checkout.services.numbering import SaleNumberResolver


class Command(BaseCommand):
    help = "Replay sales queued while the station was offline (insertion order)."

    def add_arguments(self, parser):
        parser.add_argument("--list", action="store_true", help="Only list pending sales, send nothing")
        parser.add_argument("--id", dest="record_id", help="Replay a single pending sale by id")

    def _list(self, queue):
        records = queue.list()
        self.stdout.write(self.style.MIGRATE_HEADING(f"Pending sales: {len(records)}"))
        for record in records:
            s = record.summary
            self.stdout.write(
                f"{record.id}  #{record.sale_number}  {s.total}  {s.method_label}"
                f"  {s.customer_name or '-'}  {s.created_at}  -> {record.endpoint}"
            )

    def handle(self, *args, **options):
        queue = wiring.build_queue()

        if options.get("list"):
            self._list(queue)
            return

        client = wiring.build_client()

        record_id = options.get("record_id")
        if record_id:
            try:
                sent = queue.replay_one(record_id, SaleNumberResolver(client=client))
            except OfflineDuringSubmission as exc:
                self.stderr.write(self.style.WARNING(f"Still offline: {exc.message}"))
                raise SystemExit(2)
            except CheckoutError as exc:
                self.stderr.write(self.style.ERROR(f"{exc.code}: {exc.message}"))
                raise SystemExit(1)

            self.stdout.write(self.style.SUCCESS(f"SENT {sent.record_id} as #{sent.sale_number}"))
            return

        report = wiring.replay_pending(client=client, queue=queue)

        if report.already_running:
            self.stdout.write(self.style.WARNING("Another replay is already running."))
            return

        for sent in report.sent:
            self.stdout.write(f"SENT   {sent.record_id} as #{sent.sale_number}")
        for failed in report.failed:
            self.stdout.write(self.style.ERROR(f"FAILED {failed.record_id} #{failed.sale_number}: {failed.message}"))

        if report.stopped_offline:
            self.stdout.write(self.style.WARNING("Stopped: persistence API unreachable."))

        self.stdout.write(
            self.style.SUCCESS(
                f"Done. sent={len(report.sent)} failed={len(report.failed)} remaining={report.remaining}"
            )
        )

        if report.failed:
            raise SystemExit(1)
