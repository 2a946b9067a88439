# checkout/services/pending_queue.py

"""
OFFLINE PENDING-SALE QUEUE

Guarantees:
- a record holds the exact encoded body that would have been sent; the
  decoded payload is kept alongside for display only
- insertion order is replay order (first queued, first replayed)
- a record is removed only after its own confirmed success
- every change is one atomic update of the whole stored collection

Replay (per record, independently):
- send the stored body byte-for-byte, same numbering protocol as a live checkout
- success                        -> remove that record
- rejection / numbering conflict -> keep it, report for manual intervention
- network failure                -> stop the pass, keep the rest queued
- any other error                -> keep it, report it, move on
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from django.core.cache import cache
from django.utils import timezone

from checkout.services.exceptions import (
    CheckoutError,
    OfflineDuringSubmission,
    PendingSaleNotFound,
)
from checkout.services.numbering import SaleNumberResolver
from checkout.services.payload import with_sale_number
from checkout.services.persistence_client import encode_payload
from checkout.services.queue_storage import QueueStorage

logger = logging.getLogger(__name__)

REPLAY_LOCK_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class PendingSaleSummary:
    sale_number: int
    total: Any
    method_label: str
    customer_name: str | None = None
    vendor_name: str | None = None
    created_at: str = ""
    is_deferred: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "PendingSaleSummary":
        data = data or {}
        return cls(
            sale_number=int(data.get("sale_number") or 0),
            total=data.get("total", 0),
            method_label=str(data.get("method_label") or ""),
            customer_name=data.get("customer_name"),
            vendor_name=data.get("vendor_name"),
            created_at=str(data.get("created_at") or ""),
            is_deferred=bool(data.get("is_deferred", False)),
        )


@dataclass(frozen=True)
class PendingSaleRecord:
    id: str
    endpoint: str
    payload: dict
    summary: PendingSaleSummary
    idempotency_key: str | None = None
    body: str = ""

    @property
    def sale_number(self) -> int:
        return int(self.payload.get("sale_number_preassigned") or self.summary.sale_number or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "endpoint": self.endpoint,
            "payload": self.payload,
            "summary": asdict(self.summary),
            "idempotency_key": self.idempotency_key,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingSaleRecord":
        payload = dict(data.get("payload") or {})
        return cls(
            id=str(data["id"]),
            endpoint=str(data["endpoint"]),
            payload=payload,
            summary=PendingSaleSummary.from_dict(data.get("summary") or {}),
            idempotency_key=data.get("idempotency_key"),
            body=str(data.get("body") or encode_payload(payload).decode("utf-8")),
        )

    def body_bytes(self) -> bytes:
        return self.body.encode("utf-8")


@dataclass(frozen=True)
class ReplayedSale:
    record_id: str
    sale_number: int
    status: int
    data: Any = None


@dataclass(frozen=True)
class ReplayFailure:
    record_id: str
    sale_number: int
    code: str
    message: str


@dataclass
class ReplayReport:
    sent: list[ReplayedSale] = field(default_factory=list)
    failed: list[ReplayFailure] = field(default_factory=list)
    stopped_offline: bool = False
    already_running: bool = False
    remaining: int = 0

    def to_dict(self) -> dict:
        return {
            "sent": [asdict(s) for s in self.sent],
            "failed": [asdict(f) for f in self.failed],
            "stopped_offline": self.stopped_offline,
            "already_running": self.already_running,
            "remaining": self.remaining,
        }


class PendingSaleQueue:
    def __init__(self, storage: QueueStorage, *, lock_key: str = "pos_pending_sales"):
        self.storage = storage
        self.lock_key = f"{lock_key}:replay-lock"

    # -----------------------------
    # reads
    # -----------------------------

    def _decode(self, raw: list) -> list[PendingSaleRecord]:
        records = []
        for item in raw:
            try:
                records.append(PendingSaleRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("Skipping unreadable pending sale", extra={"error": str(exc)})
        return records

    def list(self) -> list[PendingSaleRecord]:
        return self._decode(self.storage.load())

    def __len__(self) -> int:
        return len(self.list())

    def get(self, record_id: str) -> PendingSaleRecord:
        for record in self.list():
            if record.id == record_id:
                return record
        raise PendingSaleNotFound(f"No pending sale with id {record_id}.")

    # -----------------------------
    # writes
    # -----------------------------

    def enqueue(
        self,
        *,
        endpoint: str,
        payload: dict,
        summary: PendingSaleSummary,
        idempotency_key: str | None = None,
        body: bytes | None = None,
    ) -> PendingSaleRecord:
        record = PendingSaleRecord(
            id=uuid.uuid4().hex,
            endpoint=endpoint,
            payload=payload,
            summary=summary,
            idempotency_key=idempotency_key,
            body=(body or encode_payload(payload)).decode("utf-8"),
        )
        self.storage.mutate(lambda items: [*items, record.to_dict()])

        logger.info(
            "Sale queued for later submission",
            extra={"record_id": record.id, "sale_number": record.sale_number, "endpoint": endpoint},
        )
        return record

    def remove(self, record_id: str) -> bool:
        removed = []

        def _drop(items: list) -> list:
            kept = []
            for item in items:
                if isinstance(item, dict) and item.get("id") == record_id:
                    removed.append(item)
                else:
                    kept.append(item)
            return kept

        self.storage.mutate(_drop)
        return bool(removed)

    # -----------------------------
    # replay
    # -----------------------------

    def _replay_record(self, record: PendingSaleRecord, resolver: SaleNumberResolver) -> ReplayedSale:
        stored_number = record.sale_number

        def build_payload(n: int) -> dict | bytes:
            if n == stored_number:
                return record.body_bytes()
            return with_sale_number(json.loads(record.body), n)

        attempt = resolver.submit(
            endpoint=record.endpoint,
            build_payload=build_payload,
            provisional=stored_number,
            idempotency_key=record.idempotency_key,
        )
        self.remove(record.id)
        return ReplayedSale(
            record_id=record.id,
            sale_number=attempt.sale_number,
            status=attempt.response.status,
            data=attempt.response.data,
        )

    def replay(self, resolver: SaleNumberResolver) -> ReplayReport:
        report = ReplayReport()

        if not cache.add(self.lock_key, timezone.now().isoformat(), REPLAY_LOCK_TIMEOUT_SECONDS):
            report.already_running = True
            report.remaining = len(self)
            return report

        try:
            for record in self.list():
                try:
                    report.sent.append(self._replay_record(record, resolver))
                except OfflineDuringSubmission:
                    report.stopped_offline = True
                    logger.info("Replay stopped: persistence API unreachable", extra={"record_id": record.id})
                    break
                except CheckoutError as exc:
                    logger.warning(
                        "Pending sale replay rejected",
                        extra={"record_id": record.id, "code": exc.code, "error": exc.message},
                    )
                    report.failed.append(
                        ReplayFailure(
                            record_id=record.id,
                            sale_number=record.sale_number,
                            code=exc.code,
                            message=exc.message,
                        )
                    )
                except Exception as exc:
                    logger.exception("Pending sale replay failed", extra={"record_id": record.id})
                    report.failed.append(
                        ReplayFailure(
                            record_id=record.id,
                            sale_number=record.sale_number,
                            code="REPLAY_FAILED",
                            message=str(exc) or exc.__class__.__name__,
                        )
                    )
        finally:
            cache.delete(self.lock_key)

        report.remaining = len(self)
        logger.info(
            "Pending sale replay finished",
            extra={"sent": len(report.sent), "failed": len(report.failed), "remaining": report.remaining},
        )
        return report

    def replay_one(self, record_id: str, resolver: SaleNumberResolver) -> ReplayedSale:
        """Manual retry of one record; errors propagate to the caller."""
        return self._replay_record(self.get(record_id), resolver)


def build_summary(
    *,
    sale_number: int,
    total,
    method_label: str,
    customer_name: str | None,
    vendor_name: str | None,
    is_deferred: bool,
    now: datetime | None = None,
) -> PendingSaleSummary:
    return PendingSaleSummary(
        sale_number=int(sale_number),
        total=total,
        method_label=method_label,
        customer_name=customer_name,
        vendor_name=vendor_name,
        created_at=(now or timezone.now()).isoformat(),
        is_deferred=is_deferred,
    )
