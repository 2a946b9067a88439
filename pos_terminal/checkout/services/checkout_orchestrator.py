# checkout/services/checkout_orchestrator.py

"""
CHECKOUT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Finalize a SaleDraft against the remote persistence API.
- Keep the cashier working when the network is gone (offline queue).

State machine (one instance of history per attempt):
    IDLE -> VALIDATING -> CLASSIFIED -> SUBMITTING -> {SUCCEEDED | QUEUED | REJECTED | FATAL}

Hard rules:
- Validation failures never touch the network; draft preserved.
- Known offline -> queue without any network I/O.
- Network failure while sending -> queue the exact payload being sent.
- 409 retry stays inside SUBMITTING (see numbering.py).
- SUCCEEDED / QUEUED clear the draft. REJECTED / FATAL keep it.
- Printer and cash drawer are best-effort after SUCCEEDED.
- No exception escapes finalize(); the outcome carries it.

Notes:
- The core assumes serialized invocation per session. The API layer holds a
  per-user lock around finalize().
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from django.utils import timezone

from checkout.services.allocation import AllocationCheck, validate_allocation
from checkout.services.classifier import SubmissionKind, classify, endpoint_for
from checkout.services.connectivity import ConnectivityMonitor
from checkout.services.draft import SaleDraft
from checkout.services.exceptions import (
    CheckoutError,
    CheckoutValidationError,
    EmptyCartError,
    NumberingConflictUnresolved,
    NumberingRefreshError,
    OfflineDuringSubmission,
    PersistenceRejected,
    SaleNumberUnavailable,
)
from checkout.services.money import money_to_wire
from checkout.services.numbering import SaleNumberResolver
from checkout.services.payload import build_submission_payload, primary_method_label
from checkout.services.payment_catalog import PaymentMethodCatalog
from checkout.services.peripherals import CashDrawer, ReceiptPrinter
from checkout.services.pending_queue import PendingSaleQueue, PendingSaleRecord, build_summary
from checkout.services.persistence_client import PersistenceClient
from checkout.services.receipt import ReceiptPayload, SaleSubmissionResult, build_receipt

logger = logging.getLogger(__name__)

GENERIC_FATAL_MESSAGE = "The sale could not be registered."
QUEUED_MESSAGE = "Sale saved as pending. It will be sent when the connection returns."


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CLASSIFIED = "classified"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    QUEUED = "queued"
    REJECTED = "rejected"
    FATAL = "fatal"


TERMINAL_STATES = frozenset(
    {CheckoutState.SUCCEEDED, CheckoutState.QUEUED, CheckoutState.REJECTED, CheckoutState.FATAL}
)


@dataclass
class CheckoutOutcome:
    state: CheckoutState
    history: list[CheckoutState]
    kind: SubmissionKind | None = None
    sale_number: int | None = None
    allocation: AllocationCheck | None = None
    result: SaleSubmissionResult | None = None
    receipt: ReceiptPayload | None = None
    pending_record: PendingSaleRecord | None = None
    error: Exception | None = None
    error_code: str | None = None
    message: str = ""
    drawer_opened: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == CheckoutState.SUCCEEDED

    @property
    def queued(self) -> bool:
        return self.state == CheckoutState.QUEUED

    def to_dict(self) -> dict:
        data = {
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "kind": self.kind.value if self.kind else None,
            "sale_number": self.sale_number,
            "message": self.message,
        }
        if self.result is not None:
            data["document_number"] = self.result.document_number
            data["record_id"] = self.result.record_id
        if self.receipt is not None:
            data["receipt"] = self.receipt.to_dict()
        if self.pending_record is not None:
            data["pending_id"] = self.pending_record.id
        if self.error_code:
            data["error"] = {"code": self.error_code, "message": self.message}
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


class CheckoutOrchestrator:
    def __init__(
        self,
        *,
        catalog: PaymentMethodCatalog,
        client: PersistenceClient,
        queue: PendingSaleQueue,
        connectivity: ConnectivityMonitor,
        resolver: SaleNumberResolver | None = None,
        printer: ReceiptPrinter | None = None,
        cash_drawer: CashDrawer | None = None,
        clock: Callable[[], datetime] = timezone.now,
        key_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.catalog = catalog
        self.client = client
        self.queue = queue
        self.connectivity = connectivity
        self.resolver = resolver or SaleNumberResolver(client=client)
        self.printer = printer
        self.cash_drawer = cash_drawer
        self.clock = clock
        self.key_factory = key_factory

    # -----------------------------
    # phases
    # -----------------------------

    def _ensure_sale_number(self, draft: SaleDraft) -> int:
        if draft.sale_number and int(draft.sale_number) > 0:
            return int(draft.sale_number)
        if not self.connectivity.is_online():
            raise SaleNumberUnavailable(
                "No sale number assigned and the station is offline."
            )
        try:
            draft.sale_number = self.client.fetch_next_sale_number()
        except NumberingRefreshError as exc:
            raise SaleNumberUnavailable(
                "Could not obtain a sale number. Check the connection and try again."
            ) from exc
        return draft.sale_number

    def _validate(self, draft: SaleDraft) -> tuple[int, AllocationCheck]:
        if not draft.items:
            raise EmptyCartError()

        # allocation rules are local; check them before the counter is asked
        check = validate_allocation(total=draft.total, lines=draft.payment_lines, catalog=self.catalog)
        sale_number = self._ensure_sale_number(draft)
        return sale_number, check

    def _queue(
        self,
        outcome: CheckoutOutcome,
        draft: SaleDraft,
        *,
        endpoint: str,
        payload: dict,
        sale_number: int,
        idempotency_key: str,
        now: datetime,
    ) -> CheckoutOutcome:
        customer_name = draft.customer.name if draft.customer else None
        summary = build_summary(
            sale_number=sale_number,
            total=money_to_wire(draft.total),
            method_label=primary_method_label(draft),
            customer_name=customer_name,
            vendor_name=draft.vendor_name,
            is_deferred=outcome.kind == SubmissionKind.DEFERRED_ORDER,
            now=now,
        )
        # storage failure here must surface: the sale is not safe yet
        record = self.queue.enqueue(
            endpoint=endpoint,
            payload=payload,
            summary=summary,
            idempotency_key=idempotency_key,
        )

        outcome.pending_record = record
        outcome.sale_number = sale_number
        outcome.message = QUEUED_MESSAGE
        outcome.history.append(CheckoutState.QUEUED)
        outcome.state = CheckoutState.QUEUED
        draft.clear()
        return outcome

    def _uses_cash(self, draft: SaleDraft, result: SaleSubmissionResult) -> bool:
        if result.has_cash_payment is not None:
            return result.has_cash_payment
        return any(
            self.catalog.is_change_eligible(line.effective_method(self.catalog))
            for line in draft.payment_lines
        )

    def _succeed(
        self,
        outcome: CheckoutOutcome,
        draft: SaleDraft,
        *,
        data,
        sale_number: int,
        now: datetime,
        document_kind: str,
    ) -> CheckoutOutcome:
        result = SaleSubmissionResult.from_response(outcome.kind, data)
        outcome.result = result
        outcome.sale_number = result.sale_number or sale_number
        outcome.history.append(CheckoutState.SUCCEEDED)
        outcome.state = CheckoutState.SUCCEEDED

        label = "Layaway" if outcome.kind == SubmissionKind.DEFERRED_ORDER else "Sale"
        outcome.message = f"{label} registered (ticket #{outcome.sale_number})."

        # sale is committed server-side; everything below is best-effort
        try:
            outcome.receipt = build_receipt(
                draft, result, self.catalog, submitted_at=now, document_kind=document_kind
            )
        except Exception:
            logger.exception("Receipt build failed", extra={"sale_number": outcome.sale_number})
            outcome.warnings.append("receipt_unavailable")

        if outcome.receipt is not None and self.printer is not None:
            try:
                self.printer.print_receipt(outcome.receipt.to_dict(), document_kind=document_kind)
            except Exception:
                logger.exception("Receipt printing failed", extra={"sale_number": outcome.sale_number})
                outcome.warnings.append("print_failed")

        if (
            self.cash_drawer is not None
            and outcome.kind == SubmissionKind.DIRECT_SALE
            and self._uses_cash(draft, result)
        ):
            try:
                outcome.drawer_opened = bool(self.cash_drawer.open())
            except Exception:
                logger.exception("Cash drawer failed", extra={"sale_number": outcome.sale_number})
            if not outcome.drawer_opened:
                outcome.warnings.append("cash_drawer_failed")

        draft.clear()
        logger.info(
            "Checkout succeeded",
            extra={
                "sale_number": outcome.sale_number,
                "document_number": result.document_number,
                "kind": outcome.kind.value,
            },
        )
        return outcome

    @staticmethod
    def _fail(outcome: CheckoutOutcome, state: CheckoutState, exc: Exception, message: str) -> CheckoutOutcome:
        outcome.error = exc
        outcome.error_code = getattr(exc, "code", "CHECKOUT_FAILED")
        outcome.message = message
        outcome.history.append(state)
        outcome.state = state
        return outcome

    # -----------------------------
    # entry point
    # -----------------------------

    def finalize(self, draft: SaleDraft, *, document_kind: str = "ticket") -> CheckoutOutcome:
        outcome = CheckoutOutcome(state=CheckoutState.IDLE, history=[CheckoutState.IDLE])

        try:
            outcome.history.append(CheckoutState.VALIDATING)
            outcome.state = CheckoutState.VALIDATING
            try:
                sale_number, check = self._validate(draft)
            except CheckoutValidationError as exc:
                logger.info("Checkout rejected by validation", extra={"code": exc.code})
                return self._fail(outcome, CheckoutState.REJECTED, exc, exc.message)

            outcome.allocation = check
            outcome.sale_number = sale_number
            outcome.kind = classify(draft.payment_lines, self.catalog)
            outcome.history.append(CheckoutState.CLASSIFIED)
            outcome.state = CheckoutState.CLASSIFIED

            endpoint = endpoint_for(outcome.kind)
            now = self.clock()
            idempotency_key = self.key_factory()

            def build_payload(n: int) -> dict:
                return build_submission_payload(draft, kind=outcome.kind, sale_number=n, now=now)

            if not self.connectivity.is_online():
                return self._queue(
                    outcome,
                    draft,
                    endpoint=endpoint,
                    payload=build_payload(sale_number),
                    sale_number=sale_number,
                    idempotency_key=idempotency_key,
                    now=now,
                )

            outcome.history.append(CheckoutState.SUBMITTING)
            outcome.state = CheckoutState.SUBMITTING
            try:
                attempt = self.resolver.submit(
                    endpoint=endpoint,
                    build_payload=build_payload,
                    provisional=sale_number,
                    idempotency_key=idempotency_key,
                )
            except OfflineDuringSubmission as exc:
                self.connectivity.mark_offline()
                return self._queue(
                    outcome,
                    draft,
                    endpoint=endpoint,
                    payload=exc.payload,
                    sale_number=exc.sale_number,
                    idempotency_key=exc.idempotency_key or idempotency_key,
                    now=now,
                )
            except PersistenceRejected as exc:
                logger.warning(
                    "Checkout rejected by persistence API",
                    extra={"status_code": exc.status_code, "detail": exc.detail},
                )
                return self._fail(outcome, CheckoutState.REJECTED, exc, exc.message)
            except NumberingConflictUnresolved as exc:
                logger.warning("Sale number conflict unresolved", extra={"sale_number": exc.sale_number})
                outcome.sale_number = exc.sale_number
                return self._fail(outcome, CheckoutState.FATAL, exc, exc.message)

            return self._succeed(
                outcome,
                draft,
                data=attempt.response.data,
                sale_number=attempt.sale_number,
                now=now,
                document_kind=document_kind,
            )

        except CheckoutError as exc:
            logger.exception("Checkout failed", extra={"code": exc.code})
            return self._fail(outcome, CheckoutState.FATAL, exc, exc.message or GENERIC_FATAL_MESSAGE)
        except Exception as exc:
            logger.exception("Unexpected checkout failure")
            return self._fail(outcome, CheckoutState.FATAL, exc, str(exc) or GENERIC_FATAL_MESSAGE)
