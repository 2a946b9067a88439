# checkout/services/allocation.py

"""
PAYMENT ALLOCATION MODEL

Purpose:
- Hold the payment lines that cover a cart total.
- Enforce the editing rules the cashier screen relies on.
- Validate an allocation before anything is sent to the server.

Editing rules:
- exactly one line per distinct method (re-selecting a method re-selects its line)
- removing the last line re-seeds one default line for the full total

Validation rules:
- at least one line with amount > 0
- deferred and non-deferred lines never mix
- non-deferred: paid >= total; overpayment only with a change-eligible method
- deferred: paid may be < total (shortfall becomes the balance);
  every line needs a non-deferred settlement method
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from checkout.services.exceptions import (
    InsufficientOrInvalidPayment,
    MissingSettlementMethod,
    MixedPaymentKindsUnsupported,
)
from checkout.services.money import ZERO, compute_change, sum_money, to_money
from checkout.services.payment_catalog import PaymentMethodCatalog


@dataclass
class PaymentLine:
    id: int
    method: str
    amount: Decimal
    settlement_method: str | None = None

    def effective_method(self, catalog: PaymentMethodCatalog) -> str:
        if catalog.is_deferred(self.method) and self.settlement_method:
            return self.settlement_method
        return self.method


@dataclass(frozen=True)
class AllocationCheck:
    is_deferred: bool
    total: Decimal
    total_paid: Decimal
    change: Decimal
    balance: Decimal


class PaymentAllocation:
    def __init__(self, catalog: PaymentMethodCatalog, lines: list[PaymentLine] | None = None):
        self.catalog = catalog
        self.lines: list[PaymentLine] = list(lines or [])
        self.selected_id: int | None = self.lines[0].id if self.lines else None

    # -----------------------------
    # reads
    # -----------------------------

    @property
    def total_paid(self) -> Decimal:
        return sum_money(line.amount for line in self.lines)

    @property
    def selected(self) -> PaymentLine | None:
        for line in self.lines:
            if line.id == self.selected_id:
                return line
        return self.lines[0] if self.lines else None

    def find(self, line_id: int) -> PaymentLine:
        for line in self.lines:
            if line.id == line_id:
                return line
        raise KeyError(f"payment line {line_id} not found")

    def find_by_method(self, method: str) -> PaymentLine | None:
        slug = str(method or "").strip().lower()
        for line in self.lines:
            if line.method == slug:
                return line
        return None

    def _next_id(self) -> int:
        return max((line.id for line in self.lines), default=0) + 1

    # -----------------------------
    # editing
    # -----------------------------

    def seed(self, *, total) -> PaymentLine:
        """Start with a single default line covering the full total."""
        line = PaymentLine(
            id=self._next_id(),
            method=self.catalog.default_method().slug,
            amount=max(ZERO, to_money(total)),
        )
        self.lines = [line]
        self.selected_id = line.id
        return line

    def select_method(self, method: str, *, total) -> PaymentLine:
        slug = str(method or "").strip().lower()

        existing = self.find_by_method(slug)
        if existing is not None:
            self.selected_id = existing.id
            return existing

        remaining = max(ZERO, to_money(total) - self.total_paid)
        line = PaymentLine(id=self._next_id(), method=slug, amount=remaining)
        self.lines.append(line)
        self.selected_id = line.id
        return line

    def select_line(self, line_id: int) -> PaymentLine:
        line = self.find(line_id)
        self.selected_id = line.id
        return line

    def set_amount(self, line_id: int, amount) -> PaymentLine:
        line = self.find(line_id)
        value = to_money(amount)
        if value < ZERO:
            raise ValueError("payment amount cannot be negative")
        line.amount = value
        return line

    def set_settlement_method(self, line_id: int, method: str | None) -> PaymentLine:
        line = self.find(line_id)
        line.settlement_method = str(method or "").strip().lower() or None
        return line

    def remove_line(self, line_id: int, *, total) -> list[PaymentLine]:
        self.find(line_id)
        self.lines = [line for line in self.lines if line.id != line_id]

        if not self.lines:
            self.seed(total=total)
        elif self.selected_id == line_id:
            self.selected_id = self.lines[0].id

        return self.lines

    def clear(self) -> None:
        self.lines = []
        self.selected_id = None


def is_deferred_allocation(lines: list[PaymentLine], catalog: PaymentMethodCatalog) -> bool:
    return bool(lines) and all(catalog.is_deferred(line.method) for line in lines)


def validate_allocation(
    *, total, lines: list[PaymentLine], catalog: PaymentMethodCatalog
) -> AllocationCheck:
    total = to_money(total)

    if not lines:
        raise InsufficientOrInvalidPayment("At least one payment line is required.")

    for line in lines:
        if not catalog.is_usable(line.method):
            raise InsufficientOrInvalidPayment(f"Unknown payment method: {line.method}")
        if to_money(line.amount) < ZERO:
            raise InsufficientOrInvalidPayment("Payment amounts cannot be negative.")

    deferred_flags = {catalog.is_deferred(line.method) for line in lines}
    if len(deferred_flags) > 1:
        raise MixedPaymentKindsUnsupported(
            "Deferred payments cannot be combined with other payment methods."
        )
    deferred = deferred_flags == {True}

    paid = sum_money(line.amount for line in lines)
    if paid <= ZERO:
        raise InsufficientOrInvalidPayment("The total paid must be greater than zero.")

    if deferred:
        for line in lines:
            settlement = line.settlement_method
            if (
                not settlement
                or not catalog.is_usable(settlement)
                or catalog.is_deferred(settlement)
            ):
                raise MissingSettlementMethod(
                    "Select the real payment method of the initial installment."
                )
        if paid > total:
            raise InsufficientOrInvalidPayment(
                "The initial installment cannot exceed the sale total."
            )
        return AllocationCheck(
            is_deferred=True,
            total=total,
            total_paid=paid,
            change=compute_change(paid=paid, total=total, deferred=True),
            balance=max(ZERO, total - paid),
        )

    if paid < total:
        raise InsufficientOrInvalidPayment(
            "The total paid cannot be less than the sale total."
        )

    if paid > total and not any(catalog.is_change_eligible(line.method) for line in lines):
        raise InsufficientOrInvalidPayment(
            "Overpayment is only allowed with a method that gives change."
        )

    return AllocationCheck(
        is_deferred=False,
        total=total,
        total_paid=paid,
        change=compute_change(paid=paid, total=total, deferred=False),
        balance=ZERO,
    )
