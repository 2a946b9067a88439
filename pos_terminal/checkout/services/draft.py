# checkout/services/draft.py

"""
SALE DRAFT

Explicit value owned by one checkout session:
- created when checkout begins
- edited only by the cashier flow
- cleared after a terminal outcome (succeeded or durably queued)

Totals:
- line net      = unit_price * quantity - line_discount
- subtotal      = sum(line net)
- cart discount = value OR percent of subtotal (never both)
- total         = max(0, subtotal - cart discount) + surcharge
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from checkout.services.allocation import PaymentAllocation, PaymentLine
from checkout.services.money import ZERO, percent_of, sum_money, to_money
from checkout.services.payment_catalog import PaymentMethodCatalog

SURCHARGE_METHOD_LABELS = {
    "addi": "Addi",
    "sistecredito": "Sistecrédito",
    "manual": "Manual",
}


@dataclass(frozen=True)
class CartItem:
    product_id: int | str
    product_name: str
    quantity: int
    unit_price: Decimal
    line_discount: Decimal = ZERO
    product_sku: str | None = None
    product_barcode: str | None = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("quantity must be a whole integer unit")
        if self.quantity <= 0:
            raise ValueError("quantity must be greater than zero")

        object.__setattr__(self, "unit_price", to_money(self.unit_price))
        object.__setattr__(self, "line_discount", to_money(self.line_discount))

        if self.unit_price < ZERO:
            raise ValueError("unit price cannot be negative")
        if self.line_discount < ZERO:
            raise ValueError("line discount cannot be negative")
        if self.line_discount > self.gross:
            raise ValueError("line discount cannot exceed the line value")

    @property
    def gross(self) -> Decimal:
        return to_money(self.unit_price * Decimal(self.quantity))

    @property
    def net(self) -> Decimal:
        return max(ZERO, self.gross - self.line_discount)


@dataclass(frozen=True)
class CustomerRef:
    id: int | str | None = None
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    tax_id: str | None = None
    address: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "tax_id": self.tax_id,
            "address": self.address,
        }


@dataclass(frozen=True)
class Surcharge:
    amount: Decimal = ZERO
    method: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "amount", max(ZERO, to_money(self.amount)))

    @property
    def is_active(self) -> bool:
        return self.amount > ZERO

    @property
    def submission_label(self) -> str:
        return f"Surcharge {self.method}" if self.method else "Surcharge"

    @property
    def display_label(self) -> str:
        if not self.method:
            return "Surcharge"
        return f"Surcharge {SURCHARGE_METHOD_LABELS.get(self.method, self.method)}"


@dataclass(frozen=True)
class CartDiscount:
    KIND_VALUE = "value"
    KIND_PERCENT = "percent"

    kind: str
    amount: Decimal

    def __post_init__(self):
        if self.kind not in (self.KIND_VALUE, self.KIND_PERCENT):
            raise ValueError(f"unknown cart discount kind: {self.kind}")
        amount = Decimal(str(self.amount or 0))
        if amount < ZERO:
            raise ValueError("cart discount cannot be negative")
        if self.kind == self.KIND_PERCENT and amount > Decimal("100"):
            raise ValueError("cart discount percent cannot exceed 100")
        if self.kind == self.KIND_VALUE:
            amount = to_money(amount)
        object.__setattr__(self, "amount", amount)

    def value_for(self, subtotal) -> Decimal:
        if self.kind == self.KIND_PERCENT:
            return percent_of(subtotal, self.amount)
        return self.amount


@dataclass
class SaleDraft:
    catalog: PaymentMethodCatalog
    items: list[CartItem] = field(default_factory=list)
    payments: PaymentAllocation | None = None
    customer: CustomerRef | None = None
    notes: str = ""
    surcharge: Surcharge | None = None
    cart_discount: CartDiscount | None = None
    sale_number: int | None = None
    due_date: datetime | None = None
    vendor_name: str | None = None
    pos_name: str | None = None
    station_id: str | None = None
    is_cleared: bool = False

    def __post_init__(self):
        if self.payments is None:
            self.payments = PaymentAllocation(self.catalog)

    # -----------------------------
    # totals
    # -----------------------------

    @property
    def gross_subtotal(self) -> Decimal:
        return sum_money(item.gross for item in self.items)

    @property
    def line_discount_total(self) -> Decimal:
        return sum_money(item.line_discount for item in self.items)

    @property
    def subtotal(self) -> Decimal:
        return sum_money(item.net for item in self.items)

    @property
    def cart_discount_amount(self) -> Decimal:
        if self.cart_discount is None:
            return to_money(ZERO)
        return self.cart_discount.value_for(self.subtotal)

    @property
    def surcharge_amount(self) -> Decimal:
        if self.surcharge is None:
            return to_money(ZERO)
        return self.surcharge.amount

    @property
    def total(self) -> Decimal:
        before_surcharge = max(ZERO, self.subtotal - self.cart_discount_amount)
        return to_money(before_surcharge + self.surcharge_amount)

    @property
    def payment_lines(self) -> list[PaymentLine]:
        return self.payments.lines

    @property
    def total_paid(self) -> Decimal:
        return self.payments.total_paid

    @property
    def notes_clean(self) -> str:
        return (self.notes or "").strip()

    # -----------------------------
    # payment editing (total-aware)
    # -----------------------------

    def start_payment(self) -> PaymentLine:
        return self.payments.seed(total=self.total)

    def select_payment_method(self, method: str) -> PaymentLine:
        return self.payments.select_method(method, total=self.total)

    def remove_payment_line(self, line_id: int) -> list[PaymentLine]:
        return self.payments.remove_line(line_id, total=self.total)

    # -----------------------------
    # lifecycle
    # -----------------------------

    def clear(self) -> None:
        self.items = []
        self.payments.clear()
        self.customer = None
        self.notes = ""
        self.surcharge = None
        self.cart_discount = None
        self.sale_number = None
        self.due_date = None
        self.is_cleared = True
