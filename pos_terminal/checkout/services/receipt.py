# checkout/services/receipt.py

"""
RECEIPT PAYLOAD BUILDER

Deterministic transform (SaleDraft, SaleSubmissionResult) -> ReceiptPayload.
No I/O. Markup rendering belongs to the printing collaborator.

Rules:
- item total: server-echoed total when present, else gross - line discount
- change: max(0, paid - total), shown only when a change-eligible method was
  used and the value is > 0; deferred orders show the balance instead
- deferred schedule: "initial installment" first (deferred line amount,
  settlement method, submission time), then server installments by ordinal
- cart discount: value OR percent, whichever was declared
- surcharge: only when > 0; server label wins, else derived from the method
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from checkout.services.classifier import SubmissionKind
from checkout.services.draft import CartDiscount, CustomerRef, SaleDraft
from checkout.services.money import ZERO, format_money, money_to_wire, sum_money, to_money
from checkout.services.payment_catalog import PaymentMethodCatalog

DOCUMENT_KINDS = ("ticket", "invoice")

INITIAL_INSTALLMENT_LABEL = "initial installment"


def _optional_money(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return to_money(value)
    except ValueError:
        return None


def _optional_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _text(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# ============================================================
# SERVER RESULT
# ============================================================


@dataclass(frozen=True)
class SaleSubmissionResult:
    kind: SubmissionKind
    record_id: int | None
    document_number: str
    sale_number: int | None
    total: Decimal | None = None
    customer: CustomerRef | None = None
    notes: str | None = None
    surcharge_amount: Decimal | None = None
    surcharge_label: str | None = None
    has_cash_payment: bool | None = None
    items: list = field(default_factory=list)
    balance: Decimal | None = None
    initial_payment: Decimal | None = None
    installments: list = field(default_factory=list)
    due_date: str | None = None
    created_at: str | None = None
    raw: Any = None

    @classmethod
    def from_response(cls, kind: SubmissionKind, data) -> "SaleSubmissionResult":
        data = data if isinstance(data, dict) else {}
        deferred = kind == SubmissionKind.DEFERRED_ORDER

        record_id = _optional_int(data.get("sale_id") if deferred else data.get("id"))
        if record_id is None:
            record_id = _optional_int(data.get("id"))

        document_number = _text(
            data.get("sale_document_number") if deferred else data.get("document_number")
        ) or _text(data.get("document_number"))
        if not document_number and record_id is not None:
            document_number = f"V-{record_id:06d}"

        sale_number = _optional_int(data.get("sale_number"))
        if sale_number is None:
            sale_number = record_id

        customer = None
        if _text(data.get("customer_name")):
            customer = CustomerRef(
                id=data.get("customer_id"),
                name=_text(data.get("customer_name")),
                phone=_text(data.get("customer_phone")),
                email=_text(data.get("customer_email")),
                tax_id=_text(data.get("customer_tax_id")),
                address=_text(data.get("customer_address")),
            )

        total = _optional_money(data.get("total_amount") if deferred else data.get("total"))
        if total is not None and total <= ZERO:
            total = None

        surcharge_amount = _optional_money(data.get("surcharge_amount"))
        if surcharge_amount is not None and surcharge_amount <= ZERO:
            surcharge_amount = None

        has_cash = data.get("has_cash_payment")

        return cls(
            kind=kind,
            record_id=record_id,
            document_number=document_number or "",
            sale_number=sale_number,
            total=total,
            customer=customer,
            notes=_text(data.get("notes")),
            surcharge_amount=surcharge_amount,
            surcharge_label=_text(data.get("surcharge_label")),
            has_cash_payment=None if has_cash is None else bool(has_cash),
            items=list(data.get("items") or []) if isinstance(data.get("items"), list) else [],
            balance=_optional_money(data.get("balance")) if deferred else None,
            initial_payment=_optional_money(data.get("initial_payment")) if deferred else None,
            installments=list(data.get("payments") or []) if deferred and isinstance(data.get("payments"), list) else [],
            due_date=_text(data.get("due_date")),
            created_at=_text(data.get("created_at")),
            raw=data,
        )


# ============================================================
# RECEIPT
# ============================================================


@dataclass(frozen=True)
class ReceiptItem:
    name: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": money_to_wire(self.unit_price),
            "discount": money_to_wire(self.discount),
            "total": money_to_wire(self.total),
        }


@dataclass(frozen=True)
class ReceiptPayment:
    label: str
    method: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {"label": self.label, "method": self.method, "amount": money_to_wire(self.amount)}


@dataclass(frozen=True)
class Installment:
    label: str
    amount: Decimal
    method: str
    method_label: str
    paid_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "amount": money_to_wire(self.amount),
            "method": self.method,
            "method_label": self.method_label,
            "paid_at": self.paid_at,
        }


@dataclass(frozen=True)
class DeferredInfo:
    balance: Decimal
    due_date: str | None
    installments: list[Installment]

    def to_dict(self) -> dict:
        return {
            "balance": money_to_wire(self.balance),
            "due_date": self.due_date,
            "installments": [i.to_dict() for i in self.installments],
        }


@dataclass(frozen=True)
class ReceiptPayload:
    document_kind: str
    document_number: str
    sale_number: int | None
    issued_at: str
    items: list[ReceiptItem]
    subtotal: Decimal
    line_discount_total: Decimal
    cart_discount_label: str
    cart_discount_display: str
    surcharge_label: str | None
    surcharge_amount: Decimal | None
    total: Decimal
    payments: list[ReceiptPayment]
    total_paid: Decimal
    change: Decimal
    show_change: bool
    notes: str | None
    customer: CustomerRef | None
    pos_name: str | None = None
    vendor_name: str | None = None
    deferred: DeferredInfo | None = None

    @property
    def balance(self) -> Decimal:
        return self.deferred.balance if self.deferred else ZERO

    def to_dict(self) -> dict:
        return {
            "document_kind": self.document_kind,
            "document_number": self.document_number,
            "sale_number": self.sale_number,
            "issued_at": self.issued_at,
            "items": [i.to_dict() for i in self.items],
            "subtotal": money_to_wire(self.subtotal),
            "line_discount_total": money_to_wire(self.line_discount_total),
            "cart_discount_label": self.cart_discount_label,
            "cart_discount_display": self.cart_discount_display,
            "surcharge_label": self.surcharge_label,
            "surcharge_amount": (
                money_to_wire(self.surcharge_amount) if self.surcharge_amount is not None else None
            ),
            "surcharge_display": (
                format_money(self.surcharge_amount) if self.surcharge_amount is not None else None
            ),
            "total": money_to_wire(self.total),
            "payments": [p.to_dict() for p in self.payments],
            "total_paid": money_to_wire(self.total_paid),
            "change": money_to_wire(self.change),
            "show_change": self.show_change,
            "notes": self.notes,
            "customer": self.customer.to_dict() if self.customer else None,
            "pos_name": self.pos_name,
            "vendor_name": self.vendor_name,
            "deferred": self.deferred.to_dict() if self.deferred else None,
        }


# ============================================================
# BUILDERS
# ============================================================


def _server_item_total(result: SaleSubmissionResult, index: int, product_id) -> Decimal | None:
    echoed = [row for row in result.items if isinstance(row, dict)]
    if not echoed:
        return None

    match = None
    if len(echoed) > index and str(echoed[index].get("product_id")) == str(product_id):
        match = echoed[index]
    else:
        match = next((row for row in echoed if str(row.get("product_id")) == str(product_id)), None)

    if match is None:
        return None
    return _optional_money(match.get("total"))


def _build_items(draft: SaleDraft, result: SaleSubmissionResult) -> list[ReceiptItem]:
    rows = []
    for index, item in enumerate(draft.items):
        server_total = _server_item_total(result, index, item.product_id)
        rows.append(
            ReceiptItem(
                name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.line_discount,
                total=server_total if server_total is not None else item.net,
            )
        )
    return rows


def _cart_discount_display(discount: CartDiscount | None, amount: Decimal) -> tuple[str, str]:
    if discount is None or discount.amount <= ZERO:
        return "Cart discount", "0"
    if discount.kind == CartDiscount.KIND_PERCENT:
        pct = discount.amount.normalize()
        return "Cart discount (%)", f"-{pct:f}%"
    return "Cart discount (value)", f"-{format_money(amount)}"


def _surcharge_display(draft: SaleDraft, result: SaleSubmissionResult) -> tuple[str | None, Decimal | None]:
    amount = result.surcharge_amount
    if amount is None and draft.surcharge is not None and draft.surcharge.is_active:
        amount = draft.surcharge.amount
    if amount is None or amount <= ZERO:
        return None, None

    label = result.surcharge_label
    if not label:
        label = draft.surcharge.display_label if draft.surcharge is not None else "Surcharge"
    return label, amount


def _build_deferred(
    draft: SaleDraft,
    result: SaleSubmissionResult,
    catalog: PaymentMethodCatalog,
    *,
    total: Decimal,
    submitted_at: datetime,
) -> DeferredInfo:
    lines = draft.payment_lines
    paid = sum_money(line.amount for line in lines)

    installments = []
    for line in lines:
        method = line.settlement_method or line.method
        installments.append(
            Installment(
                label=INITIAL_INSTALLMENT_LABEL,
                amount=line.amount,
                method=method,
                method_label=catalog.label(method),
                paid_at=submitted_at.isoformat(),
            )
        )

    for position, row in enumerate(result.installments, start=2):
        if not isinstance(row, dict):
            continue
        method = str(row.get("method") or "")
        installments.append(
            Installment(
                label=f"installment {position}",
                amount=to_money(row.get("amount")),
                method=method,
                method_label=catalog.label(method),
                paid_at=_text(row.get("paid_at")),
            )
        )

    balance = result.balance
    if balance is None:
        balance = total - paid
    balance = max(ZERO, balance)

    due = result.due_date
    if due is None and draft.due_date is not None:
        due = draft.due_date.isoformat()

    return DeferredInfo(balance=balance, due_date=due, installments=installments)


def build_receipt(
    draft: SaleDraft,
    result: SaleSubmissionResult,
    catalog: PaymentMethodCatalog,
    *,
    submitted_at: datetime,
    document_kind: str = "ticket",
) -> ReceiptPayload:
    if document_kind not in DOCUMENT_KINDS:
        raise ValueError(f"unknown document kind: {document_kind}")

    deferred = result.kind == SubmissionKind.DEFERRED_ORDER
    lines = draft.payment_lines
    total = result.total if result.total is not None else draft.total
    paid = sum_money(line.amount for line in lines)

    payments = [
        ReceiptPayment(
            label=catalog.label(line.effective_method(catalog)),
            method=line.effective_method(catalog),
            amount=line.amount,
        )
        for line in lines
    ]

    change = ZERO if deferred else max(ZERO, to_money(paid - total))
    show_change = (
        not deferred
        and change > ZERO
        and any(catalog.is_change_eligible(line.method) for line in lines)
    )

    cart_label, cart_display = _cart_discount_display(draft.cart_discount, draft.cart_discount_amount)
    surcharge_label, surcharge_amount = _surcharge_display(draft, result)

    return ReceiptPayload(
        document_kind=document_kind,
        document_number=result.document_number,
        sale_number=result.sale_number,
        issued_at=submitted_at.isoformat(),
        items=_build_items(draft, result),
        subtotal=draft.subtotal,
        line_discount_total=draft.line_discount_total,
        cart_discount_label=cart_label,
        cart_discount_display=cart_display,
        surcharge_label=surcharge_label,
        surcharge_amount=surcharge_amount,
        total=total,
        payments=payments,
        total_paid=paid,
        change=change if show_change else ZERO,
        show_change=show_change,
        notes=result.notes or draft.notes_clean or None,
        customer=draft.customer or result.customer,
        pos_name=draft.pos_name,
        vendor_name=draft.vendor_name,
        deferred=(
            _build_deferred(draft, result, catalog, total=total, submitted_at=submitted_at)
            if deferred
            else None
        ),
    )
