# checkout/services/payload.py

"""
SUBMISSION PAYLOAD BUILDER

Builds the JSON body accepted by both submission endpoints.

Rules:
- Only JSON-native values (money_to_wire), so the body is byte-stable and can
  be queued and replayed unchanged.
- Optional keys are omitted, never sent as null.
- Payment rows carry the effective method: the settlement method for
  deferred lines, the line method otherwise.
"""

from __future__ import annotations

from datetime import datetime

from checkout.services.allocation import is_deferred_allocation
from checkout.services.classifier import SubmissionKind, default_due_date
from checkout.services.draft import SaleDraft
from checkout.services.money import compute_change, money_to_wire


def build_items_payload(draft: SaleDraft) -> list[dict]:
    rows = []
    for item in draft.items:
        rows.append(
            {
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_price": money_to_wire(item.unit_price),
                "product_sku": item.product_sku,
                "product_name": item.product_name,
                "product_barcode": item.product_barcode,
                "total": money_to_wire(item.net),
                "discount": money_to_wire(item.line_discount),
            }
        )
    return rows


def build_payments_payload(draft: SaleDraft) -> list[dict]:
    return [
        {
            "method": line.effective_method(draft.catalog),
            "amount": money_to_wire(line.amount),
        }
        for line in draft.payment_lines
    ]


def build_submission_payload(
    draft: SaleDraft,
    *,
    kind: SubmissionKind,
    sale_number: int,
    now: datetime,
) -> dict:
    lines = draft.payment_lines
    deferred = kind == SubmissionKind.DEFERRED_ORDER
    paid = draft.total_paid

    payload: dict = {
        "payment_method": lines[0].method if lines else draft.catalog.default_method().slug,
        "total": money_to_wire(draft.total),
        "paid_amount": money_to_wire(paid),
        "change_amount": money_to_wire(
            compute_change(paid=paid, total=draft.total, deferred=deferred)
        ),
        "items": build_items_payload(draft),
        "payments": build_payments_payload(draft),
        "sale_number_preassigned": int(sale_number),
    }

    if draft.notes_clean:
        payload["notes"] = draft.notes_clean
    if draft.pos_name:
        payload["pos_name"] = draft.pos_name
    if draft.vendor_name:
        payload["vendor_name"] = draft.vendor_name
    if draft.station_id:
        payload["station_id"] = draft.station_id
    if draft.customer is not None and draft.customer.id is not None:
        payload["customer_id"] = draft.customer.id

    if deferred:
        due = draft.due_date or default_due_date(now)
        payload["due_date"] = due.isoformat()

    if draft.surcharge is not None and draft.surcharge.is_active:
        payload["surcharge_amount"] = money_to_wire(draft.surcharge.amount)
        payload["surcharge_label"] = draft.surcharge.submission_label

    return payload


def with_sale_number(payload: dict, sale_number: int) -> dict:
    """Copy of a built payload carrying a different preassigned number."""
    return {**payload, "sale_number_preassigned": int(sale_number)}


def primary_method_label(draft: SaleDraft) -> str:
    lines = draft.payment_lines
    if is_deferred_allocation(lines, draft.catalog):
        first = lines[0]
        return draft.catalog.label(first.settlement_method or first.method)
    if len(lines) == 1:
        return draft.catalog.label(lines[0].method)
    return "Multiple payments"
