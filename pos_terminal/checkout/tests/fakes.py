# checkout/tests/fakes.py

"""
Test doubles for the checkout core.

FakeClient replays a script of responses; each entry is either an
ApiResponse or an exception instance to raise.
"""

from __future__ import annotations

import json
from decimal import Decimal

from checkout.services.allocation import PaymentAllocation, PaymentLine
from checkout.services.draft import CartItem, SaleDraft
from checkout.services.exceptions import NumberingRefreshError, PersistenceNetworkError
from checkout.services.payment_catalog import PaymentMethodCatalog
from checkout.services.persistence_client import ApiResponse, PersistenceClient


def ok(data=None, status=201) -> ApiResponse:
    return ApiResponse(status=status, data=data if data is not None else {}, text=json.dumps(data or {}))


def conflict(detail="Sale number already used") -> ApiResponse:
    return ApiResponse(status=409, data={"detail": detail})


def rejected(status=400, data=None) -> ApiResponse:
    return ApiResponse(status=status, data=data)


def offline() -> PersistenceNetworkError:
    return PersistenceNetworkError("Connection refused", cause=ConnectionRefusedError())


class FakeClient(PersistenceClient):
    def __init__(self, responses=None, *, next_numbers=None, online=True):
        super().__init__(base_url="http://persistence.test/api")
        self.responses = list(responses or [])
        self.next_numbers = list(next_numbers or [])
        self.online = online
        self.requests: list[dict] = []
        self.refresh_calls = 0

    def post_body(self, endpoint, body, *, idempotency_key=None):
        self.requests.append(
            {
                "endpoint": endpoint,
                "payload": json.loads(body),
                "body": body,
                "idempotency_key": idempotency_key,
            }
        )
        if not self.responses:
            raise AssertionError("unexpected request: no scripted response left")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def fetch_next_sale_number(self) -> int:
        self.refresh_calls += 1
        if not self.next_numbers:
            raise NumberingRefreshError("counter unavailable")
        nxt = self.next_numbers.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def ping(self) -> bool:
        return self.online


class FakeDrawer:
    def __init__(self, *, fail=False):
        self.fail = fail
        self.pulses = 0

    def open(self) -> bool:
        self.pulses += 1
        if self.fail:
            raise OSError("drawer unplugged")
        return True


class FakePrinter:
    def __init__(self):
        self.printed = []

    def print_receipt(self, receipt, *, document_kind):
        self.printed.append((document_kind, receipt))


def make_draft(
    *,
    items=((Decimal("50000"), 1),),
    payments=(("cash", Decimal("50000"), None),),
    catalog: PaymentMethodCatalog | None = None,
    sale_number: int | None = 10,
    **kwargs,
) -> SaleDraft:
    catalog = catalog or PaymentMethodCatalog.default()
    cart = [
        CartItem(
            product_id=index,
            product_name=f"Product {index}",
            quantity=qty,
            unit_price=price,
        )
        for index, (price, qty) in enumerate(items, start=1)
    ]
    lines = [
        PaymentLine(id=index, method=method, amount=Decimal(str(amount)), settlement_method=settlement)
        for index, (method, amount, settlement) in enumerate(payments, start=1)
    ]
    return SaleDraft(
        catalog=catalog,
        items=cart,
        payments=PaymentAllocation(catalog, lines),
        sale_number=sale_number,
        **kwargs,
    )
