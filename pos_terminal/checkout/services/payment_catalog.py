# checkout/services/payment_catalog.py

"""
PAYMENT METHOD CATALOG (LOOKUP CAPABILITY)

The checkout core never hard-codes method identities. It asks the catalog:
- display name
- change eligibility
- deferred-kind predicate

Source:
- active PaymentMethod rows, or
- DEFAULT_PAYMENT_METHODS when the local table is empty
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class PaymentMethodInfo:
    slug: str
    display_name: str
    change_eligible: bool = False
    is_deferred_kind: bool = False
    is_active: bool = True
    order_index: int = 0

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "name": self.display_name,
            "allow_change": self.change_eligible,
            "is_deferred": self.is_deferred_kind,
            "is_active": self.is_active,
            "order_index": self.order_index,
        }


DEFAULT_PAYMENT_METHODS = (
    PaymentMethodInfo("cash", "Cash", change_eligible=True, order_index=1),
    PaymentMethodInfo("qr", "QR / Bank transfer", order_index=2),
    PaymentMethodInfo("card", "Card terminal", order_index=3),
    PaymentMethodInfo("nequi", "Nequi", order_index=4),
    PaymentMethodInfo("daviplata", "Daviplata", order_index=5),
    PaymentMethodInfo("credito", "Store credit", order_index=6),
    PaymentMethodInfo("separado", "Layaway", is_deferred_kind=True, order_index=7),
)


def _normalize_slug(slug) -> str:
    return str(slug or "").strip().lower()


class PaymentMethodCatalog:
    def __init__(self, methods: Iterable[PaymentMethodInfo]):
        ordered = sorted(methods, key=lambda m: (m.order_index, m.display_name))
        self._methods = {_normalize_slug(m.slug): m for m in ordered}

    @classmethod
    def default(cls) -> "PaymentMethodCatalog":
        return cls(DEFAULT_PAYMENT_METHODS)

    @classmethod
    def from_database(cls) -> "PaymentMethodCatalog":
        from checkout.models import PaymentMethod

        rows = list(PaymentMethod.objects.all())
        if not rows:
            return cls.default()

        return cls(
            PaymentMethodInfo(
                slug=row.slug,
                display_name=row.name,
                change_eligible=row.allow_change,
                is_deferred_kind=row.is_deferred,
                is_active=row.is_active,
                order_index=row.order_index,
            )
            for row in rows
        )

    def __contains__(self, slug) -> bool:
        return _normalize_slug(slug) in self._methods

    def __iter__(self):
        return iter(self._methods.values())

    def get(self, slug) -> PaymentMethodInfo | None:
        return self._methods.get(_normalize_slug(slug))

    def is_usable(self, slug) -> bool:
        method = self.get(slug)
        return bool(method and method.is_active)

    def label(self, slug) -> str:
        method = self.get(slug)
        if method is None:
            return str(slug or "")
        return method.display_name

    def is_change_eligible(self, slug) -> bool:
        method = self.get(slug)
        return bool(method and method.change_eligible)

    def is_deferred(self, slug) -> bool:
        method = self.get(slug)
        return bool(method and method.is_deferred_kind)

    def active(self) -> list[PaymentMethodInfo]:
        return [m for m in self._methods.values() if m.is_active]

    def settlement_methods(self) -> list[PaymentMethodInfo]:
        """Real instruments an initial installment can be paid with."""
        return [m for m in self.active() if not m.is_deferred_kind]

    def default_method(self) -> PaymentMethodInfo:
        options = self.settlement_methods()
        if not options:
            raise LookupError("payment catalog has no active non-deferred method")
        return options[0]
