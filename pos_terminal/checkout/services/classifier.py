# checkout/services/classifier.py

"""
SUBMISSION CLASSIFIER

Pure rules:
- every line deferred-kind -> DEFERRED_ORDER (deferred-order endpoint)
- otherwise                -> DIRECT_SALE   (direct-sale endpoint)

Deferred orders get a default due date of submission time + N calendar
months (POS_DEFERRED_DUE_MONTHS, 2 by default) when none was declared.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from dateutil.relativedelta import relativedelta
from django.conf import settings

from checkout.services.allocation import PaymentLine, is_deferred_allocation
from checkout.services.payment_catalog import PaymentMethodCatalog


class SubmissionKind(str, Enum):
    DIRECT_SALE = "direct_sale"
    DEFERRED_ORDER = "deferred_order"


def classify(lines: list[PaymentLine], catalog: PaymentMethodCatalog) -> SubmissionKind:
    if is_deferred_allocation(lines, catalog):
        return SubmissionKind.DEFERRED_ORDER
    return SubmissionKind.DIRECT_SALE


def default_due_date(now: datetime, months: int | None = None) -> datetime:
    if months is None:
        months = int(getattr(settings, "POS_DEFERRED_DUE_MONTHS", 2))
    return now + relativedelta(months=months)


def endpoint_for(kind: SubmissionKind) -> str:
    if kind == SubmissionKind.DEFERRED_ORDER:
        return settings.POS_DEFERRED_ORDER_ENDPOINT
    return settings.POS_DIRECT_SALE_ENDPOINT
