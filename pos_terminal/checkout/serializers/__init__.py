# checkout/serializers/__init__.py

from .draft import SaleDraftInputSerializer
from .payment_method import CatalogEntrySerializer
from .pending import (
    ConnectivityInputSerializer,
    PendingSaleSerializer,
    ReplayReportSerializer,
)

__all__ = [
    "SaleDraftInputSerializer",
    "CatalogEntrySerializer",
    "ConnectivityInputSerializer",
    "PendingSaleSerializer",
    "ReplayReportSerializer",
]
