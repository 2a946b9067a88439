# checkout/models/__init__.py

from .payment_method import PaymentMethod
from .stored_collection import StoredCollection

__all__ = [
    "PaymentMethod",
    "StoredCollection",
]
