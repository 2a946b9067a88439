# checkout/services/exceptions.py

"""
CHECKOUT SERVICE ERRORS

Centralized domain errors for the checkout core.

Every error carries a stable `code` that the API layer puts in the
error envelope: {"error": {"code": ..., "message": ...}}
"""

from __future__ import annotations


class CheckoutError(Exception):
    """Base exception for all checkout failures."""

    code = "CHECKOUT_FAILED"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or "")
        self.message = message or (self.__class__.__doc__ or "").strip()

    def __str__(self) -> str:
        return self.message


# ============================================================
# VALIDATION (local, never sent to the server, draft preserved)
# ============================================================


class CheckoutValidationError(CheckoutError):
    """The sale draft is not valid for submission."""

    code = "VALIDATION_FAILED"


class EmptyCartError(CheckoutValidationError):
    """There are no products in the cart."""

    code = "EMPTY_CART"


class InsufficientOrInvalidPayment(CheckoutValidationError):
    """The declared payments do not cover the sale total."""

    code = "INSUFFICIENT_OR_INVALID_PAYMENT"


class MixedPaymentKindsUnsupported(CheckoutValidationError):
    """Deferred payment lines cannot be combined with other payment methods."""

    code = "MIXED_PAYMENT_KINDS"


class MissingSettlementMethod(CheckoutValidationError):
    """Select the real payment method of the initial installment."""

    code = "MISSING_SETTLEMENT_METHOD"


class SaleNumberUnavailable(CheckoutValidationError):
    """Could not obtain a sale number for this checkout."""

    code = "SALE_NUMBER_UNAVAILABLE"


# ============================================================
# SUBMISSION
# ============================================================


class NumberingConflictUnresolved(CheckoutError):
    """The sale number was claimed again by another station after a refresh."""

    code = "NUMBERING_CONFLICT"

    def __init__(self, message: str = "", *, sale_number: int | None = None):
        super().__init__(message)
        self.sale_number = sale_number


class PersistenceRejected(CheckoutError):
    """The persistence API rejected the sale."""

    code = "PERSISTENCE_REJECTED"

    def __init__(self, detail: str, *, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class PersistenceNetworkError(CheckoutError):
    """The persistence API could not be reached."""

    code = "NETWORK_UNAVAILABLE"

    def __init__(self, message: str = "", *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class NumberingRefreshError(CheckoutError):
    """The sale-number counter did not return a usable value."""

    code = "NUMBERING_REFRESH_FAILED"


class OfflineDuringSubmission(CheckoutError):
    """
    Raised when a send fails at the network layer.

    Carries the exact payload that was being sent, and the idempotency key it
    went out under, so it can be queued as-is.
    """

    code = "OFFLINE"

    def __init__(
        self,
        *,
        payload: dict | bytes,
        sale_number: int,
        cause: Exception | None = None,
        idempotency_key: str | None = None,
    ):
        super().__init__("The sale could not reach the server.")
        self.payload = payload
        self.sale_number = sale_number
        self.idempotency_key = idempotency_key
        self.cause = cause


class PendingSaleNotFound(CheckoutError):
    """No pending sale exists with that id."""

    code = "PENDING_SALE_NOT_FOUND"
