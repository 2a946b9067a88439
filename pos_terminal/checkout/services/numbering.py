# checkout/services/numbering.py

"""
SALE NUMBERING & CONFLICT RESOLVER

Sale numbers are human-facing consecutive ticket numbers. Concurrent stations
can claim the same provisional number, so the server answers 409.

Protocol (per submission attempt):
1) send the payload with the provisional number (a dict, or pre-encoded bytes
   that go out untouched)
2) 409 -> refresh the number from the counter
         (refresh failure or value <= provisional -> provisional + 1)
      -> rebuild the payload and retry EXACTLY ONCE
3) second 409          -> NumberingConflictUnresolved (no third request)
   other non-2xx       -> PersistenceRejected(detail)
   network-layer error -> OfflineDuringSubmission(payload being sent)

Refresh and resend are strictly sequential.

Idempotency keys cover one body: the retry carries a different number, so it is
sent under "<key>:<number>".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from checkout.services.exceptions import (
    NumberingConflictUnresolved,
    NumberingRefreshError,
    OfflineDuringSubmission,
    PersistenceNetworkError,
    PersistenceRejected,
)
from checkout.services.persistence_client import ApiResponse, PersistenceClient, encode_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionAttempt:
    response: ApiResponse
    sale_number: int
    payload: dict | bytes
    retried: bool


class SaleNumberResolver:
    def __init__(self, *, client: PersistenceClient, refresh: Callable[[], int] | None = None):
        self.client = client
        self.refresh = refresh or client.fetch_next_sale_number

    def next_number_after_conflict(self, provisional: int) -> int:
        try:
            refreshed = int(self.refresh())
        except (NumberingRefreshError, TypeError, ValueError) as exc:
            logger.warning(
                "Sale number refresh failed; falling back to provisional + 1",
                extra={"provisional": provisional, "error": str(exc)},
            )
            return provisional + 1

        # a counter at or below the claimed number is stale
        return max(refreshed, provisional + 1)

    def _send(self, endpoint: str, payload: dict | bytes, sale_number: int, idempotency_key: str | None) -> ApiResponse:
        body = payload if isinstance(payload, bytes) else encode_payload(payload)
        try:
            return self.client.post_body(endpoint, body, idempotency_key=idempotency_key)
        except PersistenceNetworkError as exc:
            raise OfflineDuringSubmission(
                payload=payload, sale_number=sale_number, cause=exc, idempotency_key=idempotency_key
            ) from exc

    def submit(
        self,
        *,
        endpoint: str,
        build_payload: Callable[[int], dict | bytes],
        provisional: int,
        idempotency_key: str | None = None,
    ) -> SubmissionAttempt:
        sale_number = int(provisional)
        payload = build_payload(sale_number)
        res = self._send(endpoint, payload, sale_number, idempotency_key)

        if res.ok:
            return SubmissionAttempt(response=res, sale_number=sale_number, payload=payload, retried=False)

        if not res.is_conflict:
            raise PersistenceRejected(res.detail(), status_code=res.status)

        refreshed = self.next_number_after_conflict(sale_number)
        logger.info(
            "Sale number conflict; retrying once",
            extra={"endpoint": endpoint, "from_number": sale_number, "to_number": refreshed},
        )

        sale_number = refreshed
        payload = build_payload(sale_number)
        retry_key = f"{idempotency_key}:{sale_number}" if idempotency_key else None
        res = self._send(endpoint, payload, sale_number, retry_key)

        if res.ok:
            return SubmissionAttempt(response=res, sale_number=sale_number, payload=payload, retried=True)

        if res.is_conflict:
            raise NumberingConflictUnresolved(
                f"Sale number {sale_number} is already taken. {res.detail()}",
                sale_number=sale_number,
            )
        raise PersistenceRejected(res.detail(), status_code=res.status)
