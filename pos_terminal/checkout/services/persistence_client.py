# checkout/services/persistence_client.py
from __future__ import annotations

import json
import logging
import socket
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings

from checkout.services.exceptions import NumberingRefreshError, PersistenceNetworkError

logger = logging.getLogger(__name__)

NETWORK_ERRORS = (URLError, TimeoutError, socket.timeout, ConnectionError)


@dataclass(frozen=True)
class ApiResponse:
    status: int
    data: Any
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_conflict(self) -> bool:
        return self.status == 409

    def detail(self) -> str:
        """
        Human-readable rejection detail.

        Accepts {"detail": "..."} or {"detail": [{"msg": "..."}, "..."]}.
        """
        data = self.data if isinstance(self.data, dict) else {}
        raw = data.get("detail")
        if isinstance(raw, list):
            parts = []
            for d in raw:
                if isinstance(d, str):
                    parts.append(d)
                elif isinstance(d, dict):
                    parts.append(str(d.get("msg") or ""))
            text = ", ".join(p for p in parts if p)
            if text:
                return text
        elif raw:
            return str(raw)
        return f"Error {self.status}"


def _parse_json_or_none(raw: str):
    raw = raw or ""
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def encode_payload(payload: dict) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


class PersistenceClient:
    """
    Thin JSON client for the remote persistence API.

    - non-2xx responses are returned (ApiResponse), never raised
    - network-layer failures raise PersistenceNetworkError
    """

    def __init__(self, *, base_url: str, token: str = "", timeout: float = 15):
        self.base_url = (base_url or "").rstrip("/")
        self.token = (token or "").strip()
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "PersistenceClient":
        return cls(
            base_url=settings.POS_API_BASE_URL,
            token=settings.POS_API_TOKEN,
            timeout=settings.POS_API_TIMEOUT,
        )

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _headers(self, extra: dict | None = None) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _send(self, method: str, endpoint: str, *, body: bytes | None = None, headers=None) -> ApiResponse:
        req = Request(
            self._url(endpoint),
            data=body,
            headers=self._headers(headers),
            method=method,
        )

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
                return ApiResponse(status=resp.status, data=_parse_json_or_none(raw), text=raw)
        except HTTPError as e:
            # HTTPError is a URLError subclass: handle it first, it is a real response.
            raw = ""
            try:
                raw = e.read().decode("utf-8", errors="replace")
            except OSError:
                raw = ""
            return ApiResponse(status=e.code, data=_parse_json_or_none(raw), text=raw)
        except NETWORK_ERRORS as e:
            logger.warning(
                "Persistence API unreachable",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise PersistenceNetworkError(f"Persistence API unreachable: {e}", cause=e) from e

    def post_body(self, endpoint: str, body: bytes, *, idempotency_key: str | None = None) -> ApiResponse:
        """POST an already-encoded JSON body as-is (queued sales replay these bytes)."""
        extra = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return self._send("POST", endpoint, body=body, headers=extra)

    def post_json(self, endpoint: str, payload: dict, *, idempotency_key: str | None = None) -> ApiResponse:
        return self.post_body(endpoint, encode_payload(payload), idempotency_key=idempotency_key)

    def fetch_next_sale_number(self) -> int:
        try:
            res = self._send("GET", settings.POS_NEXT_NUMBER_ENDPOINT)
        except PersistenceNetworkError as exc:
            raise NumberingRefreshError(str(exc)) from exc

        if not res.ok:
            raise NumberingRefreshError(f"Error {res.status}")

        data = res.data if isinstance(res.data, dict) else {}
        try:
            value = int(data.get("next_sale_number"))
        except (TypeError, ValueError) as exc:
            raise NumberingRefreshError("Invalid sale number response") from exc

        if value <= 0:
            raise NumberingRefreshError("Invalid sale number response")
        return value

    def ping(self) -> bool:
        try:
            res = self._send("GET", settings.POS_HEALTH_ENDPOINT)
        except PersistenceNetworkError:
            return False
        return res.status < 500
