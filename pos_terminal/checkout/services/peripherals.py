# checkout/services/peripherals.py

"""
HARDWARE SIDE CHANNELS

Fire-and-forget capabilities invoked after a confirmed sale:
- cash drawer pulse (ESC/POS)
- receipt printer (dotted-path collaborator)

Failures are logged and swallowed. They never change a sale outcome.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

# ESC p m t1 t2 -> pulse drawer pin 2 for 25ms on / 250ms off
DRAWER_PULSE = b"\x1b\x70\x00\x19\xfa"


class CashDrawer:
    def open(self) -> bool:
        raise NotImplementedError


class EscPosCashDrawer(CashDrawer):
    def __init__(self, device_path: str):
        self.device_path = device_path

    def open(self) -> bool:
        try:
            with open(self.device_path, "wb", buffering=0) as device:
                device.write(DRAWER_PULSE)
        except OSError as exc:
            logger.warning(
                "Cash drawer pulse failed",
                extra={"device": self.device_path, "error": str(exc)},
            )
            return False

        logger.info("Cash drawer opened", extra={"device": self.device_path})
        return True


class ReceiptPrinter:
    """Consumes a receipt dict and a document kind ("ticket" | "invoice")."""

    def print_receipt(self, receipt: dict, *, document_kind: str) -> None:
        raise NotImplementedError


class LoggingReceiptPrinter(ReceiptPrinter):
    def print_receipt(self, receipt: dict, *, document_kind: str) -> None:
        logger.info(
            "Receipt ready",
            extra={
                "document_kind": document_kind,
                "document_number": receipt.get("document_number"),
                "sale_number": receipt.get("sale_number"),
            },
        )


def cash_drawer_from_settings() -> CashDrawer | None:
    device = (getattr(settings, "CASH_DRAWER_DEVICE", "") or "").strip()
    if not device or not getattr(settings, "CASH_DRAWER_AUTO_OPEN", False):
        return None
    return EscPosCashDrawer(device)


def printer_from_settings() -> ReceiptPrinter | None:
    path = (getattr(settings, "POS_RECEIPT_PRINTER", "") or "").strip()
    if not path:
        return None
    return import_string(path)()
