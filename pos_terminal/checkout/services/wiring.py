# checkout/services/wiring.py

"""
Builds the checkout collaborators from Django settings.

Views and management commands go through here so they share one way of
assembling the client, queue, connectivity monitor and orchestrator.
"""

from __future__ import annotations

from django.conf import settings

from checkout.services.checkout_orchestrator import CheckoutOrchestrator
from checkout.services.connectivity import ConnectivityMonitor
from checkout.services.numbering import SaleNumberResolver
from checkout.services.payment_catalog import PaymentMethodCatalog
from checkout.services.pending_queue import PendingSaleQueue, ReplayReport
from checkout.services.peripherals import cash_drawer_from_settings, printer_from_settings
from checkout.services.persistence_client import PersistenceClient
from checkout.services.queue_storage import storage_from_settings


def build_client() -> PersistenceClient:
    return PersistenceClient.from_settings()


def build_queue() -> PendingSaleQueue:
    return PendingSaleQueue(storage_from_settings(), lock_key=settings.POS_PENDING_QUEUE_KEY)


def replay_pending(*, client: PersistenceClient | None = None, queue: PendingSaleQueue | None = None) -> ReplayReport:
    client = client or build_client()
    queue = queue or build_queue()
    return queue.replay(SaleNumberResolver(client=client))


def build_connectivity(*, client: PersistenceClient | None = None) -> ConnectivityMonitor:
    client = client or build_client()
    monitor = ConnectivityMonitor(client=client)
    monitor.on_reconnect(lambda: replay_pending(client=client))
    return monitor


def build_orchestrator() -> CheckoutOrchestrator:
    client = build_client()
    return CheckoutOrchestrator(
        catalog=PaymentMethodCatalog.from_database(),
        client=client,
        queue=build_queue(),
        connectivity=build_connectivity(client=client),
        printer=printer_from_settings(),
        cash_drawer=cash_drawer_from_settings(),
    )
