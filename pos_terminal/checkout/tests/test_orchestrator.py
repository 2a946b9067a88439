from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase

from checkout.services.checkout_orchestrator import CheckoutOrchestrator, CheckoutState
from checkout.services.classifier import SubmissionKind
from checkout.services.connectivity import ConnectivityMonitor
from checkout.services.exceptions import (
    EmptyCartError,
    MixedPaymentKindsUnsupported,
    NumberingConflictUnresolved,
    PersistenceRejected,
    SaleNumberUnavailable,
)
from checkout.services.pending_queue import PendingSaleQueue
from checkout.services.queue_storage import InMemoryQueueStorage

from .fakes import FakeClient, FakeDrawer, FakePrinter, conflict, make_draft, offline, ok, rejected

NOW = datetime(2026, 3, 14, 9, 0, tzinfo=dt_timezone.utc)


class CheckoutOrchestratorTests(TestCase):
    """
    Orchestrator state machine.

    GUARANTEES:
    - validation failures never reach the network and keep the draft
    - offline (known or discovered) queues the exact payload and clears the draft
    - success clears the draft, builds the receipt, fires side channels best-effort
    - no exception escapes finalize()
    """

    def setUp(self):
        cache.clear()
        self.storage = InMemoryQueueStorage()
        self.queue = PendingSaleQueue(self.storage, lock_key="test")
        self.connectivity = ConnectivityMonitor(cache_key="test_online")
        self.drawer = FakeDrawer()
        self.printer = FakePrinter()

    def _orchestrator(self, client, **kwargs):
        draft_catalog = kwargs.pop("catalog", None)
        return CheckoutOrchestrator(
            catalog=draft_catalog or make_draft().catalog,
            client=client,
            queue=self.queue,
            connectivity=self.connectivity,
            printer=self.printer,
            cash_drawer=self.drawer,
            clock=lambda: NOW,
            key_factory=lambda: "idem-1",
            **kwargs,
        )

    # =====================================================
    # SUCCEEDED
    # =====================================================

    def test_cash_sale_with_change(self):
        client = FakeClient([ok({"id": 501, "sale_number": 10, "has_cash_payment": True})])
        draft = make_draft(payments=(("cash", 60000, None),))

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.SUCCEEDED)
        self.assertEqual(
            outcome.history,
            [
                CheckoutState.IDLE,
                CheckoutState.VALIDATING,
                CheckoutState.CLASSIFIED,
                CheckoutState.SUBMITTING,
                CheckoutState.SUCCEEDED,
            ],
        )
        self.assertEqual(client.requests[0]["endpoint"], "/pos/sales")
        self.assertEqual(client.requests[0]["idempotency_key"], "idem-1")
        self.assertEqual(outcome.receipt.change, Decimal("10000"))
        self.assertEqual(outcome.result.document_number, "V-000501")
        self.assertTrue(draft.is_cleared)
        self.assertEqual(self.drawer.pulses, 1)
        self.assertTrue(outcome.drawer_opened)
        self.assertEqual(self.printer.printed[0][0], "ticket")
        self.assertEqual(self.printer.printed[0][1]["document_number"], "V-000501")

    def test_deferred_order_scenario(self):
        client = FakeClient([ok({"sale_id": 90, "sale_number": 10, "balance": 70000})])
        draft = make_draft(items=((100000, 1),), payments=(("separado", 30000, "cash"),))

        outcome = self._orchestrator(client).finalize(draft, document_kind="invoice")

        self.assertEqual(outcome.state, CheckoutState.SUCCEEDED)
        self.assertEqual(outcome.kind, SubmissionKind.DEFERRED_ORDER)
        self.assertEqual(client.requests[0]["endpoint"], "/separated-orders")
        self.assertEqual(client.requests[0]["payload"]["due_date"], "2026-05-14T09:00:00+00:00")
        receipt = outcome.receipt.to_dict()
        self.assertEqual(receipt["deferred"]["balance"], 70000)
        first = receipt["deferred"]["installments"][0]
        self.assertEqual(
            (first["label"], first["amount"], first["method"]),
            ("initial installment", 30000, "cash"),
        )
        self.assertEqual(receipt["change"], 0)
        self.assertEqual(self.drawer.pulses, 0)

    def test_conflict_retry_reports_final_number(self):
        client = FakeClient([conflict(), ok({"id": 1, "sale_number": 42})], next_numbers=[42])
        draft = make_draft()

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.SUCCEEDED)
        self.assertEqual(outcome.sale_number, 42)
        self.assertEqual(outcome.history.count(CheckoutState.SUBMITTING), 1)

    def test_drawer_failure_does_not_change_success(self):
        self.drawer.fail = True
        client = FakeClient([ok({"id": 1, "has_cash_payment": True})])
        draft = make_draft()

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.SUCCEEDED)
        self.assertFalse(outcome.drawer_opened)
        self.assertIn("cash_drawer_failed", outcome.warnings)
        self.assertTrue(draft.is_cleared)

    def test_drawer_not_pulsed_without_cash(self):
        client = FakeClient([ok({"id": 1, "has_cash_payment": False})])

        self._orchestrator(client).finalize(make_draft(payments=(("card", 50000, None),)))

        self.assertEqual(self.drawer.pulses, 0)

    # =====================================================
    # QUEUED
    # =====================================================

    def test_network_failure_queues_exact_payload(self):
        client = FakeClient([offline()])
        draft = make_draft(payments=(("cash", 60000, None),))

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.QUEUED)
        self.assertEqual(outcome.history[-2:], [CheckoutState.SUBMITTING, CheckoutState.QUEUED])
        stored = self.queue.list()
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].body_bytes(), client.requests[0]["body"])
        self.assertEqual(stored[0].idempotency_key, "idem-1")
        self.assertEqual(stored[0].summary.total, 50000)
        self.assertTrue(draft.is_cleared)
        self.assertFalse(self.connectivity.is_online())
        self.assertIsNone(outcome.error_code)

    def test_network_failure_after_refresh_queues_refreshed_number(self):
        client = FakeClient([conflict(), offline()], next_numbers=[42])

        outcome = self._orchestrator(client).finalize(make_draft())

        self.assertEqual(outcome.state, CheckoutState.QUEUED)
        self.assertEqual(self.queue.list()[0].payload["sale_number_preassigned"], 42)
        self.assertEqual(self.queue.list()[0].idempotency_key, "idem-1:42")

    def test_known_offline_skips_network(self):
        self.connectivity.mark_offline()
        client = FakeClient([])
        draft = make_draft()

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.QUEUED)
        self.assertNotIn(CheckoutState.SUBMITTING, outcome.history)
        self.assertEqual(client.requests, [])
        self.assertEqual(self.queue.list()[0].payload["sale_number_preassigned"], 10)
        self.assertTrue(draft.is_cleared)

    # =====================================================
    # REJECTED / FATAL
    # =====================================================

    def test_mixed_payment_kinds_rejected_before_network(self):
        client = FakeClient([])
        draft = make_draft(
            items=((100000, 1),),
            payments=(("separado", 30000, "cash"), ("cash", 70000, None)),
        )

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.REJECTED)
        self.assertIsInstance(outcome.error, MixedPaymentKindsUnsupported)
        self.assertEqual(client.requests, [])
        self.assertFalse(draft.is_cleared)
        self.assertEqual(len(draft.payment_lines), 2)

    def test_empty_cart_rejected(self):
        draft = make_draft()
        draft.items = []

        outcome = self._orchestrator(FakeClient([])).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.REJECTED)
        self.assertIsInstance(outcome.error, EmptyCartError)
        self.assertEqual(outcome.error_code, "EMPTY_CART")

    def test_missing_sale_number_is_fetched(self):
        client = FakeClient([ok({"id": 1})], next_numbers=[77])
        draft = make_draft(sale_number=None)

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(client.requests[0]["payload"]["sale_number_preassigned"], 77)
        self.assertEqual(outcome.sale_number, 77)

    def test_unavailable_sale_number_rejects(self):
        draft = make_draft(sale_number=None)

        outcome = self._orchestrator(FakeClient([])).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.REJECTED)
        self.assertIsInstance(outcome.error, SaleNumberUnavailable)
        self.assertFalse(draft.is_cleared)

    def test_mixed_kinds_without_sale_number_never_ask_the_counter(self):
        client = FakeClient([], next_numbers=[77])
        draft = make_draft(
            items=((100000, 1),),
            payments=(("separado", 30000, "cash"), ("cash", 70000, None)),
            sale_number=None,
        )

        outcome = self._orchestrator(client).finalize(draft)

        self.assertIsInstance(outcome.error, MixedPaymentKindsUnsupported)
        self.assertEqual(client.refresh_calls, 0)
        self.assertEqual(client.requests, [])

    def test_known_offline_without_sale_number_skips_network(self):
        self.connectivity.mark_offline()
        client = FakeClient([], next_numbers=[77])
        draft = make_draft(sale_number=None)

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.REJECTED)
        self.assertIsInstance(outcome.error, SaleNumberUnavailable)
        self.assertEqual(client.refresh_calls, 0)
        self.assertEqual(len(self.queue), 0)
        self.assertFalse(draft.is_cleared)

    def test_persistence_rejection_preserves_draft(self):
        client = FakeClient([rejected(400, {"detail": "Register is closed"})])
        draft = make_draft()

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.REJECTED)
        self.assertIsInstance(outcome.error, PersistenceRejected)
        self.assertEqual(outcome.message, "Register is closed")
        self.assertFalse(draft.is_cleared)
        self.assertEqual(self.queue.list(), [])

    def test_unresolved_conflict_is_fatal(self):
        client = FakeClient([conflict(), conflict()], next_numbers=[42])
        draft = make_draft()

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.FATAL)
        self.assertIsInstance(outcome.error, NumberingConflictUnresolved)
        self.assertEqual(outcome.error_code, "NUMBERING_CONFLICT")
        self.assertEqual(len(client.requests), 2)
        self.assertFalse(draft.is_cleared)

    def test_unexpected_error_is_fatal_and_surfaced(self):
        client = FakeClient([RuntimeError("disk on fire")])
        draft = make_draft()

        outcome = self._orchestrator(client).finalize(draft)

        self.assertEqual(outcome.state, CheckoutState.FATAL)
        self.assertEqual(outcome.message, "disk on fire")
        self.assertFalse(draft.is_cleared)
        self.assertEqual(outcome.to_dict()["error"]["code"], "CHECKOUT_FAILED")
