# checkout/tests/test_commands.py

from io import StringIO
from unittest import mock

from django.conf import settings
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase

from checkout.services import wiring
from checkout.services.checkout_orchestrator import CheckoutState
from checkout.services.pending_queue import build_summary

from .fakes import FakeClient, make_draft, ok, offline, rejected


class ReplayPendingSalesCommandTests(TestCase):
    def setUp(self):
        cache.clear()
        self.queue = wiring.build_queue()
        self.record = self.queue.enqueue(
            endpoint="/pos/sales",
            payload={"sale_number_preassigned": 31, "items": [], "payments": []},
            summary=build_summary(
                sale_number=31,
                total=20000,
                method_label="Cash",
                customer_name="Ana",
                vendor_name=None,
                is_deferred=False,
            ),
        )

    def _run(self, client, *args):
        out = StringIO()
        with mock.patch.object(wiring, "build_client", return_value=client):
            call_command("replay_pending_sales", *args, stdout=out, stderr=StringIO())
        return out.getvalue()

    def test_list_sends_nothing(self):
        client = FakeClient([])

        output = self._run(client, "--list")

        self.assertIn("Pending sales: 1", output)
        self.assertIn("#31", output)
        self.assertEqual(client.requests, [])

    def test_replay_all(self):
        output = self._run(FakeClient([ok({"id": 9})]))

        self.assertIn("sent=1 failed=0 remaining=0", output)
        self.assertEqual(len(self.queue), 0)

    def test_replay_one_by_id(self):
        output = self._run(FakeClient([ok({"id": 9})]), "--id", self.record.id)

        self.assertIn(f"SENT {self.record.id} as #31", output)
        self.assertEqual(len(self.queue), 0)

    def test_offline_exits_with_two_and_keeps_record(self):
        with self.assertRaises(SystemExit) as ctx:
            self._run(FakeClient([offline()]), "--id", self.record.id)

        self.assertEqual(ctx.exception.code, 2)
        self.assertEqual(len(self.queue), 1)

    def test_rejected_record_fails_the_run(self):
        with self.assertRaises(SystemExit) as ctx:
            self._run(FakeClient([rejected(422, {"detail": "Unknown product"})]))

        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(len(self.queue), 1)


class WatchConnectivityCommandTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_single_check_reports_state(self):
        out = StringIO()
        with mock.patch.object(wiring, "build_client", return_value=FakeClient(online=False)):
            call_command("watch_connectivity", "--once", stdout=out)

        self.assertIn("online=False", out.getvalue())

    def test_reconnect_replays_queue(self):
        queue = wiring.build_queue()
        queue.enqueue(
            endpoint="/pos/sales",
            payload={"sale_number_preassigned": 5},
            summary=build_summary(
                sale_number=5, total=1000, method_label="Cash",
                customer_name=None, vendor_name=None, is_deferred=False,
            ),
        )
        wiring.build_connectivity(client=FakeClient()).mark_offline()

        out = StringIO()
        with mock.patch.object(wiring, "build_client", return_value=FakeClient([ok({"id": 3})])):
            call_command("watch_connectivity", "--once", stdout=out)

        self.assertIn("Reconnected", out.getvalue())
        self.assertEqual(len(queue), 0)

    def test_watcher_clears_offline_flag_set_by_checkout(self):
        with mock.patch.object(wiring, "build_client", return_value=FakeClient([offline()])):
            outcome = wiring.build_orchestrator().finalize(make_draft())
        self.assertEqual(outcome.state, CheckoutState.QUEUED)
        self.assertFalse(wiring.build_connectivity(client=FakeClient()).is_online())

        with mock.patch.object(wiring, "build_client", return_value=FakeClient([ok({"id": 8})])):
            call_command("watch_connectivity", "--once", stdout=StringIO())

        self.assertTrue(wiring.build_connectivity(client=FakeClient()).is_online())
        self.assertEqual(len(wiring.build_queue()), 0)

    def test_flag_lives_in_a_cache_shared_across_processes(self):
        self.assertEqual(settings.CACHES["default"]["BACKEND"], "django.core.cache.backends.db.DatabaseCache")
