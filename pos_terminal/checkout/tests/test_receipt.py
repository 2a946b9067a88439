from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from checkout.services.classifier import SubmissionKind
from checkout.services.draft import CartDiscount, CustomerRef, Surcharge
from checkout.services.receipt import SaleSubmissionResult, build_receipt

from .fakes import make_draft

SUBMITTED = datetime(2026, 5, 2, 10, 30, tzinfo=dt_timezone.utc)


class SaleSubmissionResultTests(SimpleTestCase):
    def test_direct_sale_fields(self):
        result = SaleSubmissionResult.from_response(
            SubmissionKind.DIRECT_SALE,
            {
                "id": 77,
                "sale_number": 1204,
                "total": 50000,
                "customer_name": "Ana",
                "customer_phone": "300",
                "has_cash_payment": True,
            },
        )

        self.assertEqual(result.record_id, 77)
        self.assertEqual(result.document_number, "V-000077")
        self.assertEqual(result.sale_number, 1204)
        self.assertEqual(result.customer.name, "Ana")
        self.assertTrue(result.has_cash_payment)

    def test_deferred_order_fields(self):
        result = SaleSubmissionResult.from_response(
            SubmissionKind.DEFERRED_ORDER,
            {
                "id": 5,
                "sale_id": 90,
                "sale_document_number": "SEP-90",
                "total_amount": 100000,
                "balance": 70000,
                "initial_payment": 30000,
                "payments": [{"amount": 10000, "method": "nequi", "paid_at": "2026-05-10"}],
            },
        )

        self.assertEqual(result.record_id, 90)
        self.assertEqual(result.document_number, "SEP-90")
        self.assertEqual(result.sale_number, 90)
        self.assertEqual(result.balance, Decimal("70000"))
        self.assertEqual(len(result.installments), 1)

    def test_garbage_response_does_not_raise(self):
        result = SaleSubmissionResult.from_response(SubmissionKind.DIRECT_SALE, "not json")
        self.assertEqual(result.document_number, "")
        self.assertIsNone(result.sale_number)


class ReceiptBuilderTests(SimpleTestCase):
    """
    GUARANTEES:
    - change shown only when a change method was used and it is > 0
    - deferred receipts show balance + schedule, never change
    - server-echoed values win over local ones
    """

    def _direct(self, data=None):
        return SaleSubmissionResult.from_response(SubmissionKind.DIRECT_SALE, data or {"id": 1, "sale_number": 10})

    def test_cash_overpayment_shows_change(self):
        draft = make_draft(payments=(("cash", 60000, None),))

        receipt = build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED)

        self.assertEqual(receipt.total, Decimal("50000"))
        self.assertEqual(receipt.change, Decimal("10000"))
        self.assertTrue(receipt.show_change)
        self.assertEqual(receipt.to_dict()["change"], 10000)

    def test_exact_card_payment_hides_change(self):
        draft = make_draft(payments=(("card", 50000, None),))

        receipt = build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED)

        self.assertFalse(receipt.show_change)
        self.assertEqual(receipt.change, Decimal("0"))
        self.assertEqual(receipt.payments[0].label, "Card terminal")

    def test_server_item_total_is_authoritative(self):
        draft = make_draft(items=((10000, 2), (5000, 1)), payments=(("cash", 25000, None),))
        result = self._direct({"id": 1, "items": [{"product_id": 1, "total": 18000}]})

        receipt = build_receipt(draft, result, draft.catalog, submitted_at=SUBMITTED)

        self.assertEqual([i.total for i in receipt.items], [Decimal("18000"), Decimal("5000")])

    def test_deferred_receipt_schedule_and_balance(self):
        draft = make_draft(
            items=((100000, 1),),
            payments=(("separado", 30000, "cash"),),
            customer=CustomerRef(id=4, name="Ana"),
        )
        result = SaleSubmissionResult.from_response(
            SubmissionKind.DEFERRED_ORDER,
            {
                "sale_id": 90,
                "balance": 70000,
                "due_date": "2026-07-02",
                "payments": [{"amount": 5000, "method": "nequi", "paid_at": "2026-05-03"}],
            },
        )

        receipt = build_receipt(draft, result, draft.catalog, submitted_at=SUBMITTED)
        data = receipt.to_dict()

        self.assertEqual(receipt.change, Decimal("0"))
        self.assertFalse(receipt.show_change)
        self.assertEqual(receipt.balance, Decimal("70000"))
        first = data["deferred"]["installments"][0]
        self.assertEqual(first["label"], "initial installment")
        self.assertEqual(first["amount"], 30000)
        self.assertEqual(first["method"], "cash")
        self.assertEqual(first["paid_at"], SUBMITTED.isoformat())
        self.assertEqual(data["deferred"]["installments"][1]["label"], "installment 2")
        self.assertEqual(data["deferred"]["installments"][1]["method_label"], "Nequi")
        self.assertEqual(data["deferred"]["due_date"], "2026-07-02")
        self.assertEqual(data["customer"]["name"], "Ana")

    def test_deferred_balance_falls_back_to_local_shortfall(self):
        draft = make_draft(items=((100000, 1),), payments=(("separado", 30000, "cash"),))
        result = SaleSubmissionResult.from_response(SubmissionKind.DEFERRED_ORDER, {"sale_id": 90})

        receipt = build_receipt(draft, result, draft.catalog, submitted_at=SUBMITTED)

        self.assertEqual(receipt.balance, Decimal("70000"))

    def test_cart_discount_shows_declared_kind(self):
        draft = make_draft(items=((100000, 1),), payments=(("cash", 90000, None),))
        draft.cart_discount = CartDiscount(kind="percent", amount=10)
        receipt = build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED)
        self.assertEqual((receipt.cart_discount_label, receipt.cart_discount_display), ("Cart discount (%)", "-10%"))

        draft.cart_discount = CartDiscount(kind="value", amount=10000)
        receipt = build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED)
        self.assertEqual(
            (receipt.cart_discount_label, receipt.cart_discount_display),
            ("Cart discount (value)", "-10,000"),
        )

    def test_surcharge_label_prefers_server(self):
        draft = make_draft(payments=(("cash", 52000, None),))
        draft.surcharge = Surcharge(amount=2000, method="addi")

        local = build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED)
        echoed = build_receipt(
            draft,
            self._direct({"id": 1, "surcharge_amount": 2500, "surcharge_label": "Addi fee"}),
            draft.catalog,
            submitted_at=SUBMITTED,
        )

        self.assertEqual((local.surcharge_label, local.surcharge_amount), ("Surcharge Addi", Decimal("2000")))
        self.assertEqual((echoed.surcharge_label, echoed.surcharge_amount), ("Addi fee", Decimal("2500")))

    def test_no_surcharge_when_zero(self):
        draft = make_draft()
        receipt = build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED)
        self.assertIsNone(receipt.surcharge_label)
        self.assertIsNone(receipt.to_dict()["surcharge_amount"])

    def test_unknown_document_kind_is_rejected(self):
        draft = make_draft()
        with self.assertRaises(ValueError):
            build_receipt(draft, self._direct(), draft.catalog, submitted_at=SUBMITTED, document_kind="label")
