from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from checkout.services.money import (
    compute_change,
    format_money,
    money_to_wire,
    percent_of,
    sum_money,
    to_money,
)


class MoneyHelperTests(SimpleTestCase):
    """
    GUARANTEES:
    - amounts quantize to CURRENCY_DECIMAL_PLACES with ROUND_HALF_UP
    - wire values are JSON-native numbers
    - change is never negative and always zero for deferred orders
    """

    def test_whole_currency_rounds_half_up(self):
        self.assertEqual(to_money("1000.5"), Decimal("1001"))
        self.assertEqual(to_money("1000.49"), Decimal("1000"))
        self.assertEqual(to_money(None), Decimal("0"))

    def test_invalid_amounts_are_rejected(self):
        for bad in ("abc", True, "NaN", "Infinity"):
            with self.subTest(bad=bad):
                with self.assertRaises(ValueError):
                    to_money(bad)

    @override_settings(CURRENCY_DECIMAL_PLACES=2)
    def test_two_decimal_places(self):
        self.assertEqual(to_money("10.005"), Decimal("10.01"))
        self.assertEqual(money_to_wire("10.50"), 10.5)
        self.assertEqual(format_money("1234567.5"), "1,234,567.50")

    def test_wire_value_is_int_when_integral(self):
        value = money_to_wire(Decimal("50000"))
        self.assertEqual(value, 50000)
        self.assertIsInstance(value, int)

    @override_settings(MONEY_THOUSANDS_SEPARATOR=".")
    def test_format_money_uses_configured_separator(self):
        self.assertEqual(format_money(1250000), "1.250.000")
        self.assertEqual(format_money(-70000), "-70.000")

    def test_percent_and_sum(self):
        self.assertEqual(percent_of(80000, 10), Decimal("8000"))
        self.assertEqual(sum_money(["100", 200, Decimal("300")]), Decimal("600"))

    def test_change_is_overpayment_only(self):
        self.assertEqual(compute_change(paid=60000, total=50000, deferred=False), Decimal("10000"))
        self.assertEqual(compute_change(paid=40000, total=50000, deferred=False), Decimal("0"))

    def test_deferred_orders_never_give_change(self):
        self.assertEqual(compute_change(paid=60000, total=50000, deferred=True), Decimal("0"))
