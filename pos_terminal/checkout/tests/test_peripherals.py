# checkout/tests/test_peripherals.py

import os
import tempfile

from django.test import SimpleTestCase, override_settings

from checkout.services.peripherals import (
    DRAWER_PULSE,
    EscPosCashDrawer,
    LoggingReceiptPrinter,
    cash_drawer_from_settings,
    printer_from_settings,
)


class EscPosCashDrawerTests(SimpleTestCase):
    def test_writes_pulse_to_device(self):
        with tempfile.TemporaryDirectory() as tmp:
            device = os.path.join(tmp, "drawer")

            self.assertTrue(EscPosCashDrawer(device).open())

            with open(device, "rb") as fh:
                self.assertEqual(fh.read(), DRAWER_PULSE)

    def test_missing_device_reports_failure(self):
        drawer = EscPosCashDrawer("/nonexistent/dir/drawer")
        self.assertFalse(drawer.open())


class PeripheralSettingsTests(SimpleTestCase):
    @override_settings(CASH_DRAWER_DEVICE="/dev/usb/lp0", CASH_DRAWER_AUTO_OPEN=False)
    def test_drawer_disabled_without_auto_open(self):
        self.assertIsNone(cash_drawer_from_settings())

    @override_settings(CASH_DRAWER_DEVICE="/dev/usb/lp0", CASH_DRAWER_AUTO_OPEN=True)
    def test_drawer_built_from_settings(self):
        drawer = cash_drawer_from_settings()
        self.assertIsInstance(drawer, EscPosCashDrawer)
        self.assertEqual(drawer.device_path, "/dev/usb/lp0")

    @override_settings(POS_RECEIPT_PRINTER="checkout.services.peripherals.LoggingReceiptPrinter")
    def test_printer_loaded_by_dotted_path(self):
        self.assertIsInstance(printer_from_settings(), LoggingReceiptPrinter)

    @override_settings(POS_RECEIPT_PRINTER="")
    def test_no_printer_by_default(self):
        self.assertIsNone(printer_from_settings())
