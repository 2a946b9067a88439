# checkout/apps.py

"""
CHECKOUT APP CONFIG

POS station checkout core:
- Payment allocation + validation
- Sale submission to the persistence API (numbering conflict retry)
- Durable offline queue + replay
- Receipt payload for the printing collaborator
"""

from django.apps import AppConfig


class CheckoutConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "checkout"
    verbose_name = "POS Checkout"
