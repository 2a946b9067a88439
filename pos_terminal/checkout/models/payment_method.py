# checkout/models/payment_method.py

"""
PAYMENT METHOD CATALOG (LOCAL COPY)

Purpose:
- Station-side copy of the payment-method catalog the cashier picks from.
- Drives change eligibility and the deferred-kind predicate.

Rules:
- slug is the wire identifier sent to the persistence API.
- is_deferred marks credit/installment ("separado") lines; those need a
  settlement method and go to the deferred-order endpoint.
"""

from django.db import models


class PaymentMethod(models.Model):
    slug = models.SlugField(max_length=64, unique=True)
    name = models.CharField(max_length=128)
    description = models.CharField(max_length=255, blank=True, default="")

    is_active = models.BooleanField(default=True)
    allow_change = models.BooleanField(
        default=False,
        help_text="Overpayment with this method is returned as change.",
    )
    is_deferred = models.BooleanField(
        default=False,
        help_text="Installment/layaway method. Requires a settlement method.",
    )

    order_index = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order_index", "name"]

    def __str__(self):
        return f"{self.name} ({self.slug})"
