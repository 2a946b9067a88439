# checkout/serializers/payment_method.py

from rest_framework import serializers


class CatalogEntrySerializer(serializers.Serializer):
    """Catalog entry as the cashier UI sees it (database row or built-in default)."""

    slug = serializers.CharField()
    name = serializers.CharField()
    allow_change = serializers.BooleanField()
    is_deferred = serializers.BooleanField()
    is_active = serializers.BooleanField()
    order_index = serializers.IntegerField()
