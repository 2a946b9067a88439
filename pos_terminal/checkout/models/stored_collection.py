# checkout/models/stored_collection.py

"""
STORED COLLECTION

Durable keyed JSON collection (one row per key).

Used by the pending-sales queue:
- the whole list is read and rewritten in one transaction
- the row is locked (select_for_update) while it is rewritten
"""

from django.db import models


class StoredCollection(models.Model):
    key = models.CharField(max_length=128, unique=True)
    data = models.JSONField(default=list, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    @property
    def item_count(self) -> int:
        return len(self.data) if isinstance(self.data, list) else 0

    def __str__(self):
        return f"{self.key} ({self.item_count} items)"
