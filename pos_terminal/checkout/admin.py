from django.contrib import admin

from .models import PaymentMethod, StoredCollection

# =====================================================
# PAYMENT METHOD ADMIN
# =====================================================


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = (
        "slug",
        "name",
        "is_active",
        "allow_change",
        "is_deferred",
        "order_index",
    )
    list_editable = ("is_active", "order_index")
    list_filter = ("is_active", "allow_change", "is_deferred")
    search_fields = ("slug", "name")
    ordering = ("order_index", "name")


# =====================================================
# STORED COLLECTION ADMIN (READ-ONLY)
# =====================================================


@admin.register(StoredCollection)
class StoredCollectionAdmin(admin.ModelAdmin):
    list_display = ("key", "item_count", "updated_at")
    readonly_fields = ("key", "data", "item_count", "updated_at")
    search_fields = ("key",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
