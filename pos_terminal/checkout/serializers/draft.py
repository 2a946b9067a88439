# checkout/serializers/draft.py

"""
SALE DRAFT INPUT SERIALIZER

Purpose:
- Accept the cashier UI's draft (cart, payment lines, customer, adjustments).
- Turn it into a SaleDraft value for the checkout orchestrator.

Notes:
- Totals are recomputed server-side from items; the UI never sends them.
- Each payment method appears at most once (one line per method).
"""

from rest_framework import serializers

from checkout.services.allocation import PaymentAllocation, PaymentLine
from checkout.services.draft import CartDiscount, CartItem, CustomerRef, SaleDraft, Surcharge
from checkout.services.payment_catalog import PaymentMethodCatalog


class CartItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    line_discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, required=False, default=0
    )
    product_sku = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    product_barcode = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)

    def validate(self, attrs):
        gross = attrs["unit_price"] * attrs["quantity"]
        if attrs.get("line_discount", 0) > gross:
            raise serializers.ValidationError({"line_discount": "Line discount cannot exceed the line value."})
        return attrs


class PaymentLineInputSerializer(serializers.Serializer):
    method = serializers.CharField(max_length=64)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    settlement_method = serializers.CharField(
        max_length=64, required=False, allow_null=True, allow_blank=True, default=None
    )


class CustomerInputSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False, allow_null=True, default=None)
    name = serializers.CharField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    email = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    tax_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    address = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class SurchargeInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    method = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True, default=None)


class CartDiscountInputSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=[CartDiscount.KIND_VALUE, CartDiscount.KIND_PERCENT])
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)

    def validate(self, attrs):
        if attrs["kind"] == CartDiscount.KIND_PERCENT and attrs["amount"] > 100:
            raise serializers.ValidationError({"amount": "Percent discount cannot exceed 100."})
        return attrs


class SaleDraftInputSerializer(serializers.Serializer):
    items = CartItemInputSerializer(many=True)
    payments = PaymentLineInputSerializer(many=True)
    customer = CustomerInputSerializer(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    surcharge = SurchargeInputSerializer(required=False, allow_null=True, default=None)
    cart_discount = CartDiscountInputSerializer(required=False, allow_null=True, default=None)
    sale_number = serializers.IntegerField(required=False, allow_null=True, min_value=1, default=None)
    due_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    vendor_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    document_kind = serializers.ChoiceField(choices=["ticket", "invoice"], required=False, default="ticket")

    def validate_payments(self, value):
        seen = set()
        for row in value:
            slug = row["method"].strip().lower()
            if slug in seen:
                raise serializers.ValidationError(f"Payment method '{slug}' appears more than once.")
            seen.add(slug)
        return value

    def to_draft(self, *, catalog: PaymentMethodCatalog, pos_name=None, station_id=None, vendor_name=None) -> SaleDraft:
        data = self.validated_data

        items = [
            CartItem(
                product_id=row["product_id"],
                product_name=row["product_name"],
                quantity=row["quantity"],
                unit_price=row["unit_price"],
                line_discount=row.get("line_discount") or 0,
                product_sku=row.get("product_sku") or None,
                product_barcode=row.get("product_barcode") or None,
            )
            for row in data["items"]
        ]

        lines = [
            PaymentLine(
                id=index,
                method=row["method"].strip().lower(),
                amount=row["amount"],
                settlement_method=(row.get("settlement_method") or "").strip().lower() or None,
            )
            for index, row in enumerate(data["payments"], start=1)
        ]

        customer = None
        raw_customer = data.get("customer")
        if raw_customer and (raw_customer.get("id") is not None or raw_customer.get("name")):
            customer = CustomerRef(
                id=raw_customer.get("id"),
                name=raw_customer.get("name") or None,
                phone=raw_customer.get("phone") or None,
                email=raw_customer.get("email") or None,
                tax_id=raw_customer.get("tax_id") or None,
                address=raw_customer.get("address") or None,
            )

        surcharge = None
        if data.get("surcharge"):
            surcharge = Surcharge(amount=data["surcharge"]["amount"], method=data["surcharge"].get("method") or None)

        cart_discount = None
        if data.get("cart_discount"):
            cart_discount = CartDiscount(kind=data["cart_discount"]["kind"], amount=data["cart_discount"]["amount"])

        return SaleDraft(
            catalog=catalog,
            items=items,
            payments=PaymentAllocation(catalog, lines),
            customer=customer,
            notes=data.get("notes") or "",
            surcharge=surcharge,
            cart_discount=cart_discount,
            sale_number=data.get("sale_number"),
            due_date=data.get("due_date"),
            vendor_name=data.get("vendor_name") or vendor_name,
            pos_name=pos_name,
            station_id=station_id,
        )
