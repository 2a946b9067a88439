# checkout/serializers/pending.py

"""
PENDING SALE SERIALIZERS

Read-only views over queued sales. The stored payload is returned as-is so the
cashier (or support) can see exactly what will be replayed.
"""

from rest_framework import serializers


class PendingSaleSummarySerializer(serializers.Serializer):
    sale_number = serializers.IntegerField()
    total = serializers.JSONField()
    method_label = serializers.CharField()
    customer_name = serializers.CharField(allow_null=True)
    vendor_name = serializers.CharField(allow_null=True)
    created_at = serializers.CharField()
    is_deferred = serializers.BooleanField()


class PendingSaleSerializer(serializers.Serializer):
    id = serializers.CharField()
    endpoint = serializers.CharField()
    sale_number = serializers.IntegerField()
    summary = PendingSaleSummarySerializer()
    payload = serializers.JSONField()


class ReplayFailureSerializer(serializers.Serializer):
    record_id = serializers.CharField()
    sale_number = serializers.IntegerField()
    code = serializers.CharField()
    message = serializers.CharField()


class ReplayedSaleSerializer(serializers.Serializer):
    record_id = serializers.CharField()
    sale_number = serializers.IntegerField()
    status = serializers.IntegerField()


class ReplayReportSerializer(serializers.Serializer):
    sent = ReplayedSaleSerializer(many=True)
    failed = ReplayFailureSerializer(many=True)
    stopped_offline = serializers.BooleanField()
    already_running = serializers.BooleanField()
    remaining = serializers.IntegerField()


class ConnectivityInputSerializer(serializers.Serializer):
    online = serializers.BooleanField()
