"""Order DRF serializers for API input/output.

Serializers validate the HTTP payload; business rules live in the services,
which receive pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.payments.models import Payment

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CheckoutItemSerializer(serializers.Serializer):
    variant_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class CheckoutSerializer(serializers.Serializer):
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.COD
    )
    delivery_address = serializers.CharField(max_length=500)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)

    def validate_status(self, value: str) -> str:
        if value == OrderStatus.CANCELLED:
            raise serializers.ValidationError(
                "Use the /cancel/ endpoint for cancellations."
            )
        return value


class CancelOrderSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class PayOrderSerializer(serializers.Serializer):
    bank_code = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=20
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(source="variant.product_id", read_only=True)
    product_name = serializers.CharField(source="variant.product.name", read_only=True)
    size = serializers.CharField(source="variant.size", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "variant_id",
            "product_id",
            "product_name",
            "size",
            "quantity",
            "unit_price",
            "amount",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["id", "old_status", "new_status", "notes", "created_at"]
        read_only_fields = fields


class PaymentAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "method",
            "attempt",
            "transaction_ref",
            "amount",
            "status",
            "bank_code",
            "response_code",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Order detail with items, history and payment attempts."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    payments = PaymentAttemptSerializer(many=True, read_only=True)
    can_retry_payment = serializers.SerializerMethodField()
    remaining_payment_minutes = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "payment_status",
            "payment_method",
            "amount",
            "delivery_address",
            "notes",
            "can_retry_payment",
            "remaining_payment_minutes",
            "created_at",
            "updated_at",
            "items",
            "status_history",
            "payments",
        ]
        read_only_fields = fields

    def get_can_retry_payment(self, obj: Order) -> bool:
        return obj.can_retry_payment()

    def get_remaining_payment_minutes(self, obj: Order) -> int:
        return obj.remaining_payment_minutes()


class OrderListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "payment_status",
            "payment_method",
            "amount",
            "created_at",
        ]
        read_only_fields = fields
