"""Order domain constants.

Two state machines live on an order: the fulfilment ``status`` and the
``payment_status``. Cancellation always moves both to CANCELLED together.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Chờ xác nhận"
    CONFIRMED = "CONFIRMED", "Đã xác nhận"
    SHIPPED = "SHIPPED", "Đang giao"
    COMPLETED = "COMPLETED", "Hoàn thành"
    CANCELLED = "CANCELLED", "Đã hủy"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Chờ thanh toán"
    UNPAID = "UNPAID", "Chưa thanh toán (COD)"
    PAID = "PAID", "Đã thanh toán"
    FAILED = "FAILED", "Thanh toán thất bại"
    CANCELLED = "CANCELLED", "Đã hủy"


class PaymentMethod(models.TextChoices):
    COD = "COD", "Thanh toán khi nhận hàng"
    VNPAY = "VNPAY", "VNPay"
    MOMO = "MOMO", "MoMo"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    PaymentStatus.PENDING: {
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.FAILED: {
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.UNPAID: {PaymentStatus.PAID, PaymentStatus.CANCELLED},
    PaymentStatus.PAID: set(),
    PaymentStatus.CANCELLED: set(),
}

TERMINAL_PAYMENT_STATES: set[str] = {PaymentStatus.PAID, PaymentStatus.CANCELLED}

# payment states the settlement job may cancel; UNPAID (COD) is never auto-cancelled
SETTLEABLE_PAYMENT_STATES: set[str] = {PaymentStatus.PENDING, PaymentStatus.FAILED}

ONLINE_PAYMENT_METHODS: set[str] = {PaymentMethod.VNPAY, PaymentMethod.MOMO}

ORDER_NUMBER_MAX_RETRIES = 5

AUTO_CANCEL_NOTE = "Auto-cancelled: payment timeout"
