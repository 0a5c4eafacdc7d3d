"""Staff notification for newly placed orders."""

from __future__ import annotations

from typing import Tuple

import structlog

from modules.core.mail import send_to_staff
from modules.orders.models import Order

logger = structlog.get_logger(__name__)


def send_order_placed_notification(order_id: str) -> Tuple[int, int]:
    order = (
        Order.objects.select_related("user")
        .prefetch_related("items__variant__product")
        .filter(id=order_id)
        .first()
    )
    if order is None:
        logger.warning("order.notification_skipped", order_id=order_id)
        return 0, 0
    return send_to_staff(
        subject=f"Đơn hàng mới {order.order_number}",
        template="orders/order_placed",
        context={"order": order, "items": list(order.items.all())},
    )
