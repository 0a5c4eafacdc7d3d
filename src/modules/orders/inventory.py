"""Stock release and attempt closing shared by cancellation and settlement.

Both run inside the caller's transaction with the order row already locked.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Dict

import structlog
from django.utils import timezone

from modules.payments.constants import OPEN_ATTEMPT_STATES, AttemptStatus

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


def release_order_stock(order: Order, product_repository: IProductRepository) -> Dict[str, int]:
    """Return every item's quantity to its product.

    Products are locked in PK order. SOLD_OUT products with stock again flip
    back to IN_STOCK. Returns the restored quantity per product id.
    """
    restored: Dict[str, int] = defaultdict(int)
    for item in order.items.all():
        restored[str(item.variant.product_id)] += item.quantity

    products = product_repository.lock_products(restored.keys())
    for product_id, quantity in restored.items():
        product = products.get(product_id)
        if product is None:
            # only reachable after manual data repair
            raise LookupError(f"Product {product_id} vanished while restocking.")
        product.restock(quantity)
        product_repository.save(product)
        logger.info(
            "order.stock_released",
            order_id=str(order.id),
            product_id=product_id,
            quantity=quantity,
            restored_stock=product.quantity,
            product_status=product.status,
        )
    return dict(restored)


def close_open_attempts(order: Order) -> int:
    """Mark the order's still-open payment attempts CANCELLED."""
    return order.payments.filter(status__in=OPEN_ATTEMPT_STATES).update(
        status=AttemptStatus.CANCELLED, updated_at=timezone.now()
    )
