"""Order service layer (use cases).

Orchestrates checkout, staff status updates and cancellation. Every write
is atomic and the service defines the unit-of-work boundary.

Rules enforced:
- Checkout locks products in PK order, rejects unavailable products and
  variants outside their sale window, and reserves stock.
- COD orders start UNPAID, online orders PENDING.
- Status transitions follow the order state machine; history is recorded on
  every change.
- Cancellation writes ``status`` and ``payment_status`` CANCELLED together,
  closes open payment attempts and releases stock.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

import structlog
from django.db import models, transaction
from django.utils import timezone

from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.events import OrderCancelled, OrderCreated, OrderStatusChanged
from modules.orders.exceptions import (
    InactiveProduct,
    InsufficientStock,
    InvalidOrderStatus,
    OrderNotFound,
    ProductNotFound,
    VariantNotFound,
    VariantUnavailable,
)
from modules.orders.inventory import close_open_attempts, release_order_stock
from modules.orders.tasks import notify_admins_order_placed

if TYPE_CHECKING:
    from modules.orders.dtos import CheckoutDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def checkout(self, dto: CheckoutDTO) -> Order:
        """Place an order with atomic stock reservation.

        Steps:
        1. Return the existing order when the idempotency key was seen.
        2. Resolve variants, lock their products (PK order).
        3. Validate availability, sale window and stock per line; deduct stock.
        4. Persist order + items, history and ``OrderCreated``.
        5. Notify staff once the transaction commits.

        Raises:
            VariantNotFound: a line references an unknown variant.
            ProductNotFound: the variant's product is gone.
            InactiveProduct: the product is not IN_STOCK.
            VariantUnavailable: the variant is outside its sale window.
            InsufficientStock: not enough stock for a line.
        """
        log = logger.bind(user_id=dto.user_id, payment_method=dto.payment_method)
        log.info("order.checkout_started")

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(
                dto.user_id, dto.idempotency_key
            )
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        variants = self._product_repo.get_variants(str(i.variant_id) for i in dto.items)
        for item in dto.items:
            if str(item.variant_id) not in variants:
                raise VariantNotFound(f"Variant {item.variant_id} not found.")

        products = self._product_repo.lock_products(
            str(v.product_id) for v in variants.values()
        )

        now = timezone.now()
        lines = []
        for item in sorted(
            dto.items, key=lambda i: str(variants[str(i.variant_id)].product_id)
        ):
            variant = variants[str(item.variant_id)]
            product = products.get(str(variant.product_id))
            if product is None or product.is_deleted:
                raise ProductNotFound(f"Product of variant {variant.id} not found.")
            if not product.is_available:
                raise InactiveProduct(f"Product {product.sku} is not available.")
            if not variant.is_on_sale(now):
                raise VariantUnavailable(
                    f"Variant {product.sku}/{variant.size} is not on sale."
                )
            if product.quantity < item.quantity:
                raise InsufficientStock(
                    f"Product {product.sku}: requested {item.quantity}, "
                    f"available {product.quantity}."
                )

            product.reserve(item.quantity)
            log.info(
                "order.stock_reserved",
                product_id=str(product.id),
                quantity=item.quantity,
                remaining=product.quantity,
            )
            lines.append(
                {
                    "variant_id": variant.id,
                    "quantity": item.quantity,
                    "unit_price": variant.price,
                }
            )

        for product in products.values():
            self._product_repo.save(product)

        payment_status = (
            PaymentStatus.UNPAID
            if dto.payment_method == PaymentMethod.COD
            else PaymentStatus.PENDING
        )
        order = self._order_repo.create(
            {
                "user_id": dto.user_id,
                "payment_method": dto.payment_method,
                "payment_status": payment_status,
                "delivery_address": dto.delivery_address,
                "items": lines,
                "notes": dto.notes or "",
                "idempotency_key": dto.idempotency_key,
            }
        )
        order.add_domain_event(OrderCreated(aggregate_id=order.id))
        self._order_repo.save(order)

        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.PENDING,
            notes="Order created",
            user_id=dto.user_id,
        )

        order_id = str(order.id)
        transaction.on_commit(lambda: notify_admins_order_placed.delay(order_id))

        log.info("order.created", order_id=order_id, amount=order.amount)
        return self._order_repo.get_by_id(order_id) or order

    @transaction.atomic
    def update_status(
        self,
        order_id: UUID,
        new_status: str,
        notes: str = "",
        user_id: Optional[int] = None,
    ) -> Order:
        """Staff transition along the fulfilment state machine.

        Completing a COD order records the cash as collected (PAID).

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: transition is not allowed.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
        )

        if new_status == OrderStatus.CANCELLED or not order.can_transition_to(
            new_status
        ):
            log.warning("order.invalid_transition")
            raise InvalidOrderStatus(
                f"Cannot transition from {order.status} to {new_status}."
            )

        old_status = order.status
        order.status = new_status
        if (
            new_status == OrderStatus.COMPLETED
            and order.payment_method == PaymentMethod.COD
            and order.can_transition_payment_to(PaymentStatus.PAID)
        ):
            order.payment_status = PaymentStatus.PAID
            log.info("order.cod_collected")

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id, old_status=old_status, new_status=new_status
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
            user_id=user_id,
        )

        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order_id)) or order

    @transaction.atomic
    def cancel_order(
        self,
        order_id: UUID,
        notes: str = "",
        user_id: Optional[int] = None,
        is_staff: bool = False,
    ) -> Order:
        """Cancel an order and release its stock.

        The order row is locked first so concurrent cancellations (or the
        settlement job) cannot release stock twice. Shoppers may only cancel
        their own orders; paid orders are refused since refunds are handled
        outside this system.

        Raises:
            OrderNotFound: order does not exist or belongs to someone else.
            InvalidOrderStatus: cancellation not allowed from current state.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order or (not is_staff and order.user_id != user_id):
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            payment_status=order.payment_status,
        )

        if not order.can_transition_to(
            OrderStatus.CANCELLED
        ) or not order.can_transition_payment_to(PaymentStatus.CANCELLED):
            log.warning("order.cancel_not_allowed")
            raise InvalidOrderStatus(
                f"Cannot cancel order in status {order.status}/{order.payment_status}."
            )

        release_order_stock(order, self._product_repo)
        closed = close_open_attempts(order)

        old_status = order.status
        order.status = OrderStatus.CANCELLED
        order.payment_status = PaymentStatus.CANCELLED
        order.add_domain_event(
            OrderCancelled(aggregate_id=order.id, reason=notes or "cancelled")
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.CANCELLED,
            notes=notes or "Order cancelled",
            old_status=old_status,
            user_id=user_id,
        )

        log.info("order.cancelled", closed_attempts=closed)
        return self._order_repo.get_by_id(str(order_id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(
        self, order_id: str, user_id: Optional[int] = None, is_staff: bool = False
    ) -> Order:
        """Raises ``OrderNotFound`` when missing or not owned by a non-staff caller."""
        order = self._order_repo.get_by_id(order_id)
        if not order or (not is_staff and order.user_id != user_id):
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(
        self, user_id: Optional[int] = None, is_staff: bool = False
    ) -> "models.QuerySet[Order]":
        filters: Dict[str, Any] = {} if is_staff else {"user_id": user_id}
        return self._order_repo.list(filters)
