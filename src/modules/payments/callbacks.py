"""Provider callback handling (IPN and browser return).

``PaymentCallbackService.handle`` verifies the message, then applies exactly
one guarded transition inside a short transaction:

1. gateway verification (``SignatureInvalid`` / ``AmountMismatch``);
2. attempt look-up by transaction reference (``PaymentNotFound``);
3. lock order then attempt, compare amounts (``AmountMismatch``);
4. re-check under the lock: a terminal order or an already resolved attempt
   raises ``StaleTransition`` and nothing is written;
5. success: attempt and order PAID, order CONFIRMED; failure: FAILED.

Database errors surface as ``TransactionFailure``. On MySQL the session lock
wait is restored once the transition finishes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional

import structlog
from django.conf import settings
from django.db import DatabaseError, connection, transaction
from django.utils import timezone

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.events import OrderPaid, OrderStatusChanged
from modules.orders.inventory import close_open_attempts
from modules.payments.constants import AttemptStatus
from modules.payments.dtos import CallbackOutcome
from modules.payments.exceptions import (
    AmountMismatch,
    PaymentNotFound,
    StaleTransition,
    TransactionFailure,
)
from modules.payments.gateways import ProviderCallback, get_gateway

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.models import Payment
    from modules.payments.repositories import PaymentDjangoRepository

logger = structlog.get_logger(__name__)


class PaymentCallbackService:
    def __init__(
        self,
        order_repository: IOrderRepository,
        payment_repository: PaymentDjangoRepository,
        gateways: Optional[Mapping[str, Any]] = None,
        lock_timeout: Optional[int] = None,
    ) -> None:
        self._order_repo = order_repository
        self._payment_repo = payment_repository
        self._gateways = gateways or {}
        self._lock_timeout = (
            lock_timeout
            if lock_timeout is not None
            else settings.PAYMENT_CALLBACK_LOCK_TIMEOUT_SECONDS
        )

    def handle(self, provider: str, params: Mapping[str, Any]) -> CallbackOutcome:
        gateway = self._gateways.get(provider) or get_gateway(provider)
        log = logger.bind(provider=provider)
        try:
            callback = gateway.parse_callback(params)
        except Exception as exc:
            log.warning("payment.callback_rejected", error_type=type(exc).__name__)
            raise

        log = log.bind(
            transaction_ref=callback.transaction_ref,
            response_code=callback.response_code,
        )
        payment = self._payment_repo.get_by_ref(callback.transaction_ref)
        if payment is None or payment.method != provider:
            log.warning("payment.callback_unknown_ref")
            raise PaymentNotFound(f"No attempt {callback.transaction_ref}.")

        try:
            return self._apply(payment, callback, log)
        except DatabaseError as exc:
            log.exception("payment.callback_db_error")
            raise TransactionFailure(str(exc)) from exc

    def _apply(self, found: Payment, callback: ProviderCallback, log) -> CallbackOutcome:
        previous = self._session_lock_wait()
        try:
            return self._transition(found, callback, log)
        finally:
            if previous is not None:
                with connection.cursor() as cursor:
                    cursor.execute(
                        f"SET SESSION innodb_lock_wait_timeout = {int(previous)}"
                    )

    def _transition(
        self, found: Payment, callback: ProviderCallback, log
    ) -> CallbackOutcome:
        with transaction.atomic():
            self._set_lock_timeout()
            order = self._order_repo.get_for_update(str(found.order_id))
            payment = self._payment_repo.get_for_update(str(found.id))
            if order is None or payment is None:
                raise PaymentNotFound(f"No attempt {callback.transaction_ref}.")

            if callback.amount != payment.amount:
                log.warning(
                    "payment.amount_mismatch",
                    expected=payment.amount,
                    received=callback.amount,
                )
                raise AmountMismatch(
                    f"Expected {payment.amount}, provider reported {callback.amount}."
                )

            if (
                order.status == OrderStatus.CANCELLED
                or order.is_payment_terminal
                or not payment.is_open
            ):
                log.warning(
                    "payment.callback_stale",
                    order_status=order.status,
                    payment_status=order.payment_status,
                    attempt_status=payment.status,
                    success=callback.success,
                )
                raise StaleTransition(
                    f"Order {order.order_number} is {order.status}/"
                    f"{order.payment_status}; attempt is {payment.status}."
                )

            payment.response_code = callback.response_code
            payment.bank_code = callback.bank_code
            payment.provider_transaction_no = callback.provider_transaction_no
            if callback.success:
                self._mark_paid(order, payment)
            else:
                self._mark_failed(order, payment)

        log.info(
            "payment.callback_applied",
            order_id=str(order.id),
            success=callback.success,
            payment_status=order.payment_status,
        )
        return CallbackOutcome(
            order_id=order.id,
            order_number=order.order_number,
            transaction_ref=payment.transaction_ref,
            success=callback.success,
            payment_status=order.payment_status,
        )

    def _mark_paid(self, order: Order, payment: Payment) -> None:
        payment.status = AttemptStatus.PAID
        payment.paid_at = timezone.now()
        self._payment_repo.save(payment)
        close_open_attempts(order)

        old_status = order.status
        order.payment_status = PaymentStatus.PAID
        order.add_domain_event(
            OrderPaid(aggregate_id=order.id, transaction_ref=payment.transaction_ref)
        )
        if order.can_transition_to(OrderStatus.CONFIRMED):
            order.status = OrderStatus.CONFIRMED
            order.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=order.id,
                    old_status=old_status,
                    new_status=OrderStatus.CONFIRMED,
                )
            )
        self._order_repo.save(order)

        if order.status != old_status:
            self._order_repo.add_history(
                order_id=order.id,
                status=order.status,
                notes=f"Payment received via {payment.method} ({payment.transaction_ref})",
                old_status=old_status,
            )

    def _mark_failed(self, order: Order, payment: Payment) -> None:
        payment.status = AttemptStatus.FAILED
        self._payment_repo.save(payment)
        if order.can_transition_payment_to(PaymentStatus.FAILED):
            order.payment_status = PaymentStatus.FAILED
            self._order_repo.save(order)

    @staticmethod
    def _session_lock_wait() -> Optional[int]:
        """MySQL's session lock wait, restored once the callback is applied."""
        if connection.vendor != "mysql":
            return None
        with connection.cursor() as cursor:
            cursor.execute("SELECT @@SESSION.innodb_lock_wait_timeout")
            return cursor.fetchone()[0]

    def _set_lock_timeout(self) -> None:
        seconds = int(self._lock_timeout)
        with connection.cursor() as cursor:
            if connection.vendor == "postgresql":
                cursor.execute(f"SET LOCAL lock_timeout = '{seconds}s'")
            elif connection.vendor == "mysql":
                cursor.execute(f"SET SESSION innodb_lock_wait_timeout = {seconds}")


def build_callback_service() -> PaymentCallbackService:
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.payments.repositories import PaymentDjangoRepository

    return PaymentCallbackService(
        order_repository=OrderDjangoRepository(),
        payment_repository=PaymentDjangoRepository(),
    )
