"""Payment initiation: open a new attempt and hand the shopper a provider URL."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Optional, Tuple
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.orders.exceptions import OrderNotFound
from modules.payments.constants import AttemptStatus, Provider
from modules.payments.dtos import PaymentInitiationDTO
from modules.payments.exceptions import (
    PaymentNotAllowed,
    ProviderRejected,
    ProviderUnreachable,
    UnsupportedPaymentMethod,
)
from modules.payments.gateways import MomoGateway, VNPayGateway, make_transaction_ref

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.models import Payment
    from modules.payments.repositories import PaymentDjangoRepository

logger = structlog.get_logger(__name__)


class PaymentService:
    def __init__(
        self,
        order_repository: IOrderRepository,
        payment_repository: PaymentDjangoRepository,
        gateways: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._order_repo = order_repository
        self._payment_repo = payment_repository
        self._gateways = gateways

    def _gateway(self, method: str):
        if self._gateways is not None and method in self._gateways:
            return self._gateways[method]
        if method == Provider.VNPAY:
            return VNPayGateway()
        if method == Provider.MOMO:
            return MomoGateway()
        raise UnsupportedPaymentMethod(f"Payment method {method} is not paid online.")

    def initiate_payment(
        self,
        order_id: UUID,
        user_id: int,
        client_ip: str,
        bank_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PaymentInitiationDTO:
        """Allocate the next attempt and build the provider redirect.

        The attempt is committed before the provider is contacted so its
        reference is never handed out twice. A provider failure marks the
        attempt FAILED and re-raises; the order stays payable.

        Raises:
            OrderNotFound: unknown order or not owned by the caller.
            UnsupportedPaymentMethod: COD orders.
            PaymentNotAllowed: order not payable or window closed.
            ProviderUnreachable / ProviderRejected: MoMo call failed.
        """
        now = now or timezone.now()
        payment, order_number, deadline = self._open_attempt(order_id, user_id, now)
        log = logger.bind(
            order_id=str(order_id),
            transaction_ref=payment.transaction_ref,
            method=payment.method,
        )

        gateway = self._gateway(payment.method)
        order_info = f"Thanh toan don hang {order_number}"
        try:
            if payment.method == Provider.VNPAY:
                url = gateway.build_payment_url(
                    amount=payment.amount,
                    transaction_ref=payment.transaction_ref,
                    order_info=order_info,
                    client_ip=client_ip,
                    bank_code=bank_code or None,
                    now=now,
                    expire_at=deadline,
                )
            else:
                url = gateway.create_payment(
                    amount=payment.amount,
                    transaction_ref=payment.transaction_ref,
                    order_info=order_info,
                )
        except (ProviderUnreachable, ProviderRejected):
            payment.status = AttemptStatus.FAILED
            payment.response_code = "ERR"
            self._payment_repo.save(payment)
            log.warning("payment.initiation_failed")
            raise

        log.info("payment.initiated", attempt=payment.attempt)
        return PaymentInitiationDTO(
            payment_url=url,
            transaction_ref=payment.transaction_ref,
            expires_at=deadline,
        )

    @transaction.atomic
    def _open_attempt(
        self, order_id: UUID, user_id: int, now: datetime
    ) -> Tuple[Payment, str, datetime]:
        order = self._order_repo.get_for_update(str(order_id))
        if not order or order.user_id != user_id:
            raise OrderNotFound(f"Order {order_id} not found.")
        if not order.is_online_payment:
            raise UnsupportedPaymentMethod(
                f"Order {order.order_number} is paid with {order.payment_method}."
            )
        if not order.can_retry_payment(now):
            raise PaymentNotAllowed(
                f"Order {order.order_number} can no longer be paid online."
            )

        attempt = self._payment_repo.next_attempt(order.id)
        payment = self._payment_repo.create(
            order=order,
            method=order.payment_method,
            attempt=attempt,
            transaction_ref=make_transaction_ref(order.order_number, attempt),
            amount=order.amount,
        )
        return payment, order.order_number, order.payment_deadline

    def order_state_for_ref(self, transaction_ref: str) -> Optional[Tuple[UUID, str]]:
        """``(order_id, payment_status)`` behind a reference, for redirects."""
        payment = self._payment_repo.get_by_ref(transaction_ref)
        if payment is None:
            return None
        order = self._order_repo.get_by_id(str(payment.order_id))
        if order is None:
            return None
        return order.id, order.payment_status
