"""Payment attempt persistence."""

from __future__ import annotations

from typing import Optional

import structlog
from django.db.models import Max

from modules.payments.models import Payment

logger = structlog.get_logger(__name__)


class PaymentDjangoRepository:
    def get_by_ref(self, transaction_ref: str) -> Optional[Payment]:
        return Payment.objects.filter(transaction_ref=transaction_ref).first()

    def get_for_update(self, id: str) -> Optional[Payment]:
        return Payment.objects.select_for_update().filter(id=id).first()

    def next_attempt(self, order_id) -> int:
        """Next attempt number; call with the order row locked."""
        current = Payment.objects.filter(order_id=order_id).aggregate(
            last=Max("attempt")
        )["last"]
        return (current or 0) + 1

    def create(self, **fields) -> Payment:
        payment = Payment.objects.create(**fields)
        logger.info(
            "payment.attempt_created",
            order_id=str(payment.order_id),
            transaction_ref=payment.transaction_ref,
            attempt=payment.attempt,
        )
        return payment

    def save(self, payment: Payment) -> Payment:
        payment.save()
        return payment
