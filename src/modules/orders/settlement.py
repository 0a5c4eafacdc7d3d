"""Order settlement job: auto-cancel orders left unpaid past the timeout.

``SettlementService.run_settlement_pass`` is the single entry point. The
Celery beat task and the ``auto_cancel_unpaid`` management command only
invoke it; ``now`` and the threshold are injectable for tests.

Each order is its own transaction. The row is locked and eligibility is
re-checked under the lock, so a payment callback or a user cancellation
that commits first wins and the order is skipped. A failure on one order
is logged, counted and reported, and the pass moves on.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.core.locks import advisory_lock
from modules.orders.constants import AUTO_CANCEL_NOTE, OrderStatus, PaymentStatus
from modules.orders.dtos import SettlementErrorDTO, SettlementReportDTO
from modules.orders.events import OrderCancelled
from modules.orders.inventory import close_open_attempts, release_order_stock
from modules.orders.models import payment_timeout

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

SETTLEMENT_LOCK = "orders.settlement"


class SettlementService:
    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        page_size: Optional[int] = None,
        max_seconds: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._page_size = page_size or settings.SETTLEMENT_PAGE_SIZE
        self._max_seconds = (
            max_seconds if max_seconds is not None else settings.SETTLEMENT_MAX_SECONDS
        )
        self._monotonic = monotonic

    def run_settlement_pass(
        self,
        now: Optional[datetime] = None,
        threshold: Optional[timedelta] = None,
    ) -> SettlementReportDTO:
        """Cancel every order still unpaid ``threshold`` after creation.

        Eligible: ``status = PENDING``, ``payment_status`` PENDING or FAILED,
        ``created_at <= now - threshold``. Returns a report; never raises for
        per-order failures.
        """
        now = now or timezone.now()
        cutoff = now - (threshold if threshold is not None else payment_timeout())
        started_at = timezone.now()
        log = logger.bind(cutoff=cutoff.isoformat())

        lock_ttl = int(self._max_seconds) + 60
        with advisory_lock(SETTLEMENT_LOCK, lock_ttl) as acquired:
            if not acquired:
                log.warning("settlement.already_running")
                return SettlementReportDTO(
                    lock_acquired=False,
                    started_at=started_at,
                    finished_at=timezone.now(),
                )

            log.info("settlement.started")
            scanned = cancelled = skipped = 0
            errors: List[SettlementErrorDTO] = []
            truncated = False
            deadline = self._monotonic() + self._max_seconds
            after_id: Optional[UUID] = None

            while not truncated:
                page = self._order_repo.settlement_candidates(
                    cutoff, after_id, self._page_size
                )
                if not page:
                    break
                for order_id in page:
                    if self._monotonic() >= deadline:
                        truncated = True
                        break
                    scanned += 1
                    try:
                        if self._settle_order(order_id, cutoff):
                            cancelled += 1
                        else:
                            skipped += 1
                    except Exception as exc:
                        errors.append(
                            SettlementErrorDTO(order_id=order_id, reason=str(exc))
                        )
                        log.exception(
                            "settlement.order_failed",
                            order_id=str(order_id),
                            reason=str(exc),
                        )
                after_id = page[-1]

        report = SettlementReportDTO(
            scanned=scanned,
            cancelled=cancelled,
            skipped=skipped,
            failed=len(errors),
            errors=errors,
            truncated=truncated,
            started_at=started_at,
            finished_at=timezone.now(),
        )
        log.info(
            "settlement.finished",
            scanned=report.scanned,
            cancelled=report.cancelled,
            skipped=report.skipped,
            failed=report.failed,
            truncated=report.truncated,
        )
        return report

    @transaction.atomic
    def _settle_order(self, order_id: UUID, cutoff: datetime) -> bool:
        """Cancel one order; ``False`` when it is no longer eligible."""
        order = self._order_repo.get_for_update(str(order_id))
        if order is None or not order.is_settleable(cutoff):
            logger.info("settlement.order_skipped", order_id=str(order_id))
            return False

        release_order_stock(order, self._product_repo)
        close_open_attempts(order)

        old_status = order.status
        order.status = OrderStatus.CANCELLED
        order.payment_status = PaymentStatus.CANCELLED
        order.add_domain_event(
            OrderCancelled(aggregate_id=order.id, reason="payment_timeout")
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.CANCELLED,
            notes=AUTO_CANCEL_NOTE,
            old_status=old_status,
        )

        logger.info(
            "settlement.order_cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            created_at=order.created_at.isoformat(),
        )
        return True


def build_settlement_service() -> SettlementService:
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.products.repositories.django_repository import (
        ProductDjangoRepository,
    )

    return SettlementService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )
