"""Celery tasks of the orders module."""

import structlog
from celery import shared_task

logger = structlog.get_logger(__name__)


@shared_task(name="orders.auto_cancel_unpaid_orders")
def auto_cancel_unpaid_orders() -> dict:
    """Beat entry point (every 10 minutes) for the settlement pass."""
    from modules.orders.settlement import build_settlement_service

    report = build_settlement_service().run_settlement_pass()
    return report.model_dump(mode="json")


@shared_task(
    name="orders.notify_admins_order_placed",
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    max_retries=3,
)
def notify_admins_order_placed(order_id: str) -> dict:
    from modules.orders.notifications import send_order_placed_notification

    sent, failed = send_order_placed_notification(order_id)
    return {"order_id": order_id, "sent": sent, "failed": failed}
