"""Asynchronous tasks of the core module."""

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import event_class_for
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

OUTBOX_BATCH_SIZE = 100


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = OUTBOX_BATCH_SIZE) -> dict:
    """Drain deliverable outbox rows into the in-process event bus.

    Each row is handled in its own transaction; a failing handler marks that
    row FAILED and the rest of the batch carries on.
    """
    published = failed = 0
    ids = list(
        OutboxEvent.objects.deliverable().values_list("id", flat=True)[:batch_size]
    )
    for event_id in ids:
        with transaction.atomic():
            row = (
                OutboxEvent.objects.select_for_update()
                .deliverable()
                .filter(id=event_id)
                .first()
            )
            if row is None:
                continue
            event_class = event_class_for(row.event_type)
            if event_class is None:
                row.mark_as_failed(f"Unknown event type {row.event_type}")
                failed += 1
                logger.warning("outbox.unknown_event", event_type=row.event_type)
                continue
            try:
                event_bus.publish(event_class.from_payload(row.payload))
            except Exception as exc:
                row.mark_as_failed(str(exc))
                failed += 1
                logger.exception(
                    "outbox.publish_failed",
                    outbox_id=str(row.id),
                    event_type=row.event_type,
                )
                continue
            row.mark_as_published()
            published += 1

    if published or failed:
        logger.info("outbox.drained", published=published, failed=failed)
    return {"published": published, "failed": failed}
