"""Outbox helpers shared by the module repositories."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List
from uuid import UUID

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent, DomainEventMixin


def record_domain_events(entity: DomainEventMixin) -> List[OutboxEvent]:
    """Persist the entity's pending events to the outbox and clear them.

    Must run inside the caller's transaction so the events commit or roll
    back with the state change.
    """
    rows = [
        OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=serialize_event(event),
            topic=event.topic,
        )
        for event in entity.domain_events
    ]
    entity.clear_domain_events()
    return rows


def serialize_event(event: DomainEvent) -> Dict[str, Any]:
    return _normalize_for_json(asdict(event))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
