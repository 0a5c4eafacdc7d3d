"""Contracts between the outbox publisher and in-process event consumers."""

from __future__ import annotations

from typing import Generic, List, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    """Consumes one event type. Raising makes the outbox row retry later."""

    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Routes a relayed event to the handlers subscribed to its class."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...

    def handlers_for(self, event_class: Type[DomainEvent]) -> List[IEventHandler]: ...
