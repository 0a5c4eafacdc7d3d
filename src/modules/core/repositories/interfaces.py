"""Generic repository interface.

``IRepository[T]`` is the base contract the module repositories extend.
Services depend on these abstractions and receive the Django ORM
implementations through their constructors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base repository contract for entity ``T``."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by primary key, ``None`` when missing."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[T]:
        """Retrieve an entity with a row-level lock (``SELECT FOR UPDATE``)."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist (create or update) an entity and its pending domain events."""
