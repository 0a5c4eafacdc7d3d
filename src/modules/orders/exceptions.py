"""Order domain exceptions.

Raised by the service layer when business rules are violated; the views
translate them into HTTP responses.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist or is not visible to the caller."""


class InvalidOrderStatus(Exception):
    """A transition not allowed by the order state machines was attempted."""


class InsufficientStock(Exception):
    """Not enough stock to fulfil a checkout line."""


class ProductNotFound(Exception):
    """A variant's product does not exist or has been soft-deleted."""


class VariantNotFound(Exception):
    """A checkout line references an unknown product variant."""


class VariantUnavailable(Exception):
    """The variant is outside its sale window."""


class InactiveProduct(Exception):
    """The product is not IN_STOCK (sold out or pre-sale)."""
