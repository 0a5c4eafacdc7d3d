"""Order DTOs for the service layer.

Pydantic v2, immutable (``frozen=True``). Serializers validate the HTTP
payload; the views then build these DTOs for the services.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.orders.constants import PaymentMethod

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CheckoutItemDTO(BaseModel):
    """One checkout line; the price is resolved from the variant."""

    model_config = ConfigDict(frozen=True)

    variant_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CheckoutDTO(BaseModel):
    """Checkout request.

    Validates:
    - at least one item;
    - no variant repeated across lines.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    items: List[CheckoutItemDTO]
    payment_method: PaymentMethod = PaymentMethod.COD
    delivery_address: str
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[CheckoutItemDTO]) -> List[CheckoutItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("delivery_address")
    @classmethod
    def address_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Delivery address is required.")
        return v.strip()

    @model_validator(mode="after")
    def no_duplicate_variants(self):
        variant_ids = [item.variant_id for item in self.items]
        if len(variant_ids) != len(set(variant_ids)):
            raise ValueError("Duplicate variants are not allowed in the same order.")
        return self


# ---------------------------------------------------------------------------
# Settlement report
# ---------------------------------------------------------------------------


class SettlementErrorDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    reason: str


class SettlementReportDTO(BaseModel):
    """Outcome of one settlement pass.

    ``scanned = cancelled + skipped + failed``. ``lock_acquired`` is
    ``False`` when another pass was already running and nothing was done.
    """

    model_config = ConfigDict(frozen=True)

    scanned: int = 0
    cancelled: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[SettlementErrorDTO] = []
    truncated: bool = False
    lock_acquired: bool = True
    started_at: datetime
    finished_at: datetime
