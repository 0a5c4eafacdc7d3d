"""Payment DTOs returned by the payment services."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PaymentInitiationDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    payment_url: str
    transaction_ref: str
    expires_at: datetime


class CallbackOutcome(BaseModel):
    """What a handled provider callback did to the order."""

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_number: str
    transaction_ref: str
    success: bool
    payment_status: str
