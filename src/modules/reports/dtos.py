"""Monthly report DTOs (pydantic v2, immutable)."""

from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class BreakdownDTO(BaseModel):
    """Order count and amount for one status or payment method."""

    model_config = ConfigDict(frozen=True)

    key: str
    count: int
    total: int


class TopProductDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    name: str
    sku: str
    quantity: int
    revenue: int


class TopCustomerDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    email: str
    orders: int
    spent: int


class MonthlyReportDTO(BaseModel):
    """Statistics for one calendar month.

    Money is in integer VND. Revenue counts orders that are COMPLETED or
    PAID; growth figures compare with the month before, in percent.
    """

    model_config = ConfigDict(frozen=True)

    year: int
    month: int
    period_start: datetime
    period_end: datetime

    revenue: int
    total_orders: int
    paid_orders: int
    cancelled_orders: int
    average_order_value: int

    orders_by_status: List[BreakdownDTO]
    payment_statuses: List[BreakdownDTO]
    payment_methods: List[BreakdownDTO]
    top_products: List[TopProductDTO]
    top_customers: List[TopCustomerDTO]

    previous_revenue: int
    previous_orders: int
    revenue_growth: float
    orders_growth: float
