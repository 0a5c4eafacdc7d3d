"""Monthly statistics over orders, order items and customers."""

from __future__ import annotations

from typing import List

import structlog
from django.db.models import Count, Q, QuerySet, Sum
from django.db.models.functions import Coalesce

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order, OrderItem
from modules.reports.dtos import (
    BreakdownDTO,
    MonthlyReportDTO,
    TopCustomerDTO,
    TopProductDTO,
)
from modules.reports.periods import ReportPeriod, previous_period

logger = structlog.get_logger(__name__)

TOP_LIMIT = 5

REVENUE_FILTER = Q(status=OrderStatus.COMPLETED) | Q(payment_status=PaymentStatus.PAID)


def growth(current: int, previous: int) -> float:
    """Percent change; 100 when starting from zero, 0 when both are zero."""
    if previous:
        return round((current - previous) * 100 / previous, 2)
    return 100.0 if current else 0.0


class ReportService:
    def __init__(self, top_limit: int = TOP_LIMIT) -> None:
        self._top_limit = top_limit

    def build_report(self, period: ReportPeriod) -> MonthlyReportDTO:
        orders = self._orders_in(period)
        revenue_orders = orders.filter(REVENUE_FILTER).exclude(
            status=OrderStatus.CANCELLED
        )

        revenue = self._sum_amount(revenue_orders)
        paid_orders = revenue_orders.count()
        total_orders = orders.count()

        previous = self._orders_in(previous_period(period))
        previous_revenue = self._sum_amount(
            previous.filter(REVENUE_FILTER).exclude(status=OrderStatus.CANCELLED)
        )
        previous_orders = previous.count()

        report = MonthlyReportDTO(
            year=period.year,
            month=period.month,
            period_start=period.start,
            period_end=period.end,
            revenue=revenue,
            total_orders=total_orders,
            paid_orders=paid_orders,
            cancelled_orders=orders.filter(status=OrderStatus.CANCELLED).count(),
            average_order_value=revenue // paid_orders if paid_orders else 0,
            orders_by_status=self._breakdown(orders, "status"),
            payment_statuses=self._breakdown(orders, "payment_status"),
            payment_methods=self._breakdown(orders, "payment_method"),
            top_products=self._top_products(revenue_orders),
            top_customers=self._top_customers(revenue_orders),
            previous_revenue=previous_revenue,
            previous_orders=previous_orders,
            revenue_growth=growth(revenue, previous_revenue),
            orders_growth=growth(total_orders, previous_orders),
        )
        logger.info(
            "report.built",
            period=period.label,
            revenue=revenue,
            total_orders=total_orders,
        )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def _orders_in(period: ReportPeriod) -> QuerySet:
        return Order.objects.alive().filter(
            created_at__gte=period.start, created_at__lte=period.end
        )

    @staticmethod
    def _sum_amount(orders: QuerySet) -> int:
        return orders.aggregate(total=Coalesce(Sum("amount"), 0))["total"]

    @staticmethod
    def _breakdown(orders: QuerySet, field: str) -> List[BreakdownDTO]:
        rows = (
            orders.order_by()
            .values(field)
            .annotate(count=Count("id"), total=Coalesce(Sum("amount"), 0))
            .order_by(field)
        )
        return [
            BreakdownDTO(key=row[field], count=row["count"], total=row["total"])
            for row in rows
        ]

    def _top_products(self, orders: QuerySet) -> List[TopProductDTO]:
        rows = (
            OrderItem.objects.filter(order__in=orders)
            .values(
                "variant__product_id",
                "variant__product__name",
                "variant__product__sku",
            )
            .annotate(quantity=Sum("quantity"), revenue=Sum("amount"))
            .order_by("-quantity", "variant__product__name")[: self._top_limit]
        )
        return [
            TopProductDTO(
                product_id=row["variant__product_id"],
                name=row["variant__product__name"],
                sku=row["variant__product__sku"],
                quantity=row["quantity"],
                revenue=row["revenue"],
            )
            for row in rows
        ]

    def _top_customers(self, orders: QuerySet) -> List[TopCustomerDTO]:
        rows = (
            orders.order_by()
            .values("user_id", "user__username", "user__email")
            .annotate(orders=Count("id"), spent=Sum("amount"))
            .order_by("-spent", "user_id")[: self._top_limit]
        )
        return [
            TopCustomerDTO(
                user_id=row["user_id"],
                username=row["user__username"],
                email=row["user__email"],
                orders=row["orders"],
                spent=row["spent"],
            )
            for row in rows
        ]
