"""Unit tests for the monthly report aggregation."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order
from modules.reports.periods import month_period
from modules.reports.services import ReportService, growth

pytestmark = pytest.mark.unit

HCM = ZoneInfo("Asia/Ho_Chi_Minh")


@pytest.fixture()
def dated_order(place_order):
    """Place an order, then pin its status and creation time."""

    def _make(user, lines, created_at, status, payment_status, method=PaymentMethod.VNPAY):
        order = place_order(user, lines, payment_method=method)
        Order.objects.filter(id=order.id).update(
            created_at=created_at, status=status, payment_status=payment_status
        )
        return order

    return _make


@pytest.fixture()
def september(user, other_user, make_variant, dated_order):
    shoe = make_variant(quantity=100, price=1_000_000)
    sock = make_variant(quantity=100, price=100_000)
    at = datetime(2026, 9, 10, 12, 0, tzinfo=HCM)

    dated_order(user, [(shoe, 2)], at, OrderStatus.CONFIRMED, PaymentStatus.PAID)
    dated_order(other_user, [(sock, 3)], at, OrderStatus.COMPLETED, PaymentStatus.PAID, PaymentMethod.COD)
    dated_order(user, [(shoe, 1)], at, OrderStatus.CANCELLED, PaymentStatus.CANCELLED)
    dated_order(other_user, [(sock, 1)], at, OrderStatus.PENDING, PaymentStatus.FAILED)
    # boundaries: last instant of August, first instant of October
    dated_order(user, [(shoe, 5)], datetime(2026, 8, 31, 23, 59, 59, tzinfo=HCM), OrderStatus.COMPLETED, PaymentStatus.PAID)
    dated_order(user, [(shoe, 7)], datetime(2026, 10, 1, 0, 0, tzinfo=HCM), OrderStatus.COMPLETED, PaymentStatus.PAID)
    return shoe, sock


class TestGrowth:
    @pytest.mark.parametrize(
        "current, previous, expected",
        [(150, 100, 50.0), (50, 100, -50.0), (0, 0, 0.0), (10, 0, 100.0), (1, 3, -66.67)],
    )
    def test_percent_change(self, current, previous, expected):
        assert growth(current, previous) == expected


class TestBuildReport:
    def test_revenue_counts_paid_or_completed_in_month(self, september):
        report = ReportService().build_report(month_period(2026, 9, tz=HCM))

        assert report.revenue == 2_000_000 + 300_000
        assert report.paid_orders == 2
        assert report.total_orders == 4
        assert report.cancelled_orders == 1
        assert report.average_order_value == 1_150_000

    def test_breakdowns(self, september):
        report = ReportService().build_report(month_period(2026, 9, tz=HCM))

        by_status = {row.key: (row.count, row.total) for row in report.orders_by_status}
        assert by_status[OrderStatus.CANCELLED] == (1, 1_000_000)
        assert by_status[OrderStatus.PENDING] == (1, 100_000)
        methods = {row.key: row.count for row in report.payment_methods}
        assert methods == {PaymentMethod.COD: 1, PaymentMethod.VNPAY: 3}
        statuses = {row.key: row.count for row in report.payment_statuses}
        assert statuses[PaymentStatus.PAID] == 2

    def test_top_products_and_customers(self, user, other_user, september):
        shoe, sock = september
        report = ReportService().build_report(month_period(2026, 9, tz=HCM))

        assert [p.product_id for p in report.top_products] == [sock.product_id, shoe.product_id]
        assert report.top_products[0].quantity == 3
        assert [c.user_id for c in report.top_customers] == [user.id, other_user.id]
        assert report.top_customers[0].spent == 2_000_000

    def test_growth_against_previous_month(self, september):
        report = ReportService().build_report(month_period(2026, 9, tz=HCM))

        assert report.previous_revenue == 5_000_000
        assert report.previous_orders == 1
        assert report.revenue_growth == -54.0
        assert report.orders_growth == 300.0

    def test_empty_month(self):
        report = ReportService().build_report(month_period(2020, 1, tz=HCM))

        assert report.revenue == 0
        assert report.average_order_value == 0
        assert report.top_products == []
        assert report.revenue_growth == 0.0
