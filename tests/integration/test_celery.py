"""Integration tests for the Celery app, beat schedule and tasks."""

from __future__ import annotations

from datetime import timedelta

import pytest
from celery.schedules import crontab
from django.core import mail

from modules.orders.constants import OrderStatus
from modules.orders.models import Order

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _celery_eager(settings):
    """Run tasks synchronously in the test process."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


class TestCeleryConfig:
    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "shoex"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE == "Asia/Ho_Chi_Minh"


class TestBeatSchedule:
    def test_settlement_every_ten_minutes(self, settings):
        entry = settings.CELERY_BEAT_SCHEDULE["orders-auto-cancel-unpaid"]
        assert entry["task"] == "orders.auto_cancel_unpaid_orders"
        assert entry["schedule"] == crontab(minute="*/10")

    def test_monthly_report_first_of_month_at_eight(self, settings):
        entry = settings.CELERY_BEAT_SCHEDULE["reports-send-monthly"]
        assert entry["task"] == "reports.send_monthly_report"
        assert entry["schedule"] == crontab(minute=0, hour=8, day_of_month=1)

    def test_scheduled_tasks_registered(self):
        from config import celery_app
        from modules.core import tasks as core_tasks  # noqa: F401
        from modules.orders import tasks as order_tasks  # noqa: F401
        from modules.reports import tasks as report_tasks  # noqa: F401

        for entry in celery_app.conf.beat_schedule.values():
            assert entry["task"] in celery_app.tasks


class TestTasks:
    def test_auto_cancel_task_returns_report(self, user, make_variant, place_order):
        from modules.orders.tasks import auto_cancel_unpaid_orders

        order = place_order(user, [(make_variant(), 1)], age=timedelta(minutes=65))

        result = auto_cancel_unpaid_orders.delay()

        assert result.successful()
        assert result.result["cancelled"] == 1
        assert result.result["lock_acquired"] is True
        assert Order.objects.get(id=order.id).status == OrderStatus.CANCELLED

    def test_monthly_report_task_mails_staff(self, staff_user):
        from modules.reports.tasks import send_monthly_report

        result = send_monthly_report.delay()

        assert result.result["sent"] == 1
        assert mail.outbox[0].to == [staff_user.email]

    def test_order_placed_notification_task(self, staff_user, user, make_variant, place_order):
        from modules.orders.tasks import notify_admins_order_placed

        order = place_order(user, [(make_variant(), 1)])

        result = notify_admins_order_placed.delay(str(order.id))

        assert result.result == {"order_id": str(order.id), "sent": 1, "failed": 0}
        assert order.order_number in mail.outbox[0].subject
