"""Unit tests for PaymentCallbackService.

Covers:
- Verified success: attempt and order PAID, order CONFIRMED, history, outbox.
- Verified failure: attempt and order FAILED, order stays payable.
- Stale callbacks on resolved attempts or cancelled orders change nothing.
- Amount mismatch, unknown reference, bad signature, wrong provider.
- Database errors surface as TransactionFailure.
- MySQL session lock wait is restored after every callback.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest import mock

import pytest
from django.db import DatabaseError

from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order, OrderStatusHistory
from modules.payments.callbacks import PaymentCallbackService
from modules.payments.constants import AttemptStatus, Provider
from modules.payments.exceptions import (
    AmountMismatch,
    PaymentNotFound,
    SignatureInvalid,
    StaleTransition,
    TransactionFailure,
)
from modules.payments.models import Payment

pytestmark = pytest.mark.unit


@pytest.fixture()
def callbacks(order_repository, payment_repository):
    return PaymentCallbackService(
        order_repository=order_repository, payment_repository=payment_repository
    )


@pytest.fixture()
def vnpay_attempt(user, make_variant, place_order, payment_service):
    order = place_order(user, [(make_variant(price=750_000), 2)])
    payment_service.initiate_payment(order.id, user.id, client_ip="127.0.0.1")
    return Payment.objects.get(order=order)


class TestSuccessfulCallback:
    def test_marks_attempt_and_order_paid(self, callbacks, vnpay_attempt, vnpay_callback):
        outcome = callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        vnpay_attempt.refresh_from_db()
        order = Order.objects.get(id=vnpay_attempt.order_id)
        assert outcome.success is True
        assert outcome.payment_status == PaymentStatus.PAID
        assert vnpay_attempt.status == AttemptStatus.PAID
        assert vnpay_attempt.paid_at is not None
        assert vnpay_attempt.bank_code == "NCB"
        assert vnpay_attempt.response_code == "00"
        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.CONFIRMED

    def test_records_history_and_outbox_events(
        self, callbacks, vnpay_attempt, vnpay_callback
    ):
        callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        history = OrderStatusHistory.objects.filter(
            order_id=vnpay_attempt.order_id, new_status=OrderStatus.CONFIRMED
        ).get()
        assert history.old_status == OrderStatus.PENDING
        assert vnpay_attempt.transaction_ref in history.notes
        assert history.user_id is None

        event_types = set(
            OutboxEvent.objects.filter(
                aggregate_id=str(vnpay_attempt.order_id)
            ).values_list("event_type", flat=True)
        )
        assert {"OrderPaid", "OrderStatusChanged"} <= event_types

    def test_success_closes_other_open_attempts(
        self, user, callbacks, vnpay_attempt, vnpay_callback, payment_service
    ):
        payment_service.initiate_payment(
            vnpay_attempt.order_id, user.id, client_ip="127.0.0.1"
        )

        callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        second = Payment.objects.get(order_id=vnpay_attempt.order_id, attempt=2)
        assert second.status == AttemptStatus.CANCELLED

    def test_momo_success(
        self, user, make_variant, place_order, payment_repository, callbacks, momo_ipn
    ):
        order = place_order(
            user, [(make_variant(price=120_000), 1)], payment_method=PaymentMethod.MOMO
        )
        payment = payment_repository.create(
            order=order,
            method=Provider.MOMO,
            attempt=1,
            transaction_ref=f"{order.order_number}-01",
            amount=order.amount,
        )

        outcome = callbacks.handle(Provider.MOMO, momo_ipn(payment))

        assert outcome.success is True
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PAID


class TestFailedCallback:
    def test_marks_attempt_and_order_failed(
        self, callbacks, vnpay_attempt, vnpay_callback
    ):
        outcome = callbacks.handle(
            Provider.VNPAY, vnpay_callback(vnpay_attempt, success=False)
        )

        vnpay_attempt.refresh_from_db()
        order = Order.objects.get(id=vnpay_attempt.order_id)
        assert outcome.success is False
        assert vnpay_attempt.status == AttemptStatus.FAILED
        assert vnpay_attempt.response_code == "24"
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.PENDING

    def test_retry_after_failure_can_still_pay(
        self, user, callbacks, vnpay_attempt, vnpay_callback, payment_service
    ):
        callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt, success=False))
        retry = payment_service.initiate_payment(
            vnpay_attempt.order_id, user.id, client_ip="127.0.0.1"
        )
        second = Payment.objects.get(transaction_ref=retry.transaction_ref)

        callbacks.handle(Provider.VNPAY, vnpay_callback(second))

        order = Order.objects.get(id=vnpay_attempt.order_id)
        assert order.payment_status == PaymentStatus.PAID


class TestStaleCallback:
    def test_duplicate_success_is_stale(self, callbacks, vnpay_attempt, vnpay_callback):
        params = vnpay_callback(vnpay_attempt)
        callbacks.handle(Provider.VNPAY, params)

        with pytest.raises(StaleTransition):
            callbacks.handle(Provider.VNPAY, params)

        assert Payment.objects.filter(status=AttemptStatus.PAID).count() == 1

    def test_callback_after_cancellation_is_stale(
        self, user, callbacks, vnpay_attempt, vnpay_callback, order_service
    ):
        order_service.cancel_order(vnpay_attempt.order_id, user_id=user.id)

        with pytest.raises(StaleTransition):
            callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        order = Order.objects.get(id=vnpay_attempt.order_id)
        assert order.status == OrderStatus.CANCELLED
        assert order.payment_status == PaymentStatus.CANCELLED

    def test_failure_after_success_does_not_downgrade(
        self, callbacks, vnpay_attempt, vnpay_callback
    ):
        callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        with pytest.raises(StaleTransition):
            callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt, success=False))

        vnpay_attempt.refresh_from_db()
        assert vnpay_attempt.status == AttemptStatus.PAID


class TestRejectedCallback:
    def test_amount_mismatch_changes_nothing(
        self, callbacks, vnpay_attempt, vnpay_callback
    ):
        params = vnpay_callback(vnpay_attempt, amount=vnpay_attempt.amount - 1)

        with pytest.raises(AmountMismatch):
            callbacks.handle(Provider.VNPAY, params)

        vnpay_attempt.refresh_from_db()
        assert vnpay_attempt.status == AttemptStatus.PENDING
        order = Order.objects.get(id=vnpay_attempt.order_id)
        assert order.payment_status == PaymentStatus.PENDING

    def test_unknown_reference(self, callbacks, vnpay_callback):
        ghost = SimpleNamespace(amount=10_000, transaction_ref="ORD-20260101-FFFFFF-01")
        with pytest.raises(PaymentNotFound):
            callbacks.handle(Provider.VNPAY, vnpay_callback(ghost))

    def test_bad_signature(self, callbacks, vnpay_attempt, vnpay_callback):
        params = vnpay_callback(vnpay_attempt, secret="not-the-secret")
        with pytest.raises(SignatureInvalid):
            callbacks.handle(Provider.VNPAY, params)

    def test_callback_from_other_provider_for_attempt(
        self, callbacks, vnpay_attempt, momo_ipn
    ):
        with pytest.raises(PaymentNotFound):
            callbacks.handle(Provider.MOMO, momo_ipn(vnpay_attempt))

    def test_database_error_becomes_transaction_failure(
        self, callbacks, order_repository, vnpay_attempt, vnpay_callback, monkeypatch
    ):
        def boom(id):
            raise DatabaseError("lock timeout")

        monkeypatch.setattr(order_repository, "get_for_update", boom)

        with pytest.raises(TransactionFailure):
            callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))


class TestLockWait:
    @pytest.fixture()
    def mysql_cursor(self, monkeypatch):
        cursor = mock.MagicMock()
        cursor.fetchone.return_value = (50,)
        fake = mock.MagicMock(vendor="mysql")
        fake.cursor.return_value.__enter__.return_value = cursor
        monkeypatch.setattr("modules.payments.callbacks.connection", fake)
        return cursor

    def _statements(self, cursor):
        return [c.args[0] for c in cursor.execute.call_args_list]

    def test_mysql_session_wait_restored_after_callback(
        self, order_repository, payment_repository, vnpay_attempt, vnpay_callback, mysql_cursor
    ):
        service = PaymentCallbackService(
            order_repository=order_repository,
            payment_repository=payment_repository,
            lock_timeout=5,
        )

        service.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        assert self._statements(mysql_cursor) == [
            "SELECT @@SESSION.innodb_lock_wait_timeout",
            "SET SESSION innodb_lock_wait_timeout = 5",
            "SET SESSION innodb_lock_wait_timeout = 50",
        ]

    def test_mysql_session_wait_restored_when_stale(
        self, order_repository, payment_repository, vnpay_attempt, vnpay_callback, mysql_cursor
    ):
        service = PaymentCallbackService(
            order_repository=order_repository,
            payment_repository=payment_repository,
            lock_timeout=5,
        )
        service.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))
        mysql_cursor.execute.reset_mock()

        with pytest.raises(StaleTransition):
            service.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        assert self._statements(mysql_cursor)[-1] == "SET SESSION innodb_lock_wait_timeout = 50"

    def test_other_backends_leave_session_alone(
        self, callbacks, vnpay_attempt, vnpay_callback, monkeypatch
    ):
        fake = mock.MagicMock(vendor="sqlite")
        monkeypatch.setattr("modules.payments.callbacks.connection", fake)

        callbacks.handle(Provider.VNPAY, vnpay_callback(vnpay_attempt))

        cursor = fake.cursor.return_value.__enter__.return_value
        assert cursor.execute.call_count == 0
