"""Integration tests for the VNPay IPN and return endpoints.

Covers:
- IPN acknowledgements: 00 applied, 97 bad signature, 01 unknown reference,
  04 amount mismatch, 02 already settled.
- IPN is public: no credentials needed, trust comes from the signature.
- Return redirects the shopper to the order page with the outcome, whether
  it applies the result itself or finds it already applied by the IPN.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.payments.models import Payment

pytestmark = pytest.mark.integration

IPN_URL = "/api/v1/payments/vnpay/ipn"
RETURN_URL = "/api/v1/payments/vnpay/return"


@pytest.fixture()
def order(user, make_variant, place_order):
    return place_order(user, [(make_variant(price=450_000), 2)])


@pytest.fixture()
def attempt(user, order, payment_service):
    result = payment_service.initiate_payment(order.id, user.id, client_ip="10.0.0.1")
    return Payment.objects.get(transaction_ref=result.transaction_ref)


class TestIPN:
    def test_success_confirms_order(self, api_client, order, attempt, vnpay_callback):
        response = api_client.get(IPN_URL, vnpay_callback(attempt))

        assert response.status_code == 200
        assert response.json() == {"RspCode": "00", "Message": "Confirm Success"}
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED
        assert order.payment_status == PaymentStatus.PAID

    def test_failure_is_acknowledged(self, api_client, order, attempt, vnpay_callback):
        response = api_client.get(IPN_URL, vnpay_callback(attempt, success=False))

        assert response.json()["RspCode"] == "00"
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.FAILED

    def test_bad_signature_97(self, api_client, order, attempt, vnpay_callback):
        params = vnpay_callback(attempt, secret="not-the-secret")

        response = api_client.get(IPN_URL, params)

        assert response.json()["RspCode"] == "97"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PENDING

    def test_tampered_amount_97(self, api_client, attempt, vnpay_callback):
        params = vnpay_callback(attempt)
        params["vnp_Amount"] = "100"
        assert api_client.get(IPN_URL, params).json()["RspCode"] == "97"

    def test_unknown_reference_01(self, api_client, vnpay_callback):
        ghost = SimpleNamespace(transaction_ref="ORD-20261019-ABCDEF-01", amount=100_000)
        assert api_client.get(IPN_URL, vnpay_callback(ghost)).json()["RspCode"] == "01"

    def test_amount_mismatch_04(self, api_client, order, attempt, vnpay_callback):
        response = api_client.get(IPN_URL, vnpay_callback(attempt, amount=1_000))

        assert response.json()["RspCode"] == "04"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PENDING

    def test_duplicate_delivery_02(self, api_client, order, attempt, vnpay_callback):
        params = vnpay_callback(attempt)
        api_client.get(IPN_URL, params)

        response = api_client.get(IPN_URL, params)

        assert response.json()["RspCode"] == "02"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PAID

    def test_success_after_cancel_02(
        self, api_client, order, attempt, vnpay_callback, order_service
    ):
        order_service.cancel_order(order.id, is_staff=True)

        response = api_client.get(IPN_URL, vnpay_callback(attempt))

        assert response.json()["RspCode"] == "02"
        order.refresh_from_db()
        assert order.status == OrderStatus.CANCELLED


class TestReturn:
    def test_success_redirects_to_order(self, api_client, order, attempt, vnpay_callback):
        response = api_client.get(RETURN_URL, vnpay_callback(attempt))

        assert response.status_code == 302
        assert response["Location"] == f"http://frontend.test/orders/{order.id}?payment=success"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PAID

    def test_after_ipn_still_reports_success(
        self, api_client, order, attempt, vnpay_callback
    ):
        params = vnpay_callback(attempt)
        api_client.get(IPN_URL, params)

        response = api_client.get(RETURN_URL, params)

        assert response["Location"] == f"http://frontend.test/orders/{order.id}?payment=success"

    def test_declined_payment(self, api_client, order, attempt, vnpay_callback):
        response = api_client.get(RETURN_URL, vnpay_callback(attempt, success=False))
        assert response["Location"] == f"http://frontend.test/orders/{order.id}?payment=failed"

    def test_bad_signature_generic_failure(self, api_client, attempt, vnpay_callback):
        response = api_client.get(RETURN_URL, vnpay_callback(attempt, secret="nope"))
        assert response["Location"] == "http://frontend.test/orders?payment=failed"
