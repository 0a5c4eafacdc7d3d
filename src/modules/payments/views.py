"""Provider-facing payment endpoints.

Unauthenticated: trust comes from the signature. Bodies never carry
internal error detail. VNPay always gets HTTP 200 with its ``RspCode``;
MoMo gets 204 once a callback is handled or known to be stale.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.http import HttpResponseRedirect
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from modules.orders.constants import PaymentStatus
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.payments.callbacks import build_callback_service
from modules.payments.constants import Provider
from modules.payments.exceptions import (
    AmountMismatch,
    PaymentError,
    PaymentNotFound,
    SignatureInvalid,
    StaleTransition,
    TransactionFailure,
)
from modules.payments.repositories import PaymentDjangoRepository
from modules.payments.services import PaymentService

logger = structlog.get_logger(__name__)


class ProviderCallbackView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payment_callback"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._callbacks = build_callback_service()


class VNPayIPNView(ProviderCallbackView):
    """GET /api/v1/payments/vnpay/ipn"""

    def get(self, request: Request) -> Response:
        try:
            self._callbacks.handle(Provider.VNPAY, request.query_params.dict())
        except SignatureInvalid:
            return Response({"RspCode": "97", "Message": "Invalid signature"})
        except PaymentNotFound:
            return Response({"RspCode": "01", "Message": "Order not found"})
        except AmountMismatch:
            return Response({"RspCode": "04", "Message": "Invalid amount"})
        except StaleTransition:
            return Response({"RspCode": "02", "Message": "Order already confirmed"})
        except PaymentError:
            logger.error("payment.ipn_error", provider=Provider.VNPAY)
            return Response({"RspCode": "99", "Message": "Unknown error"})
        return Response({"RspCode": "00", "Message": "Confirm Success"})


class VNPayReturnView(ProviderCallbackView):
    """GET /api/v1/payments/vnpay/return

    Processes the query like the IPN (whichever arrives first wins; the
    other is stale) and redirects the shopper to the order page.
    """

    def get(self, request: Request) -> HttpResponseRedirect:
        params = request.query_params.dict()
        try:
            outcome = self._callbacks.handle(Provider.VNPAY, params)
        except SignatureInvalid:
            return _redirect(None, "failed")
        except PaymentError:
            state = self._order_state(params.get("vnp_TxnRef", ""))
            if state is None:
                return _redirect(None, "failed")
            order_id, payment_status = state
            paid = payment_status == PaymentStatus.PAID
            return _redirect(order_id, "success" if paid else "failed")
        return _redirect(outcome.order_id, "success" if outcome.success else "failed")

    def _order_state(self, transaction_ref: str):
        service = PaymentService(
            order_repository=OrderDjangoRepository(),
            payment_repository=PaymentDjangoRepository(),
        )
        return service.order_state_for_ref(transaction_ref)


class MomoIPNView(ProviderCallbackView):
    """POST /api/v1/payments/momo/ipn"""

    def post(self, request: Request) -> Response:
        body = request.data if isinstance(request.data, dict) else {}
        try:
            self._callbacks.handle(Provider.MOMO, body)
        except (SignatureInvalid, AmountMismatch):
            return Response(status=status.HTTP_400_BAD_REQUEST)
        except PaymentNotFound:
            return Response(status=status.HTTP_404_NOT_FOUND)
        except StaleTransition:
            return Response(status=status.HTTP_204_NO_CONTENT)
        except TransactionFailure:
            return Response(status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _redirect(order_id: Optional[UUID], result: str) -> HttpResponseRedirect:
    base = settings.FRONTEND_URL.rstrip("/")
    if order_id is None:
        return HttpResponseRedirect(f"{base}/orders?payment={result}")
    return HttpResponseRedirect(f"{base}/orders/{order_id}?payment={result}")
