"""Order API views.

Exposes ``OrderService`` and payment initiation over HTTP. Domain
exceptions are translated into status codes; the view never swallows
generic exceptions.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import CheckoutDTO, CheckoutItemDTO
from modules.orders.exceptions import (
    InactiveProduct,
    InsufficientStock,
    InvalidOrderStatus,
    OrderNotFound,
    ProductNotFound,
    VariantNotFound,
    VariantUnavailable,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    CheckoutSerializer,
    OrderListSerializer,
    OrderSerializer,
    PayOrderSerializer,
    StatusUpdateSerializer,
)
from modules.orders.services import OrderService
from modules.payments.exceptions import (
    PaymentNotAllowed,
    ProviderRejected,
    ProviderUnreachable,
    UnsupportedPaymentMethod,
)
from modules.payments.repositories import PaymentDjangoRepository
from modules.payments.services import PaymentService
from modules.products.repositories.django_repository import ProductDjangoRepository

logger = structlog.get_logger(__name__)

PROVIDER_ERROR_MESSAGE = (
    "Không thể kết nối cổng thanh toán. Vui lòng thử lại sau."
)


def _client_ip(request: Request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "127.0.0.1")


def _not_found() -> Response:
    return Response({"detail": "Order not found."}, status=status.HTTP_404_NOT_FOUND)


def _parse_pk(pk: str | None) -> UUID | None:
    try:
        return UUID(str(pk))
    except ValueError:
        return None


class OrderViewSet(GenericViewSet):
    """Checkout, order reads, staff status updates, cancellation and payment.

    Shoppers see only their own orders; staff see all. Does **not** extend
    ``ModelViewSet``: all ORM access goes through the service/repository
    layer.
    """

    queryset = Order.objects.none()
    filterset_class = OrderFilter
    search_fields = ["order_number", "user__email"]
    ordering_fields = ["created_at", "amount", "status", "payment_status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        order_repository = OrderDjangoRepository()
        self._service = OrderService(
            order_repository=order_repository,
            product_repository=ProductDjangoRepository(),
        )
        self._payments = PaymentService(
            order_repository=order_repository,
            payment_repository=PaymentDjangoRepository(),
        )

    def get_throttles(self) -> list[BaseThrottle]:
        if self.action in {"create", "pay"}:
            self.throttle_scope = "checkout"
        elif self.action in {"list", "retrieve"}:
            self.throttle_scope = "order_listing"
        return super().get_throttles()

    def get_queryset(self):
        user = self.request.user
        return self._service.list_orders(user_id=user.id, is_staff=user.is_staff)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Idempotent through the ``Idempotency-Key`` header.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = CheckoutDTO(
                user_id=request.user.id,
                items=[
                    CheckoutItemDTO(variant_id=i["variant_id"], quantity=i["quantity"])
                    for i in data["items"]
                ],
                payment_method=data["payment_method"],
                delivery_address=data["delivery_address"],
                notes=data.get("notes", ""),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
        except PydanticValidationError as exc:
            return Response(
                {"detail": exc.errors()[0]["msg"]},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            order = self._service.checkout(dto)
        except (VariantNotFound, ProductNotFound) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except (InactiveProduct, VariantUnavailable) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except InsufficientStock as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/"""
        queryset = self.filter_queryset(self.get_queryset())
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        if _parse_pk(pk) is None:
            return _not_found()
        try:
            order = self._service.get_order(
                str(pk), user_id=request.user.id, is_staff=request.user.is_staff
            )
        except OrderNotFound:
            return _not_found()
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status update (staff)
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Cancellations go through ``POST /orders/{id}/cancel/``.
        """
        if not request.user.is_staff:
            raise PermissionDenied("Only staff can change order status.")
        order_id = _parse_pk(pk)
        if order_id is None:
            return _not_found()

        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.update_status(
                order_id=order_id,
                new_status=serializer.validated_data["status"],
                notes=serializer.validated_data["notes"],
                user_id=request.user.id,
            )
        except OrderNotFound:
            return _not_found()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        order_id = _parse_pk(pk)
        if order_id is None:
            return _not_found()

        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.cancel_order(
                order_id=order_id,
                notes=serializer.validated_data["notes"],
                user_id=request.user.id,
                is_staff=request.user.is_staff,
            )
        except OrderNotFound:
            return _not_found()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Pay (open a new payment attempt)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def pay(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/pay/

        Returns ``payment_url``, ``transaction_ref`` and ``expires_at``.
        """
        order_id = _parse_pk(pk)
        if order_id is None:
            return _not_found()

        serializer = PayOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = self._payments.initiate_payment(
                order_id=order_id,
                user_id=request.user.id,
                client_ip=_client_ip(request),
                bank_code=serializer.validated_data["bank_code"],
            )
        except OrderNotFound:
            return _not_found()
        except UnsupportedPaymentMethod as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PaymentNotAllowed as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except (ProviderUnreachable, ProviderRejected):
            return Response(
                {"detail": PROVIDER_ERROR_MESSAGE},
                status=status.HTTP_502_BAD_GATEWAY,
            )

        return Response(result.model_dump(mode="json"), status=status.HTTP_201_CREATED)
