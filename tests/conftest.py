import hashlib
import itertools

import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from modules.orders.constants import PaymentMethod
from modules.orders.dtos import CheckoutDTO, CheckoutItemDTO
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.gateways import MOMO_IPN_FIELDS
from modules.payments.repositories import PaymentDjangoRepository
from modules.payments.services import PaymentService
from modules.payments.signing import sign, signed
from modules.products.models import Product, ProductStatus, ProductVariant
from modules.products.repositories.django_repository import ProductDjangoRepository

User = get_user_model()

_sku_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Lock keys live in the local-memory cache; start every test clean."""
    cache.clear()
    yield
    cache.clear()


# ---------------------------------------------------------------------------
# Users and clients
# ---------------------------------------------------------------------------


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def user():
    return User.objects.create_user(
        username="shopper", email="shopper@shoex.test", password="testpass123"
    )


@pytest.fixture()
def other_user():
    return User.objects.create_user(
        username="other", email="other@shoex.test", password="testpass123"
    )


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="admin",
        email="admin@shoex.test",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture()
def auth_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_variant():
    """Factory: a product with one variant; stock lives on the product."""

    def _make(
        quantity=10,
        price=500_000,
        size="42",
        status=ProductStatus.IN_STOCK,
        product=None,
        **variant_fields,
    ):
        if product is None:
            number = next(_sku_counter)
            product = Product.objects.create(
                sku=f"sx-{number:04d}",
                name=f"Giày chạy bộ {number}",
                base_price=price,
                quantity=quantity,
                status=status,
            )
        return ProductVariant.objects.create(
            product=product, size=size, price=price, **variant_fields
        )

    return _make


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_repository():
    return OrderDjangoRepository()


@pytest.fixture()
def product_repository():
    return ProductDjangoRepository()


@pytest.fixture()
def payment_repository():
    return PaymentDjangoRepository()


@pytest.fixture()
def order_service(order_repository, product_repository):
    return OrderService(
        order_repository=order_repository, product_repository=product_repository
    )


@pytest.fixture()
def payment_service(order_repository, payment_repository):
    return PaymentService(
        order_repository=order_repository, payment_repository=payment_repository
    )


@pytest.fixture()
def place_order(order_service):
    """Factory: check out ``lines`` [(variant, qty)] and optionally age the order."""

    def _place(user, lines, payment_method=PaymentMethod.VNPAY, age=None):
        order = order_service.checkout(
            CheckoutDTO(
                user_id=user.id,
                items=[
                    CheckoutItemDTO(variant_id=variant.id, quantity=quantity)
                    for variant, quantity in lines
                ],
                payment_method=payment_method,
                delivery_address="12 Lê Lợi, Quận 1, TP.HCM",
            )
        )
        if age is not None:
            Order.objects.filter(id=order.id).update(created_at=timezone.now() - age)
        return Order.objects.get(id=order.id)

    return _place


# ---------------------------------------------------------------------------
# Provider callbacks
# ---------------------------------------------------------------------------


@pytest.fixture()
def vnpay_callback():
    """Factory: VNPay IPN/return query for an attempt, signed with the test secret."""

    def _build(payment, success=True, amount=None, secret=None):
        params = {
            "vnp_Amount": str((payment.amount if amount is None else amount) * 100),
            "vnp_BankCode": "NCB",
            "vnp_CardType": "ATM",
            "vnp_OrderInfo": f"Thanh toan don hang {payment.transaction_ref}",
            "vnp_PayDate": "20261019103000",
            "vnp_ResponseCode": "00" if success else "24",
            "vnp_TmnCode": settings.VNPAY["TMN_CODE"],
            "vnp_TransactionNo": "14123456",
            "vnp_TransactionStatus": "00" if success else "02",
            "vnp_TxnRef": payment.transaction_ref,
        }
        return signed(
            params,
            secret or settings.VNPAY["HASH_SECRET"],
            signature_field="vnp_SecureHash",
        )

    return _build


@pytest.fixture()
def momo_ipn():
    """Factory: MoMo IPN body for an attempt, signed with the test keys."""

    def _build(payment, result_code=0, amount=None):
        body = {
            "partnerCode": settings.MOMO["PARTNER_CODE"],
            "orderId": payment.transaction_ref,
            "requestId": "req-0001",
            "amount": payment.amount if amount is None else amount,
            "orderInfo": "Thanh toan don hang",
            "orderType": "momo_wallet",
            "transId": 2800000001,
            "resultCode": result_code,
            "message": "Successful." if result_code == 0 else "Transaction denied.",
            "payType": "qr",
            "responseTime": 1760850000000,
            "extraData": "",
        }
        payload = {field: body[field] for field in MOMO_IPN_FIELDS}
        payload["accessKey"] = settings.MOMO["ACCESS_KEY"]
        body["signature"] = sign(
            payload,
            settings.MOMO["SECRET_KEY"],
            digestmod=hashlib.sha256,
            encode=False,
        )
        return body

    return _build
