"""Provider callback routes, mounted under ``/api/v1/payments/``."""

from django.urls import path

from modules.payments.views import MomoIPNView, VNPayIPNView, VNPayReturnView

urlpatterns = [
    path("vnpay/ipn", VNPayIPNView.as_view(), name="vnpay_ipn"),
    path("vnpay/return", VNPayReturnView.as_view(), name="vnpay_return"),
    path("momo/ipn", MomoIPNView.as_view(), name="momo_ipn"),
]
