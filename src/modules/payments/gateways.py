"""Provider request builders and callback parsers (VNPay, MoMo).

Money stays in integers end to end. VNPay wants the amount in minor units
(x100); ``descale_amount`` reverses that exactly or raises
``AmountMismatch``. MoMo amounts travel unscaled.
"""

from __future__ import annotations

import hashlib
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo

import httpx
import structlog
from django.conf import settings
from django.utils import timezone
from pydantic import BaseModel, ConfigDict

from modules.payments.constants import (
    MOMO_SUCCESS_CODE,
    VNPAY_SUCCESS_CODE,
    Provider,
)
from modules.payments.exceptions import (
    AmountMismatch,
    ProviderRejected,
    ProviderUnreachable,
    UnsupportedPaymentMethod,
)
from modules.payments.signing import canonical_query, sign, verify

logger = structlog.get_logger(__name__)

PROVIDER_TZ = ZoneInfo("Asia/Ho_Chi_Minh")
MINOR_UNITS = 100
_DIGITS = re.compile(r"[0-9]+")

# ---------------------------------------------------------------------------
# Amounts, timestamps, references
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def scale_amount(amount: int) -> int:
    """Major units (VND) to VNPay minor units."""
    if not _is_int(amount) or amount < 0:
        raise AmountMismatch(f"Amount must be a non-negative integer, got {amount!r}.")
    return amount * MINOR_UNITS


def descale_amount(minor: Any) -> int:
    """VNPay minor units back to VND using integer arithmetic only.

    Accepts an int or a string of ASCII digits; anything not exactly
    divisible by 100 raises ``AmountMismatch``.
    """
    if isinstance(minor, str):
        if not _DIGITS.fullmatch(minor):
            raise AmountMismatch(f"Malformed amount {minor!r}.")
        minor = int(minor)
    if not _is_int(minor) or minor < 0:
        raise AmountMismatch(f"Malformed amount {minor!r}.")
    major, remainder = divmod(minor, MINOR_UNITS)
    if remainder:
        raise AmountMismatch(f"Amount {minor} is not a whole number of VND.")
    return major


def parse_plain_amount(value: Any) -> int:
    """Unscaled integer amount (MoMo); rejects fractions and junk."""
    if isinstance(value, str) and _DIGITS.fullmatch(value):
        return int(value)
    if _is_int(value) and value >= 0:
        return value
    raise AmountMismatch(f"Malformed amount {value!r}.")


def format_timestamp(dt: datetime) -> str:
    """``YYYYMMDDHHMMSS`` in the provider's time zone (always 14 digits)."""
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt.astimezone(PROVIDER_TZ).strftime("%Y%m%d%H%M%S")


def make_transaction_ref(order_number: str, attempt: int) -> str:
    return f"{order_number}-{attempt:02d}"


class ProviderCallback(BaseModel):
    """Verified, normalised outcome reported by a provider."""

    model_config = ConfigDict(frozen=True)

    provider: Provider
    transaction_ref: str
    amount: int
    success: bool
    response_code: str
    bank_code: str = ""
    provider_transaction_no: str = ""
    message: str = ""


# ---------------------------------------------------------------------------
# VNPay
# ---------------------------------------------------------------------------


class VNPayGateway:
    provider = Provider.VNPAY
    signature_field = "vnp_SecureHash"
    unsigned_fields = ("vnp_SecureHash", "vnp_SecureHashType")

    def __init__(self, config: Optional[Mapping[str, Any]] = None) -> None:
        self._config = config or settings.VNPAY

    def build_params(
        self,
        amount: int,
        transaction_ref: str,
        order_info: str,
        client_ip: str,
        bank_code: Optional[str] = None,
        now: Optional[datetime] = None,
        expire_at: Optional[datetime] = None,
    ) -> Dict[str, str]:
        now = now or timezone.now()
        params = {
            "vnp_Version": self._config["VERSION"],
            "vnp_TmnCode": self._config["TMN_CODE"],
            "vnp_Amount": str(scale_amount(amount)),
            "vnp_Command": "pay",
            "vnp_CreateDate": format_timestamp(now),
            "vnp_CurrCode": self._config["CURRENCY"],
            "vnp_IpAddr": client_ip,
            "vnp_Locale": self._config["LOCALE"],
            "vnp_OrderInfo": order_info,
            "vnp_OrderType": self._config["ORDER_TYPE"],
            "vnp_ReturnUrl": self._config["RETURN_URL"],
            "vnp_TxnRef": transaction_ref,
        }
        if bank_code:
            params["vnp_BankCode"] = bank_code
        if expire_at is not None:
            params["vnp_ExpireDate"] = format_timestamp(expire_at)
        return params

    def build_payment_url(
        self,
        amount: int,
        transaction_ref: str,
        order_info: str,
        client_ip: str,
        bank_code: Optional[str] = None,
        now: Optional[datetime] = None,
        expire_at: Optional[datetime] = None,
    ) -> str:
        """Signed redirect URL: sorted encoded query + ``vnp_SecureHash``."""
        params = self.build_params(
            amount, transaction_ref, order_info, client_ip, bank_code, now, expire_at
        )
        secure_hash = sign(params, self._config["HASH_SECRET"])
        return (
            f"{self._config['PAYMENT_URL']}?{canonical_query(params)}"
            f"&{self.signature_field}={secure_hash}"
        )

    def parse_callback(self, params: Mapping[str, Any]) -> ProviderCallback:
        """Verify and normalise an IPN / return query.

        Raises ``SignatureInvalid`` or ``AmountMismatch``.
        """
        vnp_params = {k: v for k, v in params.items() if str(k).startswith("vnp_")}
        verify(
            vnp_params,
            self._config["HASH_SECRET"],
            signature_field=self.signature_field,
            exclude=self.unsigned_fields,
        )
        response_code = str(vnp_params.get("vnp_ResponseCode", ""))
        transaction_status = vnp_params.get("vnp_TransactionStatus")
        success = response_code == VNPAY_SUCCESS_CODE and (
            transaction_status is None or str(transaction_status) == VNPAY_SUCCESS_CODE
        )
        return ProviderCallback(
            provider=self.provider,
            transaction_ref=str(vnp_params.get("vnp_TxnRef", "")),
            amount=descale_amount(vnp_params.get("vnp_Amount", "")),
            success=success,
            response_code=response_code,
            bank_code=str(vnp_params.get("vnp_BankCode", "")),
            provider_transaction_no=str(vnp_params.get("vnp_TransactionNo", "")),
        )


# ---------------------------------------------------------------------------
# MoMo
# ---------------------------------------------------------------------------

MOMO_IPN_FIELDS = (
    "amount",
    "extraData",
    "message",
    "orderId",
    "orderInfo",
    "orderType",
    "partnerCode",
    "payType",
    "requestId",
    "responseTime",
    "resultCode",
    "transId",
)


class MomoGateway:
    provider = Provider.MOMO
    signature_field = "signature"

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._config = config or settings.MOMO
        self._client = client
        self._timeout = timeout or settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS

    def _sign(self, params: Mapping[str, Any]) -> str:
        return sign(
            params,
            self._config["SECRET_KEY"],
            digestmod=hashlib.sha256,
            encode=False,
        )

    def build_request(
        self,
        amount: int,
        transaction_ref: str,
        order_info: str,
        request_id: Optional[str] = None,
        extra_data: str = "",
    ) -> Dict[str, Any]:
        """MoMo v2 create-payment body, signed over the raw sorted string."""
        if not _is_int(amount) or amount < 0:
            raise AmountMismatch(f"Amount must be a non-negative integer, got {amount!r}.")
        signed_fields = {
            "accessKey": self._config["ACCESS_KEY"],
            "amount": str(amount),
            "extraData": extra_data,
            "ipnUrl": self._config["IPN_URL"],
            "orderId": transaction_ref,
            "orderInfo": order_info,
            "partnerCode": self._config["PARTNER_CODE"],
            "redirectUrl": self._config["REDIRECT_URL"],
            "requestId": request_id or uuid.uuid4().hex,
            "requestType": self._config["REQUEST_TYPE"],
        }
        body: Dict[str, Any] = {
            key: value for key, value in signed_fields.items() if key != "accessKey"
        }
        body["amount"] = amount
        body["lang"] = self._config.get("LANG", "vi")
        body["signature"] = self._sign(signed_fields)
        return body

    def create_payment(self, amount: int, transaction_ref: str, order_info: str) -> str:
        """POST the request to MoMo and return its ``payUrl``.

        Raises ``ProviderUnreachable`` on transport errors / timeouts and
        ``ProviderRejected`` on a non-zero ``resultCode``.
        """
        body = self.build_request(amount, transaction_ref, order_info)
        log = logger.bind(provider=self.provider, transaction_ref=transaction_ref)
        client = self._client or httpx.Client(timeout=self._timeout)
        try:
            response = client.post(self._config["ENDPOINT"], json=body)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.error("payment.provider_unreachable", error=str(exc))
            raise ProviderUnreachable(f"MoMo request failed: {exc}") from exc
        finally:
            if self._client is None:
                client.close()

        result_code = data.get("resultCode")
        if result_code != MOMO_SUCCESS_CODE or not data.get("payUrl"):
            log.warning(
                "payment.provider_rejected",
                result_code=result_code,
                provider_message=data.get("message"),
            )
            raise ProviderRejected(f"MoMo rejected payment: {data.get('message')}")
        return data["payUrl"]

    def parse_callback(self, body: Mapping[str, Any]) -> ProviderCallback:
        """Verify the IPN signature over the documented IPN field set."""
        payload: Dict[str, Any] = {field: body.get(field, "") for field in MOMO_IPN_FIELDS}
        payload["accessKey"] = self._config["ACCESS_KEY"]
        payload[self.signature_field] = body.get(self.signature_field, "")
        verify(
            payload,
            self._config["SECRET_KEY"],
            signature_field=self.signature_field,
            digestmod=hashlib.sha256,
            encode=False,
        )
        result_code = str(body.get("resultCode", ""))
        return ProviderCallback(
            provider=self.provider,
            transaction_ref=str(body.get("orderId", "")),
            amount=parse_plain_amount(body.get("amount")),
            success=result_code == str(MOMO_SUCCESS_CODE),
            response_code=result_code,
            bank_code=str(body.get("payType", "")),
            provider_transaction_no=str(body.get("transId", "")),
            message=str(body.get("message", "")),
        )


def get_gateway(provider: str):
    if provider == Provider.VNPAY:
        return VNPayGateway()
    if provider == Provider.MOMO:
        return MomoGateway()
    raise UnsupportedPaymentMethod(f"No gateway for {provider}.")
