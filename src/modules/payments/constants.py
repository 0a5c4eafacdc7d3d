"""Payment attempt constants."""

from django.db import models


class AttemptStatus(models.TextChoices):
    PENDING = "PENDING", "Đang chờ"
    PAID = "PAID", "Thành công"
    FAILED = "FAILED", "Thất bại"
    CANCELLED = "CANCELLED", "Đã hủy"


class Provider(models.TextChoices):
    VNPAY = "VNPAY", "VNPay"
    MOMO = "MOMO", "MoMo"


OPEN_ATTEMPT_STATES: set[str] = {AttemptStatus.PENDING}

VNPAY_SUCCESS_CODE = "00"
MOMO_SUCCESS_CODE = 0
