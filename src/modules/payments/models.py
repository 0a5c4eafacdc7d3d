"""Payment attempts.

One row per attempt to pay an order online. ``transaction_ref`` is the
reference sent to the provider (``<order_number>-<attempt:02d>``) and is
never reused: retries allocate the next attempt number.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.payments.constants import OPEN_ATTEMPT_STATES, AttemptStatus, Provider


class Payment(BaseModel):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    method = models.CharField(max_length=20, choices=Provider.choices)
    attempt = models.PositiveSmallIntegerField()
    transaction_ref = models.CharField(max_length=40, unique=True)
    amount = models.PositiveBigIntegerField()
    status = models.CharField(
        max_length=20,
        choices=AttemptStatus.choices,
        default=AttemptStatus.PENDING,
    )
    bank_code = models.CharField(max_length=40, blank=True, default="")
    response_code = models.CharField(max_length=10, blank=True, default="")
    provider_transaction_no = models.CharField(max_length=64, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "payments"
        ordering = ["order_id", "attempt"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "attempt"],
                name="payments_order_attempt_uniq",
            ),
        ]

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ATTEMPT_STATES

    def __str__(self) -> str:
        return f"{self.transaction_ref} [{self.status}]"
