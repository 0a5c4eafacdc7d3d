import django.db.models.deletion
import django.utils.timezone
import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "method",
                    models.CharField(
                        choices=[("VNPAY", "VNPay"), ("MOMO", "MoMo")],
                        max_length=20,
                    ),
                ),
                ("attempt", models.PositiveSmallIntegerField()),
                ("transaction_ref", models.CharField(max_length=40, unique=True)),
                ("amount", models.PositiveBigIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Đang chờ"),
                            ("PAID", "Thành công"),
                            ("FAILED", "Thất bại"),
                            ("CANCELLED", "Đã hủy"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("bank_code", models.CharField(blank=True, default="", max_length=40)),
                (
                    "response_code",
                    models.CharField(blank=True, default="", max_length=10),
                ),
                (
                    "provider_transaction_no",
                    models.CharField(blank=True, default="", max_length=64),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "payments",
                "ordering": ["order_id", "attempt"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order", "attempt"),
                        name="payments_order_attempt_uniq",
                    ),
                ],
            },
        ),
    ]
