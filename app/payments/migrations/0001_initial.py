import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "payment_code",
                    models.CharField(
                        help_text="Customer-facing payment code",
                        max_length=20,
                        unique=True,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        help_text="Gateway reference (immutable once assigned)",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "intent_key",
                    models.CharField(
                        db_index=True,
                        help_text="Fingerprint of the checkout action for retry reuse",
                        max_length=128,
                    ),
                ),
                (
                    "invoice_number",
                    models.CharField(
                        help_text="Invoice identifier",
                        max_length=20,
                        unique=True,
                    ),
                ),
                (
                    "parent_id",
                    models.UUIDField(db_index=True, help_text="Parent who pays"),
                ),
                (
                    "student_id",
                    models.UUIDField(
                        blank=True,
                        help_text="Student the payment is for, if any",
                        null=True,
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        help_text="Payer email sent to the gateway",
                        max_length=254,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Total amount in minor units (kobo)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="NGN",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "payment_type",
                    models.CharField(
                        choices=[
                            ("registration", "Registration"),
                            ("subject-fee", "Subject Fee"),
                            ("package-fee", "Package Fee"),
                            ("material-fee", "Material Fee"),
                            ("exam-fee", "Exam Fee"),
                            ("wallet-topup", "Wallet Top-up"),
                        ],
                        db_index=True,
                        help_text="What the payment is for",
                        max_length=20,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("card", "Card"),
                            ("bank-transfer", "Bank Transfer"),
                            ("ussd", "USSD"),
                            ("mobile-money", "Mobile Money"),
                            ("wallet", "Wallet"),
                        ],
                        default="card",
                        help_text="How the parent pays",
                        max_length=20,
                    ),
                ),
                (
                    "access_code",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "authorization_url",
                    models.URLField(blank=True, default="", max_length=500),
                ),
                (
                    "gateway_transaction_id",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                ("channel", models.CharField(blank=True, default="", max_length=50)),
                ("card_type", models.CharField(blank=True, default="", max_length=50)),
                ("card_last4", models.CharField(blank=True, default="", max_length=4)),
                ("bank", models.CharField(blank=True, default="", max_length=100)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current payment state",
                        max_length=50,
                    ),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON data for extensibility",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Incremented on every transition",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["parent_id", "status"],
                        name="payment_parent_status_idx",
                    ),
                    models.Index(
                        fields=["status", "updated_at"],
                        name="payment_status_updated_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_amount_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["pending", "processing"])),
                        fields=("intent_key",),
                        name="payment_unique_open_intent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentItem",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("description", models.CharField(max_length=255)),
                ("subject_id", models.UUIDField(blank=True, null=True)),
                ("class_id", models.UUIDField(blank=True, null=True)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("unit_price", models.PositiveBigIntegerField(help_text="Minor units")),
                ("total_price", models.PositiveBigIntegerField(help_text="Minor units")),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["payment", "id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0), ("unit_price__gt", 0)),
                        name="payment_item_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "total_price",
                                models.F("quantity") * models.F("unit_price"),
                            )
                        ),
                        name="payment_item_total_matches",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentRefund",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Refund amount in minor units (kobo)"
                    ),
                ),
                ("reason", models.TextField(blank=True, default="")),
                (
                    "gateway_refund_reference",
                    models.CharField(blank=True, db_index=True, default="", max_length=100),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("requested", "Requested"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="requested",
                        max_length=50,
                    ),
                ),
                ("attempts", models.PositiveIntegerField(default=1)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_refund_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Wallet",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "parent_id",
                    models.UUIDField(
                        help_text="Parent that owns this wallet",
                        unique=True,
                    ),
                ),
                (
                    "balance",
                    models.BigIntegerField(
                        default=0,
                        help_text="Current balance in minor units (kobo)",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="NGN",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Incremented on every balance change",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("balance__gte", 0)),
                        name="wallet_balance_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletTransaction",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this entry was appended",
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        choices=[("credit", "Credit"), ("debit", "Debit")],
                        help_text="Credit adds to the balance, debit takes from it",
                        max_length=10,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount in minor units (always positive)"
                    ),
                ),
                (
                    "description",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Human-readable description of this entry",
                        max_length=255,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        help_text="Idempotency key (payment reference for top-ups)",
                        max_length=255,
                    ),
                ),
                (
                    "balance_after",
                    models.BigIntegerField(
                        help_text="Wallet balance right after this entry"
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON data for extensibility",
                    ),
                ),
                (
                    "wallet",
                    models.ForeignKey(
                        help_text="Wallet this entry belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="payments.wallet",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("wallet", "reference"),
                        name="wallet_transaction_unique_reference",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="wallet_transaction_amount_positive",
                    ),
                ],
            },
        ),
    ]
