"""
Storefront Payments — Models
==============================
PaymentMethodConfig: which providers a tenant accepts, with the
provider settings stored as JSON and parsed into a typed config
(engines.payments.config) on every use.

PaymentTransaction: one row per payment attempt. The current
authoritative attempt is the most recent one that is not FAILED.
After creation, status is changed only by reconciliation.
"""

import uuid

from django.db import models


class TransactionStatus(models.TextChoices):
    CREATED = "CREATED", "Created"
    REQUIRES_ACTION = "REQUIRES_ACTION", "Requires action"
    OFFLINE_PENDING = "OFFLINE_PENDING", "Offline pending"
    PAID = "PAID", "Paid"
    FAILED = "FAILED", "Failed"


OPEN_TRANSACTION_STATUSES = frozenset(
    {
        TransactionStatus.CREATED,
        TransactionStatus.REQUIRES_ACTION,
        TransactionStatus.OFFLINE_PENDING,
    }
)

# failure_reason prefix for attempts the store gave up on itself:
# replaced by a newer attempt, or the order was closed unpaid.
# Provider successes for these are never applied.
VOIDED_PREFIX = "VOIDED:"


class PaymentMethodConfig(models.Model):
    tenant_id = models.UUIDField()
    provider_code = models.CharField(
        max_length=32,
        help_text="Upper case provider code, e.g. STRIPE, CASH, PAYPAL.",
    )
    enabled = models.BooleanField(default=False)
    config_json = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sf_payment_method_configs"
        ordering = ["provider_code"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "provider_code"],
                name="uq_payment_method_tenant_provider",
            ),
        ]

    def save(self, *args, **kwargs):
        self.provider_code = (self.provider_code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        state = "enabled" if self.enabled else "disabled"
        return f"{self.provider_code} ({state})"


class PaymentTransaction(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField()
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment_transactions",
    )
    provider_code = models.CharField(max_length=32)
    provider_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider-side id used to match callbacks.",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency_code = models.CharField(max_length=3)
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.CREATED,
    )
    failure_reason = models.CharField(max_length=255, blank=True, default="")
    last_event_id = models.CharField(max_length=255, blank=True, default="")
    raw_provider_payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "sf_payment_transactions"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="idx_payment_tx_order",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider_code", "provider_reference"],
                condition=models.Q(provider_reference__isnull=False),
                name="uq_payment_tx_provider_reference",
            ),
        ]

    @property
    def is_voided(self) -> bool:
        return (
            self.status == TransactionStatus.FAILED
            and self.failure_reason.startswith(VOIDED_PREFIX)
        )

    def __str__(self):
        return f"{self.provider_code}:{self.provider_reference} ({self.status})"
