# orders/models/payment_attempt.py

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class PaymentAttempt(models.Model):
    """
    Payment attempt for an Order.

    Idempotency rule:
    - reference is unique (gateway reference)
    - confirmation processing must be idempotent using this reference
    """

    PROVIDER_PAYSTACK = "paystack"
    PROVIDER_MANUAL = "manual"
    PROVIDER_CASH_ON_DELIVERY = "cod"
    PROVIDER_CHOICES = [
        (PROVIDER_PAYSTACK, "Paystack"),
        (PROVIDER_MANUAL, "Manual"),
        (PROVIDER_CASH_ON_DELIVERY, "Cash on delivery"),
    ]

    STATUS_INITIATED = "initiated"
    STATUS_REDIRECTED = "redirected"
    STATUS_VERIFIED = "verified"
    STATUS_FAILED = "failed"
    STATUS_EXPIRED = "expired"

    STATUS_CHOICES = [
        (STATUS_INITIATED, "Initiated"),
        (STATUS_REDIRECTED, "Redirected"),
        (STATUS_VERIFIED, "Verified"),
        (STATUS_FAILED, "Failed"),
        (STATUS_EXPIRED, "Expired"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="payment_attempts",
    )

    provider = models.CharField(max_length=32, choices=PROVIDER_CHOICES, default=PROVIDER_MANUAL)

    reference = models.CharField(
        max_length=128,
        unique=True,
        help_text="Gateway reference. Must be unique for idempotency.",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    currency = models.CharField(max_length=8, default="USD")

    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_INITIATED)

    authorization_url = models.URLField(blank=True, default="")
    provider_payload = models.JSONField(default=dict, blank=True)

    initiated_at = models.DateTimeField(auto_now_add=True)
    verified_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-initiated_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_payment_status_idx"),
            models.Index(fields=["order", "initiated_at"], name="orders_payment_order_idx"),
        ]

    def mark_verified(self, payload=None):
        self.status = self.STATUS_VERIFIED
        self.verified_at = self.verified_at or timezone.now()
        if payload is not None:
            self.provider_payload = payload

    def __str__(self):
        return f"{self.provider}:{self.reference} | {self.status}"
