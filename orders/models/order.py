# orders/models/order.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class PaymentMethod(models.TextChoices):
    CREDIT_CARD = "CREDIT_CARD", "Credit card"
    DEBIT_CARD = "DEBIT_CARD", "Debit card"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY", "Cash on delivery"


class Order(models.Model):
    """
    Customer order created by the checkout orchestrator.

    GUARANTEES:
    - Identity (id, order_no) never changes
    - Money + selection snapshot is immutable after creation
      (never recomputed from the live cart or live prices)
    - Only `status` and lifecycle timestamps move, and only through
      orders.services.order_service (transitions validated by order_lifecycle)

    RESERVATION TRACKING:
    - Each OrderItem records the inventory row and units it reserved.
    - reservation_status says whether that hold is still outstanding, so a
      release (cancel/expire) or commit (fulfill) happens exactly once.
    """

    class Status(models.TextChoices):
        PENDING_PAYMENT = "PENDING_PAYMENT", "Pending payment"
        PAID = "PAID", "Paid"
        CASH_ON_DELIVERY_CONFIRMED = "CASH_ON_DELIVERY_CONFIRMED", "Cash on delivery confirmed"
        FULFILLED = "FULFILLED", "Fulfilled"
        CANCELLED = "CANCELLED", "Cancelled"
        EXPIRED = "EXPIRED", "Expired"

    class ReservationStatus(models.TextChoices):
        HELD = "HELD", "Held"
        RELEASED = "RELEASED", "Released"
        COMMITTED = "COMMITTED", "Committed"
        NONE = "NONE", "None"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated public order number",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = models.CharField(
        max_length=32,
        choices=Status.choices,
        default=Status.PENDING_PAYMENT,
    )

    payment_method = models.CharField(max_length=32, choices=PaymentMethod.choices)

    reservation_status = models.CharField(
        max_length=16,
        choices=ReservationStatus.choices,
        default=ReservationStatus.HELD,
    )
    reservation_expires_at = models.DateTimeField(null=True, blank=True)

    # Selection snapshot
    address = models.ForeignKey(
        "orders.Address",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    shipping_address = models.JSONField(default=dict)

    shipping_method = models.ForeignKey(
        "orders.ShippingMethod",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
    )
    shipping_method_name = models.CharField(max_length=120, blank=True, default="")

    coupon_code = models.CharField(max_length=64, blank=True, default="")

    # Money snapshot (server authoritative)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=8, default="USD")

    notes = models.TextField(blank=True, default="")
    cancel_reason = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    fulfilled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_order_status_idx"),
            models.Index(fields=["user", "created_at"], name="orders_order_user_idx"),
            models.Index(
                fields=["status", "reservation_expires_at"],
                name="orders_order_expiry_idx",
            ),
        ]

    _IMMUTABLE_FIELDS = (
        "order_no",
        "user_id",
        "payment_method",
        "shipping_address",
        "shipping_method_name",
        "coupon_code",
        "subtotal",
        "discount",
        "shipping_cost",
        "tax",
        "total",
        "currency",
        "created_at",
    )

    def _validate_immutable(self, previous: "Order"):
        for field in self._IMMUTABLE_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValueError(f"Order snapshot is immutable. Field '{field}' cannot be changed.")

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = Order.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        if not self.order_no:
            prefix = timezone.now().strftime("ORD-%Y%m%d")
            self.order_no = f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order_no} | {self.total} | {self.status}"
