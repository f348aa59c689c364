# orders/models/address.py

import uuid

from django.conf import settings
from django.db import models


class Address(models.Model):
    """
    Saved customer address.

    Orders never point at a live Address for display; they carry
    a JSON snapshot taken at checkout (Order.shipping_address).
    """

    SNAPSHOT_FIELDS = (
        "first_name",
        "last_name",
        "email",
        "phone",
        "street",
        "city",
        "state",
        "zip_code",
        "country",
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="addresses",
    )

    first_name = models.CharField(max_length=80)
    last_name = models.CharField(max_length=80)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=40, blank=True, default="")

    street = models.CharField(max_length=255)
    city = models.CharField(max_length=120)
    state = models.CharField(max_length=120, blank=True, default="")
    zip_code = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=80)

    is_default = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-is_default", "-created_at"]

    def as_snapshot(self) -> dict:
        return {f: getattr(self, f) for f in self.SNAPSHOT_FIELDS}

    def __str__(self):
        return f"{self.first_name} {self.last_name}, {self.street}, {self.city}"
