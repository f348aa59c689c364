# orders/services/address_book.py

"""
SAVED ADDRESS BOOK

Rules:
- Every lookup is scoped to the owning user (someone else's address is NOT_FOUND).
- A user has at most one default address; making one default clears the rest
  in the same transaction.
- Deleting an address never touches orders: they keep their JSON snapshot.
"""

from __future__ import annotations

import logging

from django.db import transaction

from common.exceptions import NotFoundError
from orders.models import Address

logger = logging.getLogger(__name__)


def list_addresses(user):
    return Address.objects.filter(user=user).order_by("-is_default", "-created_at")


def get_address(user, address_id, *, for_update=False) -> Address:
    qs = Address.objects.filter(pk=address_id, user=user)
    if for_update:
        qs = qs.select_for_update()
    address = qs.first()
    if address is None:
        raise NotFoundError("Address not found")
    return address


def _clear_default(user, *, keep=None) -> None:
    qs = Address.objects.filter(user=user, is_default=True)
    if keep is not None:
        qs = qs.exclude(pk=keep.pk)
    qs.update(is_default=False)


@transaction.atomic
def create_address(user, data: dict) -> Address:
    values = {name: data[name] for name in Address.SNAPSHOT_FIELDS if name in data}
    is_default = bool(data.get("is_default"))

    if is_default:
        _clear_default(user)

    address = Address.objects.create(user=user, is_default=is_default, **values)
    logger.info(
        "Address saved",
        extra={"user_id": user.pk, "address_id": str(address.pk), "is_default": is_default},
    )
    return address


@transaction.atomic
def update_address(user, address_id, data: dict) -> Address:
    address = get_address(user, address_id, for_update=True)

    fields = [name for name in Address.SNAPSHOT_FIELDS if name in data]
    for name in fields:
        setattr(address, name, data[name])

    if data.get("is_default") and not address.is_default:
        _clear_default(user, keep=address)
        address.is_default = True
        fields.append("is_default")

    if fields:
        address.save(update_fields=fields)
    return address


@transaction.atomic
def set_default_address(user, address_id) -> Address:
    address = get_address(user, address_id, for_update=True)
    _clear_default(user, keep=address)

    if not address.is_default:
        address.is_default = True
        address.save(update_fields=["is_default"])
    return address


def delete_address(user, address_id) -> None:
    address = get_address(user, address_id)
    address.delete()
    logger.info("Address deleted", extra={"user_id": user.pk, "address_id": str(address_id)})
