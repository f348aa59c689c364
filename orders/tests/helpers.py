# orders/tests/helpers.py

from decimal import Decimal

from django.contrib.auth import get_user_model

from carts.models import Cart
from carts.services import cart_service
from catalog.models import Product
from catalog.units import SellableUnit
from inventory.services import ledger
from orders.models import ShippingMethod
from orders.services.checkout_orchestrator import CheckoutRequest

ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "street": "12 Analytical Row",
    "city": "London",
    "state": "",
    "zip_code": "N1",
    "country": "GB",
}


def make_user(username="ada", password="pass-1234"):
    return get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=password,
    )


def make_product(sku, price="10.00", stock=10, **extra):
    product = Product.objects.create(sku=sku, name=sku.title(), base_price=Decimal(price), **extra)
    if stock is not None:
        ledger.adjust_on_hand(SellableUnit.of(product.id), stock)
    return product


def user_cart(user) -> Cart:
    cart, _ = Cart.objects.get_or_create(user=user)
    return cart


def add(cart, product, qty):
    return cart_service.add_line(cart, SellableUnit.of(product.id), qty)


def standard_shipping() -> ShippingMethod:
    return ShippingMethod.objects.get(code="standard")


def checkout_request(payment_method="CASH_ON_DELIVERY", shipping=None, **overrides) -> CheckoutRequest:
    values = {
        "payment_method": payment_method,
        "shipping_method_id": (shipping or standard_shipping()).id,
        "address": dict(ADDRESS),
    }
    values.update(overrides)
    return CheckoutRequest(**values)
