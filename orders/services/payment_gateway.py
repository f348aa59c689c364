# orders/services/payment_gateway.py

"""
PAYMENT GATEWAY (COLLABORATOR)

Contract:
    create_intent(order) -> PaymentIntent(reference, authorization_url)

The checkout core never talks to card networks. It asks the configured
gateway for an intent after the order commits, records a PaymentAttempt, and
later receives the confirmation through /api/payments/confirm/.

Gateways:
- "manual"   : no network; returns a local reference (dev/test, bank transfer)
- "paystack" : Paystack transaction/initialize over HTTPS

Selection: settings.PAYMENTS["GATEWAY"].
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings

from orders.models import PaymentAttempt

logger = logging.getLogger(__name__)

PAYSTACK_BASE = "https://api.paystack.co"


class PaymentGatewayError(Exception):
    """Gateway unreachable or rejected the request."""


@dataclass(frozen=True)
class PaymentIntent:
    reference: str
    authorization_url: str = ""
    provider: str = PaymentAttempt.PROVIDER_MANUAL
    payload: dict = field(default_factory=dict)


class PaymentGateway:
    provider = ""

    def create_intent(self, order) -> PaymentIntent:
        raise NotImplementedError


class ManualGateway(PaymentGateway):
    provider = PaymentAttempt.PROVIDER_MANUAL

    def create_intent(self, order) -> PaymentIntent:
        reference = f"MAN-{order.order_no}-{uuid.uuid4().hex[:6].upper()}"
        return PaymentIntent(reference=reference, provider=self.provider)


# ============================================================
# PAYSTACK
# ============================================================


def _paystack_cfg() -> dict:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("PAYSTACK") if isinstance(payments, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def _to_minor_units(amount: Decimal) -> int:
    try:
        major = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError("amount must be a valid Decimal") from exc
    return int((major * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _safe_preview(text: str, limit: int = 800) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def _parse_json(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw or "")
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


class PaystackGateway(PaymentGateway):
    provider = PaymentAttempt.PROVIDER_PAYSTACK

    def __init__(self, *, secret_key: str | None = None, callback_url: str | None = None, timeout: int = 25):
        cfg = _paystack_cfg()
        self.secret_key = (secret_key if secret_key is not None else cfg.get("SECRET_KEY") or "").strip()
        self.callback_url = (
            callback_url if callback_url is not None else cfg.get("CALLBACK_URL") or ""
        ).strip()
        self.timeout = timeout

    def _request_json(self, method: str, url: str, *, body: dict | None = None) -> dict[str, Any]:
        if not self.secret_key:
            raise PaymentGatewayError(
                "PAYSTACK SECRET_KEY is not configured. Expected settings.PAYMENTS['PAYSTACK']['SECRET_KEY']."
            )

        data = json.dumps(body, ensure_ascii=False).encode("utf-8") if body is not None else None
        req = Request(
            url,
            data=data,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            method=method,
        )

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            parsed = _parse_json(raw) or {}
            msg = parsed.get("message") or _safe_preview(raw) or "Paystack rejected request"
            raise PaymentGatewayError(f"Paystack HTTPError: {e.code} {msg}") from e
        except URLError as e:
            raise PaymentGatewayError(f"Paystack URLError: {e}") from e

        parsed = _parse_json(raw)
        if parsed is None:
            raise PaymentGatewayError(f"Paystack returned non-JSON: {_safe_preview(raw)}")
        return parsed

    def create_intent(self, order) -> PaymentIntent:
        reference = f"PSK-{order.order_no}-{uuid.uuid4().hex[:6].upper()}"
        payload: dict = {
            "email": (getattr(order.user, "email", "") or order.shipping_address.get("email") or "").strip(),
            "amount": _to_minor_units(order.total),
            "currency": order.currency,
            "reference": reference,
            "metadata": {"order_id": str(order.id), "order_no": order.order_no},
        }
        if self.callback_url:
            payload["callback_url"] = self.callback_url

        parsed = self._request_json("POST", f"{PAYSTACK_BASE}/transaction/initialize", body=payload)
        if not parsed.get("status"):
            raise PaymentGatewayError(parsed.get("message") or "Paystack init rejected")

        data = parsed.get("data") or {}
        return PaymentIntent(
            reference=str(data.get("reference") or reference),
            authorization_url=str(data.get("authorization_url") or ""),
            provider=self.provider,
            payload=data,
        )


GATEWAYS = {
    PaymentAttempt.PROVIDER_MANUAL: ManualGateway,
    PaymentAttempt.PROVIDER_PAYSTACK: PaystackGateway,
}


def get_payment_gateway() -> PaymentGateway:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    name = str(payments.get("GATEWAY") or PaymentAttempt.PROVIDER_MANUAL).strip().lower()
    gateway_cls = GATEWAYS.get(name)
    if gateway_cls is None:
        raise PaymentGatewayError(f"Unknown payment gateway: {name}")
    return gateway_cls()
