# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS
Selected automatically by manage.py for `manage.py test` and by pytest-django.

- High throttle rates (tests hit write endpoints many times per minute)
- Manual payment gateway (no network)
- Fast password hashing
- In-memory email
- File-backed SQLite test database (threaded tests share it across connections)
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import BASE_DIR, DATABASES, REST_FRAMEWORK

DEBUG = False

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

if DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3":
    DATABASES["default"]["TEST"] = {"NAME": str(BASE_DIR / "test_db.sqlite3")}
    DATABASES["default"].setdefault("OPTIONS", {}).update(
        {"timeout": 20, "transaction_mode": "IMMEDIATE"}
    )

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
ORDER_NOTIFICATIONS_ENABLED = True

PAYMENTS = {"GATEWAY": "manual", "PAYSTACK": {}}
PAYMENT_CALLBACK_SECRET = "test-callback-secret"
ADMIN_TASKS_SECRET = "test-tasks-secret"

CHECKOUT_TAX_RATE = "0.10"
CHECKOUT_CURRENCY = "USD"

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_RATES": {
        "anon": "10000/min",
        "user": "10000/min",
        "cart_write": "10000/min",
        "checkout": "10000/min",
        "webhook": "10000/min",
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "CRITICAL"},
}
