"""
Tests for `config/settings.py`.
"""

from __future__ import annotations

import pytest

from config.settings import DEFAULT_DISPOSABLE_EMAIL_DOMAINS, load_settings, parse_encryption_key

HEX_KEY = "00" * 32


def test_defaults() -> None:
    settings = load_settings({"QR_ENCRYPTION_KEY": HEX_KEY})

    assert settings.storage_backend == "memory"
    assert settings.payment_provider == "mock"
    assert settings.qr_encryption_key == bytes(32)
    assert settings.venue_timezone.key == "America/Bogota"
    assert settings.payment_currency == "COP"
    assert settings.payment_poll_timeout_seconds == 30.0
    assert settings.payment_poll_interval_seconds == 3.0
    assert settings.pending_checkout_ttl_minutes == 30
    assert settings.disposable_email_domains == DEFAULT_DISPOSABLE_EMAIL_DOMAINS
    assert settings.log_level == "INFO"


def test_missing_qr_key() -> None:
    with pytest.raises(RuntimeError, match="QR_ENCRYPTION_KEY"):
        load_settings({})


def test_supabase_backend_requires_credentials() -> None:
    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        load_settings({"QR_ENCRYPTION_KEY": HEX_KEY, "STORAGE_BACKEND": "supabase"})


def test_wompi_requires_keys() -> None:
    with pytest.raises(RuntimeError, match="WOMPI_PUBLIC_KEY"):
        load_settings({"QR_ENCRYPTION_KEY": HEX_KEY, "PAYMENT_PROVIDER": "wompi"})


def test_wompi_configuration() -> None:
    settings = load_settings(
        {
            "QR_ENCRYPTION_KEY": HEX_KEY,
            "PAYMENT_PROVIDER": "Wompi",
            "WOMPI_ENVIRONMENT": "production",
            "WOMPI_PUBLIC_KEY": "pub_prod_x",
            "WOMPI_PRIVATE_KEY": "prv_prod_x",
            "WOMPI_INTEGRITY_KEY": "prod_integrity_x",
        }
    )

    assert settings.payment_provider == "wompi"
    assert settings.wompi_environment == "production"
    assert settings.wompi_private_key == "prv_prod_x"


@pytest.mark.parametrize(
    "name, value",
    [
        ("STORAGE_BACKEND", "mysql"),
        ("PAYMENT_PROVIDER", "stripe"),
        ("VENUE_TIMEZONE", "Mars/Olympus"),
        ("PAYMENT_POLL_TIMEOUT_SECONDS", "soon"),
        ("PAYMENT_POLL_INTERVAL_SECONDS", "0"),
    ],
)
def test_invalid_values(name, value) -> None:
    with pytest.raises(RuntimeError, match=name):
        load_settings({"QR_ENCRYPTION_KEY": HEX_KEY, name: value})


def test_overrides() -> None:
    settings = load_settings(
        {
            "QR_ENCRYPTION_KEY": HEX_KEY,
            "VENUE_TIMEZONE": "America/Mexico_City",
            "PAYMENT_CURRENCY": "mxn",
            "PENDING_CHECKOUT_TTL_MINUTES": "15",
            "DISPOSABLE_EMAIL_DOMAINS": "Spam.example, ,junk.example",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.venue_timezone.key == "America/Mexico_City"
    assert settings.payment_currency == "MXN"
    assert settings.pending_checkout_ttl_minutes == 15
    assert settings.disposable_email_domains == frozenset({"spam.example", "junk.example"})
    assert settings.log_level == "DEBUG"


def test_encryption_key_formats() -> None:
    assert parse_encryption_key("ab" * 32) == bytes([0xAB]) * 32
    assert parse_encryption_key("k" * 32) == b"k" * 32
    assert parse_encryption_key("  " + "01" * 32 + "\n") == bytes([1]) * 32


@pytest.mark.parametrize("raw", ["", "short", "zz" * 32, "k" * 33])
def test_invalid_encryption_key(raw) -> None:
    with pytest.raises(RuntimeError):
        parse_encryption_key(raw)
