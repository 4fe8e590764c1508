"""
Application settings.

Everything configurable is read from environment variables once, after the
project `.env` (if any) is loaded. Invalid configuration fails at startup with
a RuntimeError naming the variable, the same way the Supabase client does.

Variables:
- STORAGE_BACKEND: memory | supabase (default memory)
- SUPABASE_URL, SUPABASE_KEY: required for the supabase backend
- PAYMENT_PROVIDER: mock | wompi (default mock)
- WOMPI_ENVIRONMENT: sandbox | production (default sandbox)
- WOMPI_PUBLIC_KEY, WOMPI_PRIVATE_KEY, WOMPI_INTEGRITY_KEY: required for wompi
- PAYMENT_CURRENCY: default COP
- QR_ENCRYPTION_KEY: 64 hex chars or 32 raw chars
- VENUE_TIMEZONE: default America/Bogota
- PAYMENT_POLL_TIMEOUT_SECONDS / PAYMENT_POLL_INTERVAL_SECONDS: default 30 / 3
- PENDING_CHECKOUT_TTL_MINUTES: default 30
- DISPOSABLE_EMAIL_DOMAINS: comma separated
- LOG_LEVEL: default INFO
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

STORAGE_BACKENDS = ("memory", "supabase")
PAYMENT_PROVIDERS = ("mock", "wompi")
WOMPI_ENVIRONMENTS = ("sandbox", "production")

DEFAULT_DISPOSABLE_EMAIL_DOMAINS = frozenset(
    {
        "mailinator.com",
        "guerrillamail.com",
        "10minutemail.com",
        "tempmail.com",
        "temp-mail.org",
        "yopmail.com",
        "trashmail.com",
        "sharklasers.com",
    }
)


@dataclass(frozen=True)
class Settings:
    storage_backend: str
    payment_provider: str
    qr_encryption_key: bytes
    venue_timezone: ZoneInfo
    payment_currency: str = "COP"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    wompi_environment: str = "sandbox"
    wompi_public_key: Optional[str] = None
    wompi_private_key: Optional[str] = None
    wompi_integrity_key: Optional[str] = None
    payment_poll_timeout_seconds: float = 30.0
    payment_poll_interval_seconds: float = 3.0
    pending_checkout_ttl_minutes: int = 30
    disposable_email_domains: frozenset[str] = DEFAULT_DISPOSABLE_EMAIL_DOMAINS
    log_level: str = "INFO"


def parse_encryption_key(raw: str) -> bytes:
    """
    Decode QR_ENCRYPTION_KEY into 32 bytes.

    Accepts 64 hex characters or a 32 character string.
    """

    raw = raw.strip()
    if len(raw) == 64:
        try:
            return bytes.fromhex(raw)
        except ValueError:
            pass
    encoded = raw.encode("utf-8")
    if len(encoded) == 32:
        return encoded
    raise RuntimeError(
        "Invalid environment variable: QR_ENCRYPTION_KEY. "
        "Expected 64 hex characters or 32 characters (a 256-bit key)."
    )


def _choice(env: Mapping[str, str], name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = (env.get(name) or default).strip().lower()
    if value not in allowed:
        raise RuntimeError(
            f"Invalid environment variable: {name}={value!r}. Expected one of {', '.join(allowed)}."
        )
    return value


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"Invalid environment variable: {name} must be a number") from None
    if value <= 0:
        raise RuntimeError(f"Invalid environment variable: {name} must be positive")
    return value


def _required(env: Mapping[str, str], name: str, reason: str) -> str:
    value = env.get(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. Required {reason}.")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from a mapping (defaults to os.environ after loading .env).

    Raises:
        RuntimeError: on any invalid or missing variable.
    """

    if env is None:
        load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")
        env = os.environ

    storage_backend = _choice(env, "STORAGE_BACKEND", "memory", STORAGE_BACKENDS)
    payment_provider = _choice(env, "PAYMENT_PROVIDER", "mock", PAYMENT_PROVIDERS)
    wompi_environment = _choice(env, "WOMPI_ENVIRONMENT", "sandbox", WOMPI_ENVIRONMENTS)

    supabase_url = env.get("SUPABASE_URL")
    supabase_key = env.get("SUPABASE_KEY")
    if storage_backend == "supabase":
        supabase_url = _required(env, "SUPABASE_URL", "when STORAGE_BACKEND=supabase")
        supabase_key = _required(env, "SUPABASE_KEY", "when STORAGE_BACKEND=supabase")

    wompi_keys = {}
    for name in ("WOMPI_PUBLIC_KEY", "WOMPI_PRIVATE_KEY", "WOMPI_INTEGRITY_KEY"):
        if payment_provider == "wompi":
            wompi_keys[name] = _required(env, name, "when PAYMENT_PROVIDER=wompi")
        else:
            wompi_keys[name] = env.get(name)

    qr_key = parse_encryption_key(_required(env, "QR_ENCRYPTION_KEY", "to sign redemption QR codes"))

    tz_name = env.get("VENUE_TIMEZONE") or "America/Bogota"
    try:
        venue_timezone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise RuntimeError(f"Invalid environment variable: VENUE_TIMEZONE={tz_name!r}") from None

    domains_raw = env.get("DISPOSABLE_EMAIL_DOMAINS")
    if domains_raw:
        disposable = frozenset(d.strip().lower() for d in domains_raw.split(",") if d.strip())
    else:
        disposable = DEFAULT_DISPOSABLE_EMAIL_DOMAINS

    return Settings(
        storage_backend=storage_backend,
        payment_provider=payment_provider,
        qr_encryption_key=qr_key,
        venue_timezone=venue_timezone,
        payment_currency=(env.get("PAYMENT_CURRENCY") or "COP").upper(),
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        wompi_environment=wompi_environment,
        wompi_public_key=wompi_keys["WOMPI_PUBLIC_KEY"],
        wompi_private_key=wompi_keys["WOMPI_PRIVATE_KEY"],
        wompi_integrity_key=wompi_keys["WOMPI_INTEGRITY_KEY"],
        payment_poll_timeout_seconds=_number(env, "PAYMENT_POLL_TIMEOUT_SECONDS", 30.0),
        payment_poll_interval_seconds=_number(env, "PAYMENT_POLL_INTERVAL_SECONDS", 3.0),
        pending_checkout_ttl_minutes=int(_number(env, "PENDING_CHECKOUT_TTL_MINUTES", 30)),
        disposable_email_domains=disposable,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = ["Settings", "load_settings", "get_settings", "parse_encryption_key"]
