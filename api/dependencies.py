"""
Service wiring and request-scoped dependencies.

One Container per process, built from settings. Tests swap it through
`app.dependency_overrides[get_container]`.

Identity comes from headers set by the upstream auth layer:
- X-User-Id: authenticated buyer (wins over the session token)
- X-Session-Token: anonymous buyer
- X-User-Email: the authenticated buyer's email, used at checkout
- X-Staff-Role / X-Staff-Venue-Id: scanning staff, with X-User-Id
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from fastapi import Header, HTTPException

from config.settings import Settings, get_settings
from domain.errors import DomainError
from domain.identity import Identity, StaffContext, resolve_identity
from repositories.interfaces import (
    CartRepository,
    CatalogRepository,
    PendingCheckoutStore,
    SettlementRepository,
)
from services.cart_service import CartService
from services.checkout_service import CheckoutService
from services.notification_service import LoggingNotificationSender, NotificationSender
from services.payment_provider import PaymentProvider, build_payment_provider
from services.pricing_service import PricingService
from services.purchase_history_service import PurchaseHistoryService
from services.qr_service import QRCodec
from services.redemption_service import RedemptionService, staff_context

from api.errors import http_error


@dataclass(frozen=True)
class Stores:
    catalog: CatalogRepository
    carts: CartRepository
    settlements: SettlementRepository
    pending: PendingCheckoutStore


def build_stores(settings: Settings) -> Stores:
    """Stores for the configured STORAGE_BACKEND."""

    if settings.storage_backend == "supabase":
        from repositories.cart_repository import SupabaseCartRepository
        from repositories.catalog_repository import SupabaseCatalogRepository
        from repositories.client import create_supabase_client
        from repositories.pending_checkout_repository import SupabasePendingCheckoutStore
        from repositories.settlement_repository import SupabaseSettlementRepository

        client = create_supabase_client(settings.supabase_url, settings.supabase_key)
        return Stores(
            catalog=SupabaseCatalogRepository(client),
            carts=SupabaseCartRepository(client),
            settlements=SupabaseSettlementRepository(client),
            pending=SupabasePendingCheckoutStore(client),
        )

    from repositories.memory import (
        InMemoryCartRepository,
        InMemoryCatalog,
        InMemoryPendingCheckoutStore,
        InMemorySettlementRepository,
    )

    catalog = InMemoryCatalog()
    return Stores(
        catalog=catalog,
        carts=InMemoryCartRepository(),
        settlements=InMemorySettlementRepository(catalog),
        pending=InMemoryPendingCheckoutStore(),
    )


@dataclass(frozen=True)
class Container:
    settings: Settings
    stores: Stores
    provider: PaymentProvider
    notifier: NotificationSender
    codec: QRCodec
    pricing: PricingService
    cart_service: CartService
    checkout_service: CheckoutService
    redemption_service: RedemptionService
    purchase_history_service: PurchaseHistoryService


def build_container(
    settings: Settings,
    stores: Optional[Stores] = None,
    provider: Optional[PaymentProvider] = None,
    notifier: Optional[NotificationSender] = None,
    clock: Optional[Callable[[], datetime]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> Container:
    """Wire every service. Anything not passed in comes from settings."""

    stores = stores or build_stores(settings)
    provider = provider or build_payment_provider(settings)
    notifier = notifier or LoggingNotificationSender()
    codec = QRCodec(settings.qr_encryption_key)
    pricing = PricingService(stores.catalog, settings.venue_timezone)

    timing: Dict[str, Any] = {}
    if clock is not None:
        timing["clock"] = clock
    polling: Dict[str, Any] = dict(timing)
    if sleep is not None:
        polling["sleep"] = sleep

    return Container(
        settings=settings,
        stores=stores,
        provider=provider,
        notifier=notifier,
        codec=codec,
        pricing=pricing,
        cart_service=CartService(stores.catalog, stores.carts, pricing, **timing),
        checkout_service=CheckoutService(
            catalog=stores.catalog,
            carts=stores.carts,
            settlements=stores.settlements,
            pending=stores.pending,
            provider=provider,
            pricing=pricing,
            qr=codec,
            notifier=notifier,
            pending_ttl=timedelta(minutes=settings.pending_checkout_ttl_minutes),
            poll_timeout_seconds=settings.payment_poll_timeout_seconds,
            poll_interval_seconds=settings.payment_poll_interval_seconds,
            disposable_email_domains=settings.disposable_email_domains,
            **polling,
        ),
        redemption_service=RedemptionService(
            stores.settlements, stores.catalog, codec, settings.venue_timezone, **timing
        ),
        purchase_history_service=PurchaseHistoryService(stores.settlements, stores.catalog),
    )


@lru_cache(maxsize=1)
def get_container() -> Container:
    return build_container(get_settings())


def _parse_uuid(value: Optional[str], header: str) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid UUID in {header}") from None


def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_session_token: Optional[str] = Header(None),
) -> Identity:
    identity = resolve_identity(_parse_uuid(x_user_id, "X-User-Id"), x_session_token)
    if identity is None:
        raise HTTPException(status_code=401, detail="X-User-Id or X-Session-Token header required")
    return identity


def get_user_email(x_user_email: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_email


def get_staff(
    x_user_id: Optional[str] = Header(None),
    x_staff_role: Optional[str] = Header(None),
    x_staff_venue_id: Optional[str] = Header(None),
) -> StaffContext:
    user_id = _parse_uuid(x_user_id, "X-User-Id")
    if user_id is None or not x_staff_role:
        raise HTTPException(status_code=401, detail="Staff authentication required")
    try:
        return staff_context(user_id, x_staff_role.lower(), _parse_uuid(x_staff_venue_id, "X-Staff-Venue-Id"))
    except DomainError as e:
        raise http_error(e) from e
