"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
repositories, services and api. Fixtures wire the in-memory stores, the mock
payment provider and a QR codec with a fixed test key around a seeded venue.

Fixed clock: Thursday 2025-06-12 14:00 in Bogota (19:00 UTC). The venue opens
Friday and Saturday 22:00-03:00; the event is Saturday 2025-06-14 at 22:00.
"""

import sys
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import DEFAULT_DISPOSABLE_EMAIL_DOMAINS  # noqa: E402
from domain.catalog import (  # noqa: E402
    CatalogItem,
    Event,
    IncludedMenuItem,
    ItemKind,
    MenuVariant,
    OpenHours,
    RecurringWindow,
    TicketCategory,
    Venue,
)
from domain.identity import SessionIdentity, StaffContext, StaffRole, UserIdentity  # noqa: E402
from repositories.memory import (  # noqa: E402
    InMemoryCartRepository,
    InMemoryCatalog,
    InMemoryPendingCheckoutStore,
    InMemorySettlementRepository,
)
from services.cart_service import CartService  # noqa: E402
from services.checkout_service import CheckoutService  # noqa: E402
from services.notification_service import LoggingNotificationSender  # noqa: E402
from services.payment_provider import MockPaymentProvider  # noqa: E402
from services.pricing_service import PricingService  # noqa: E402
from services.purchase_history_service import PurchaseHistoryService  # noqa: E402
from services.qr_service import QRCodec  # noqa: E402
from services.redemption_service import RedemptionService  # noqa: E402

TZ = ZoneInfo("America/Bogota")
TEST_KEY = bytes(range(32))
NOW = datetime(2025, 6, 12, 19, 0, tzinfo=timezone.utc)

THURSDAY = date(2025, 6, 12)
FRIDAY = date(2025, 6, 13)
SATURDAY = date(2025, 6, 14)

OWNER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_OWNER_ID = UUID("00000000-0000-0000-0000-0000000000a2")


def bogota(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """Wall-clock time in Bogota as a UTC timestamp."""

    return datetime(year, month, day, hour, minute, tzinfo=TZ).astimezone(timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def carts() -> InMemoryCartRepository:
    return InMemoryCartRepository()


@pytest.fixture
def settlements(catalog) -> InMemorySettlementRepository:
    return InMemorySettlementRepository(catalog)


@pytest.fixture
def pending(clock) -> InMemoryPendingCheckoutStore:
    return InMemoryPendingCheckoutStore(clock=clock)


@pytest.fixture
def provider() -> MockPaymentProvider:
    return MockPaymentProvider()


@pytest.fixture
def notifier() -> LoggingNotificationSender:
    return LoggingNotificationSender()


@pytest.fixture
def codec() -> QRCodec:
    return QRCodec(TEST_KEY)


@pytest.fixture
def weekend_window() -> RecurringWindow:
    return RecurringWindow(
        open_days=frozenset({"Friday", "Saturday"}),
        hours=(OpenHours(open=time(22, 0), close=time(3, 0)),),
    )


@pytest.fixture
def seed(catalog, weekend_window) -> SimpleNamespace:
    """One venue with every kind of item, plus a second venue."""

    venue = catalog.add_venue(
        Venue(venue_id=uuid4(), name="Club Andes", owner_id=OWNER_ID, window=weekend_window)
    )
    other_venue = catalog.add_venue(
        Venue(venue_id=uuid4(), name="Club Caribe", owner_id=OTHER_OWNER_ID, window=weekend_window)
    )
    event = catalog.add_event(
        Event(
            event_id=uuid4(),
            venue_id=venue.venue_id,
            name="Techno Night",
            event_date=SATURDAY,
            open_time=time(22, 0),
        )
    )

    def ticket(name, price, category=TicketCategory.GENERAL, venue_id=None, **kwargs):
        return catalog.add_item(
            CatalogItem(
                item_id=uuid4(),
                venue_id=venue_id or venue.venue_id,
                name=name,
                kind=ItemKind.TICKET,
                base_price=Decimal(price),
                category=category,
                **kwargs,
            )
        )

    def menu(name, price, venue_id=None, **kwargs):
        return catalog.add_item(
            CatalogItem(
                item_id=uuid4(),
                venue_id=venue_id or venue.venue_id,
                name=name,
                kind=ItemKind.MENU,
                base_price=Decimal(price) if price is not None else None,
                **kwargs,
            )
        )

    bottle = menu("Aguardiente Bottle", "120000")
    cocktail = menu(
        "Cocktail",
        "20000",
        variants=(
            MenuVariant(variant_id=uuid4(), name="Small", price=Decimal("20000")),
            MenuVariant(variant_id=uuid4(), name="Large", price=Decimal("30000")),
        ),
    )

    return SimpleNamespace(
        venue=venue,
        other_venue=other_venue,
        event=event,
        general=ticket(
            "General Admission",
            "20000",
            dynamic_pricing_enabled=True,
            inventory_remaining=100,
            max_per_person=10,
        ),
        flat_general=ticket("Early Bird", "10000"),
        limited=ticket("Last Spot", "10000", inventory_remaining=1),
        event_ticket=ticket(
            "Techno Night Pass",
            "50000",
            category=TicketCategory.EVENT,
            dynamic_pricing_enabled=True,
            inventory_remaining=50,
            event=event,
        ),
        free_ticket=ticket("Ladies Night", "0", category=TicketCategory.FREE, available_date=FRIDAY),
        vip=ticket(
            "VIP Table Pass",
            "80000",
            included_menu_items=(IncludedMenuItem(menu_item_id=bottle.item_id, quantity=1),),
        ),
        other_general=ticket("Caribe Entry", "15000", venue_id=other_venue.venue_id),
        bottle=bottle,
        cocktail=cocktail,
        other_menu=menu("Caribe Rum", "50000", venue_id=other_venue.venue_id),
    )


@pytest.fixture
def pricing(catalog) -> PricingService:
    return PricingService(catalog, TZ)


@pytest.fixture
def cart_service(catalog, carts, pricing, clock) -> CartService:
    return CartService(catalog, carts, pricing, clock=clock)


@pytest.fixture
def checkout_service(
    catalog, carts, settlements, pending, provider, pricing, codec, notifier, clock
) -> CheckoutService:
    return CheckoutService(
        catalog=catalog,
        carts=carts,
        settlements=settlements,
        pending=pending,
        provider=provider,
        pricing=pricing,
        qr=codec,
        notifier=notifier,
        clock=clock,
        poll_timeout_seconds=0,
        poll_interval_seconds=0,
        sleep=lambda seconds: None,
        disposable_email_domains=DEFAULT_DISPOSABLE_EMAIL_DOMAINS,
    )


@pytest.fixture
def redemption_service(settlements, catalog, codec, clock) -> RedemptionService:
    return RedemptionService(settlements, catalog, codec, TZ, clock=clock)


@pytest.fixture
def purchase_history_service(settlements, catalog) -> PurchaseHistoryService:
    return PurchaseHistoryService(settlements, catalog)


@pytest.fixture
def buyer() -> UserIdentity:
    return UserIdentity(user_id=UUID("00000000-0000-0000-0000-0000000000b1"))


@pytest.fixture
def guest() -> SessionIdentity:
    return SessionIdentity(session_token="guest-session-1")


@pytest.fixture
def owner(seed) -> StaffContext:
    return StaffContext(user_id=OWNER_ID, role=StaffRole.CLUB_OWNER)


@pytest.fixture
def bouncer(seed) -> StaffContext:
    return StaffContext(user_id=uuid4(), role=StaffRole.BOUNCER, venue_id=seed.venue.venue_id)


@pytest.fixture
def waiter(seed) -> StaffContext:
    return StaffContext(user_id=uuid4(), role=StaffRole.WAITER, venue_id=seed.venue.venue_id)
