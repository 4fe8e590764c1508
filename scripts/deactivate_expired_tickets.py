"""
Deactivate past-dated events and fixed-date tickets.

Run periodically (cron, scheduled container). Idempotent: running it twice,
or at any cadence, leaves the same state. "Past" is judged in the venue
timezone, so a ticket for tonight stays active until local midnight.
"""

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.time import local_today, utc_now
from repositories.interfaces import CatalogRepository

logger = logging.getLogger(__name__)


def deactivate_expired(
    catalog: CatalogRepository, tz: ZoneInfo, now: Optional[datetime] = None, today: Optional[date] = None
) -> int:
    """Deactivate everything dated before local today. Returns rows changed."""

    if today is None:
        today = local_today(now or utc_now(), tz)
    changed = catalog.deactivate_expired(today)
    logger.info("Deactivated expired events and tickets", extra={"today": today.isoformat(), "changed": changed})
    return changed


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Deactivate events and tickets dated before today (venue timezone)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Deactivate everything before today
  python deactivate_expired_tickets.py

  # Backfill as if today were a given date
  python deactivate_expired_tickets.py --date 2025-06-01
        """
    )
    parser.add_argument(
        "--date",
        "-d",
        type=date.fromisoformat,
        help="Treat this ISO date as today instead of the current local date"
    )
    args = parser.parse_args()

    from api.dependencies import build_stores
    from config.settings import get_settings

    try:
        settings = get_settings()
        logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
        stores = build_stores(settings)
        changed = deactivate_expired(stores.catalog, settings.venue_timezone, today=args.date)
        print(f"Deactivated {changed} expired events/tickets")
        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
