"""
Daily scrape schedule.

Runs one cycle at start-up, then one per day at SCRAPE_HOUR:SCRAPE_MINUTE
local time. The loop awaits each cycle before computing the next wait, so
scheduled cycles never overlap; a cycle started elsewhere (CLI, cron) holds
the lock file and the scheduled run is skipped.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional

from voucher_finder.config import settings
from voucher_finder.errors import CycleInProgressError
from voucher_finder.models import RecordStore
from voucher_finder.services.crawler import run_cycle
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)


def seconds_until(hour: int, minute: int, now: Optional[datetime] = None) -> float:
    """
    Seconds from `now` until the next occurrence of hour:minute.

    Examples:
        >>> seconds_until(2, 0, datetime(2026, 1, 22, 1, 0))
        3600.0
        >>> seconds_until(2, 0, datetime(2026, 1, 22, 2, 0))
        86400.0
    """
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def run_scheduled_cycle(trigger: str) -> Optional[RecordStore]:
    """
    Run a cycle on behalf of the scheduler.

    Returns:
        The published snapshot, or None if the cycle was skipped or failed.
    """
    logger.info(f"[{trigger.upper()}] Running voucher scrapers...")
    try:
        store = await run_cycle(trigger=trigger)
    except CycleInProgressError as e:
        logger.warning(f"[{trigger.upper()}] Skipped: {e}")
        return None
    except Exception:
        # Keep the server and the schedule alive; the old snapshot stays published
        logger.exception(f"[{trigger.upper()}] Scrape cycle failed")
        return None
    logger.info(f"[{trigger.upper()}] Data scraped and loaded into memory ({len(store)} records)")
    return store


async def scheduler_loop(
    run_on_startup: bool = settings.RUN_ON_STARTUP,
    hour: int = settings.SCRAPE_HOUR,
    minute: int = settings.SCRAPE_MINUTE,
) -> None:
    """Run cycles forever; cancel the task to stop."""
    if run_on_startup:
        await run_scheduled_cycle("startup")

    while True:
        delay = seconds_until(hour, minute)
        logger.info(f"Next scheduled scrape cycle in {delay / 3600:.1f} hours")
        await asyncio.sleep(delay)
        await run_scheduled_cycle("schedule")
