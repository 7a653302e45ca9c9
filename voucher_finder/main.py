"""
Voucher Finder - FastAPI Application

Serves the best-voucher lookup over the in-memory snapshot.

Startup:
    The persisted snapshot files in DATA_DIR are loaded into memory, then the
    scheduler runs a scrape cycle immediately and daily at
    SCRAPE_HOUR:SCRAPE_MINUTE (set SCHEDULER_ENABLED=false to only serve what
    is on disk, e.g. when cycles run from cron via `voucher-finder crawl`).

Logging:
    Logging is automatically configured on package import.
    See voucher_finder.utils.logging for the environment variables.
"""
import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from voucher_finder.config import settings
from voucher_finder.errors import QueryError
from voucher_finder.services.crawler import get_last_cycle_result, get_registered_sources, is_cycle_running
from voucher_finder.services.matching import NotFound, VoucherService
from voucher_finder.services.scheduler import scheduler_loop
from voucher_finder.services.snapshot import current_snapshot, load_snapshot, snapshot_holder
from voucher_finder.services.storage import SnapshotStorage
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Loads the persisted snapshot so queries work before the first cycle
        - Starts the scrape scheduler task (unless disabled)

    Shutdown:
        - Cancels the scheduler task
    """
    try:
        load_snapshot(SnapshotStorage(), snapshot_holder, get_registered_sources())
    except OSError as e:
        logger.error(f"Failed to load persisted snapshot: {e}")

    scheduler_task = None
    if settings.SCHEDULER_ENABLED:
        scheduler_task = asyncio.create_task(
            scheduler_loop(
                run_on_startup=settings.RUN_ON_STARTUP,
                hour=settings.SCRAPE_HOUR,
                minute=settings.SCRAPE_MINUTE,
            )
        )

    yield

    if scheduler_task is not None:
        scheduler_task.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler_task


app = FastAPI(
    title=settings.APP_NAME,
    description="Best discounted voucher lookup across gift card sources",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/best-voucher")
async def best_voucher(query: Optional[str] = None):
    """
    Best voucher for a free-text name.

    Returns the voucher record, 400 without a query, 404 with a message and
    reason when nothing suitable is found.
    """
    if not query:
        return JSONResponse(status_code=400, content={"message": 'Query parameter "query" is required'})

    service = VoucherService(snapshot_holder, settings.MIN_MATCH_SCORE)
    try:
        outcome = service.best_match(query)
    except QueryError as e:
        return JSONResponse(
            status_code=404,
            content={"message": f"Info: {e}", "reason": e.reason, "best_score": None},
        )

    if isinstance(outcome, NotFound):
        return JSONResponse(
            status_code=404,
            content={
                "message": outcome.message,
                "reason": outcome.reason.value,
                "best_score": outcome.best_score,
            },
        )

    return outcome.to_dict()


@app.get("/snapshot")
async def snapshot_info():
    """Diagnostics for the snapshot currently being served."""
    snapshot = current_snapshot()
    last_result = get_last_cycle_result()
    return {
        "records": len(snapshot),
        "created_at": snapshot.created_at.isoformat(),
        "records_by_site": snapshot.counts_by_site,
        "cycle_running": is_cycle_running(),
        "last_cycle": None if last_result is None else {
            "status": last_result.status_text,
            "trigger": last_result.trigger,
            "failed_sources": last_result.failed_sources,
            "completed_at": last_result.completed_at.isoformat() if last_result.completed_at else None,
        },
    }
