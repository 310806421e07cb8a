"""
Background scheduler: runs periodic jobs inside the FastAPI process.

Jobs:
  - Dispatch tick (every DISPATCH_INTERVAL_MINUTES): reminders, email and print subscriptions
  - Print status sync (every PRINT_SYNC_INTERVAL_MINUTES): poll the vendor for in-flight orders
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_dispatch_tick():
    from app.application.dispatch_worker import run_tick

    try:
        run_tick()
    except Exception:
        logger.exception("Dispatch tick failed")


def _run_print_sync():
    from app.application.dispatch_worker import get_default_services
    from app.application.print_fulfillment import poll_tracked_orders
    from app.infrastructure.db.session import get_session_factory

    printing = get_default_services().printing
    if printing is None:
        return

    Session = get_session_factory()
    db = Session()
    try:
        poll_tracked_orders(db, printing.vendor)
    except Exception:
        logger.exception("Print status sync failed")
    finally:
        db.close()


def start_scheduler():
    """Start the background scheduler with all periodic jobs."""
    settings = get_settings()

    # max_instances=1: a slow tick is never overlapped by the next one in this process
    scheduler.add_job(
        _run_dispatch_tick,
        "interval",
        minutes=settings.DISPATCH_INTERVAL_MINUTES,
        id="dispatch_tick",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.add_job(
        _run_print_sync,
        "interval",
        minutes=settings.PRINT_SYNC_INTERVAL_MINUTES,
        id="print_status_sync",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: dispatch_tick (every %d min), print_status_sync (every %d min)",
        settings.DISPATCH_INTERVAL_MINUTES, settings.PRINT_SYNC_INTERVAL_MINUTES,
    )


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
