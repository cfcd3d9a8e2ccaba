"""
reaper.py — Deletes links that are dead (TTL elapsed or views exhausted)
but were never consumed again after dying.

Consume enforces liveness on its own; this only reclaims storage.

Usage (cron / external scheduler):
  python reaper.py
"""

import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler

from database import Base, SessionLocal, engine
from link_store import LinkStore

logger = logging.getLogger(__name__)

REAPER_INTERVAL_MINUTES = int(os.getenv("REAPER_INTERVAL_MINUTES", "0"))


def run_cleanup(store: LinkStore = None) -> int:
    store = store or LinkStore(SessionLocal)
    deleted = store.sweep_expired()
    logger.info(f"Cleaned up {deleted} expired/burned links")
    return deleted


def start_scheduler(interval_minutes: int = REAPER_INTERVAL_MINUTES, store: LinkStore = None):
    """Runs run_cleanup every interval_minutes in a background thread. 0 disables it."""
    if interval_minutes <= 0:
        return None
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_cleanup,
        "interval",
        minutes=interval_minutes,
        kwargs={"store": store},
        misfire_grace_time=60,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"Reaper scheduled every {interval_minutes} min")
    return scheduler


if __name__ == "__main__":
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    Base.metadata.create_all(bind=engine)
    print(f"Removed {run_cleanup()} links")
