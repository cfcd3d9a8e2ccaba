"""
link_store.py — Persistence and lifecycle of links.

The store only ever sees ciphertext. Every change to views_remaining goes
through one conditional UPDATE so that concurrent consumers racing for the
last view cannot both win.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from errors import InvalidInput, LinkExpired, LinkNotFound, StorageUnavailable
from models import Link
from tokens import generate_token

logger = logging.getLogger(__name__)

# Both counters live in 32-bit INTEGER columns
MAX_VIEWS = 2**31 - 1
MAX_TTL_SECONDS = 2**31 - 1


def utcnow() -> datetime:
    """Naive UTC, matching what the DateTime columns hold."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class ConsumeResult:
    ciphertext: str
    views_remaining: int
    burned: bool
    password_protected: bool


class LinkStore:

    def __init__(self, session_factory, clock=utcnow):
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Link store failure: {e}")
            raise StorageUnavailable("Backing store unavailable") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create(self, ciphertext: str, views: int = 1, ttl_seconds: int = 3600,
               password_protected: bool = False) -> str:
        if not ciphertext:
            raise InvalidInput("ciphertext required")
        if views is None or not 1 <= views <= MAX_VIEWS:
            raise InvalidInput(f"views must be between 1 and {MAX_VIEWS}")
        if ttl_seconds is None or not 1 <= ttl_seconds <= MAX_TTL_SECONDS:
            raise InvalidInput(f"ttl_seconds must be between 1 and {MAX_TTL_SECONDS}")

        now = self._clock()
        try:
            expires_at = now + timedelta(seconds=ttl_seconds)
        except OverflowError:
            raise InvalidInput("ttl_seconds is too large")
        link_id = generate_token()
        link = Link(
            id=link_id,
            ciphertext=ciphertext,
            views_remaining=views,
            views_total=views,
            ttl_seconds=ttl_seconds,
            password_protected=bool(password_protected),
            created_at=now,
            expires_at=expires_at,
        )
        with self._session() as db:
            db.add(link)
            db.commit()

        logger.info(f"Link created: id={link_id} views={views} ttl={ttl_seconds}s")
        return link_id

    def fetch(self, link_id: str) -> Link:
        with self._session() as db:
            link = db.get(Link, link_id)
            if link is None:
                raise LinkNotFound("not found")
            db.expunge(link)
            return link

    def consume(self, link_id: str) -> ConsumeResult:
        now = self._clock()
        with self._session() as db:
            result = db.execute(
                update(Link)
                .where(
                    Link.id == link_id,
                    Link.views_remaining > 0,
                    Link.expires_at > now,
                )
                .values(views_remaining=Link.views_remaining - 1)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 1:
                # Same transaction: the row is still locked by our UPDATE.
                link = db.execute(select(Link).where(Link.id == link_id)).scalar_one()
                consumed = ConsumeResult(
                    ciphertext=link.ciphertext,
                    views_remaining=link.views_remaining,
                    burned=link.views_remaining == 0,
                    password_protected=bool(link.password_protected),
                )
                db.commit()
                logger.info(
                    f"Link consumed: id={link_id} views_remaining={consumed.views_remaining}"
                    + (" (burned)" if consumed.burned else "")
                )
                return consumed

            link = db.execute(select(Link).where(Link.id == link_id)).scalar_one_or_none()
            if link is None:
                db.rollback()
                raise LinkNotFound("not found or already burned")

            # Dead rows never come back to life: views only fall and time only advances.
            db.execute(delete(Link).where(Link.id == link_id))
            db.commit()
            logger.info(f"Link expired on consume, removed: id={link_id}")
            raise LinkExpired("expired or burned")

    def delete(self, link_id: str) -> None:
        with self._session() as db:
            result = db.execute(delete(Link).where(Link.id == link_id))
            db.commit()
        if result.rowcount:
            logger.info(f"Link deleted: id={link_id}")

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._session() as db:
            result = db.execute(
                delete(Link).where(
                    or_(Link.expires_at <= now, Link.views_remaining <= 0)
                )
            )
            db.commit()
        return result.rowcount or 0
