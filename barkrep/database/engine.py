"""
barkrep.database.engine — Engine, Sessions & Async Bridge
==========================================================

All reputation state lives behind one SQLAlchemy :class:`Engine`.  The
driver (psycopg2) is synchronous; request handlers running on an event
loop hand engine calls to :func:`run_db`, which runs them on a worker
thread.

Usage::

    from barkrep.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # DATABASE_URL from the environment
    init_db(engine)                      # dev / test only; prod uses alembic

    # From an async handler:
    snapshot = await run_db(get_snapshot, engine, "user-42")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from barkrep.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Pool sizing for PostgreSQL; SQLite URLs use SQLAlchemy's defaults
POOL_OPTIONS: dict[str, int | bool] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 10,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None, *, echo: bool = False) -> Engine:
    """Build the engine for *url*, falling back to ``DATABASE_URL``.

    PostgreSQL engines get :data:`POOL_OPTIONS` (five pooled connections,
    ten overflow, pre-ping, hourly recycle).  SQLite engines are created
    with ``check_same_thread=False`` so :func:`run_db` worker threads can
    share them.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is provided.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at the reputation database."
        )

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        engine = create_engine(
            parsed, echo=echo, connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(parsed, echo=echo, **POOL_OPTIONS)

    logger.info(
        "Reputation store engine ready (%s, host=%s)",
        parsed.get_backend_name(), parsed.host or "local",
    )
    return engine


def init_db(engine: Engine) -> None:
    """``CREATE TABLE IF NOT EXISTS`` for every barkrep table.

    Production schemas are managed with ``alembic upgrade head``.
    """
    Base.metadata.create_all(engine)
    logger.info("Reputation tables present: %s", ", ".join(sorted(Base.metadata.tables)))


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """One transaction: commit when the block exits cleanly, roll back if
    it raises.

    Objects stay loaded after the commit, so result snapshots can be built
    from them once the block has ended::

        with get_session(engine) as session:
            account = get_or_create_account(session, user_id, for_update=True)
            account.balance += 10
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a synchronous barkrep call without blocking the event loop.

    Uses :func:`asyncio.to_thread`.  The per-user locks are thread locks,
    so concurrent calls for one user still run one at a time.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
