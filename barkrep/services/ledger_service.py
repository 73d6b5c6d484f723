"""
barkrep.services.ledger_service — Points Ledger
================================================

Append-only transaction log plus the cached per-user account snapshot.

Every mutation holds the user's lock from :mod:`barkrep.engine.locks` and
re-reads the account row ``FOR UPDATE`` inside its transaction, so two
awards landing at once for the same user serialize and neither update is
lost.  After an award commits, the tier engine applies the same delta in
its own transaction.

Idempotency: an award that carries a ``source_id`` is unique per
``(user_id, source, source_id)``; re-sending it is reported as a duplicate
and changes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barkrep.constants import DEFAULT_LEVEL_STEP, compute_level, xp_to_next_level
from barkrep.database.engine import get_session
from barkrep.database.models import PointsAccount, PointTransaction, TransactionKind
from barkrep.engine.locks import UserLockRegistry, get_default_registry
from barkrep.services import tier_service

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ReputationError(Exception):
    """Base class for errors surfaced to callers of the reputation engine."""


class InsufficientBalanceError(ReputationError):
    """A spend asked for more points than the account holds."""

    def __init__(self, user_id: str, balance: int, requested: int) -> None:
        self.user_id = user_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"User {user_id} has {balance} points, cannot spend {requested}"
        )


# ---------------------------------------------------------------------------
# Result types (detached from the session)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LedgerEntry:
    id: int
    user_id: str
    amount: int
    kind: TransactionKind
    source: str
    source_id: str | None
    description: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: PointTransaction) -> LedgerEntry:
        return cls(
            id=row.id,
            user_id=row.user_id,
            amount=row.amount,
            kind=TransactionKind(row.kind),
            source=row.source,
            source_id=row.source_id,
            description=row.description,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    user_id: str
    balance: int
    earned_total: int
    spent_total: int
    lifetime_total: int
    experience_points: int
    level: int
    xp_to_next_level: int
    streak_count: int
    last_activity_on: date | None
    created_at: datetime | None

    @classmethod
    def from_row(cls, account: PointsAccount, level_step: int = DEFAULT_LEVEL_STEP) -> AccountSnapshot:
        return cls(
            user_id=account.user_id,
            balance=account.balance,
            earned_total=account.earned_total,
            spent_total=account.spent_total,
            lifetime_total=account.lifetime_total,
            experience_points=account.experience_points,
            level=account.level,
            xp_to_next_level=xp_to_next_level(account.experience_points, level_step),
            streak_count=account.streak_count,
            last_activity_on=account.last_activity_on,
            created_at=account.created_at,
        )


@dataclass(frozen=True, slots=True)
class TransactionResult:
    """Outcome of an award or spend.

    ``transaction`` is None when the award was a duplicate of an earlier
    one with the same source id.
    """

    transaction: LedgerEntry | None
    account: AccountSnapshot
    previous_level: int
    duplicate: bool = False

    @property
    def leveled_up(self) -> bool:
        return self.account.level > self.previous_level


@dataclass(slots=True)
class EarnRecord:
    """In-session result of :func:`append_earn` (rows still attached)."""

    transaction: PointTransaction | None
    account: PointsAccount
    previous_level: int

    @property
    def duplicate(self) -> bool:
        return self.transaction is None


# ---------------------------------------------------------------------------
# In-session primitives
# ---------------------------------------------------------------------------
def _new_account(user_id: str) -> PointsAccount:
    return PointsAccount(
        user_id=user_id,
        balance=0,
        earned_total=0,
        spent_total=0,
        lifetime_total=0,
        experience_points=0,
        level=1,
        streak_count=0,
    )


def get_or_create_account(
    session: Session,
    user_id: str,
    *,
    for_update: bool = False,
) -> PointsAccount:
    """Fetch the user's account row, inserting a zeroed one on first use.

    With *for_update* the row is locked until the transaction ends.
    """
    stmt = select(PointsAccount).where(PointsAccount.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    account = session.scalar(stmt)
    if account is not None:
        return account

    account = _new_account(user_id)
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(account)
            session.flush()
    except IntegrityError:
        # Another worker created it first; read theirs
        account = session.scalar(stmt)
        if account is None:
            raise
    return account


def _update_streak(account: PointsAccount, today: date) -> None:
    last = account.last_activity_on
    if last is not None and last >= today:
        return
    if last is not None and last == today - timedelta(days=1):
        account.streak_count = (account.streak_count or 0) + 1
    else:
        account.streak_count = 1
    account.last_activity_on = today


def _find_transaction(
    session: Session, user_id: str, source: str, source_id: str
) -> PointTransaction | None:
    return session.scalar(
        select(PointTransaction).where(
            PointTransaction.user_id == user_id,
            PointTransaction.source == source,
            PointTransaction.source_id == source_id,
        )
    )


def append_earn(
    session: Session,
    user_id: str,
    amount: int,
    source: str,
    description: str = "",
    *,
    source_id: str | None = None,
    now: datetime | None = None,
    level_step: int = DEFAULT_LEVEL_STEP,
) -> EarnRecord:
    """Append an earn transaction and fold it into the account.

    Runs inside the caller's transaction; the achievement engine uses this
    so a reward and its unlock commit together.  The caller must hold the
    user's lock.

    Raises ``ValueError`` for a non-positive amount or an empty source.
    """
    if amount <= 0:
        raise ValueError(f"Award amount must be positive, got {amount}")
    if not source:
        raise ValueError("Award source must not be empty")
    now = now or datetime.now(UTC)

    account = get_or_create_account(session, user_id, for_update=True)
    previous_level = account.level

    txn = PointTransaction(
        user_id=user_id,
        amount=amount,
        kind=TransactionKind.EARN.value,
        source=source,
        source_id=source_id,
        description=description,
        created_at=now,
    )

    if source_id is not None:
        if _find_transaction(session, user_id, source, source_id) is not None:
            logger.info(
                "Duplicate award ignored: user=%s source=%s source_id=%s",
                user_id, source, source_id,
            )
            return EarnRecord(None, account, previous_level)
        # The partial unique index is the final arbiter across workers
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(txn)
                session.flush()
        except IntegrityError:
            logger.info(
                "Duplicate award ignored (index): user=%s source=%s source_id=%s",
                user_id, source, source_id,
            )
            return EarnRecord(None, account, previous_level)
    else:
        session.add(txn)

    account.balance += amount
    account.earned_total += amount
    account.lifetime_total += amount
    account.experience_points += amount
    account.level = compute_level(account.experience_points, level_step)
    _update_streak(account, now.date())
    session.flush()

    if account.level > previous_level:
        logger.info(
            "User %s levelled up: %d → %d", user_id, previous_level, account.level,
        )
    return EarnRecord(txn, account, previous_level)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def award(
    engine: Engine,
    user_id: str,
    amount: int,
    source: str,
    description: str = "",
    *,
    source_id: str | None = None,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
    level_step: int = DEFAULT_LEVEL_STEP,
) -> TransactionResult:
    """Award *amount* points to *user_id*.

    Commits the ledger row and account update, then applies the delta to
    the user's tier.  A tier failure is logged; the award stands.
    """
    registry = locks or get_default_registry()
    now = now or datetime.now(UTC)

    with registry.hold(user_id):
        with get_session(engine) as session:
            record = append_earn(
                session, user_id, amount, source, description,
                source_id=source_id, now=now, level_step=level_step,
            )
            result = TransactionResult(
                transaction=None if record.duplicate else LedgerEntry.from_row(record.transaction),
                account=AccountSnapshot.from_row(record.account, level_step),
                previous_level=record.previous_level,
                duplicate=record.duplicate,
            )

        if not result.duplicate:
            tier_service.try_apply_points(engine, user_id, amount, now=now, locks=registry)

    return result


def spend(
    engine: Engine,
    user_id: str,
    amount: int,
    source: str,
    description: str = "",
    *,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
    level_step: int = DEFAULT_LEVEL_STEP,
) -> TransactionResult:
    """Spend *amount* points from *user_id*'s balance.

    Raises
    ------
    InsufficientBalanceError
        If the balance is below *amount*.  Nothing is written.
    ValueError
        For a non-positive amount or an empty source.
    """
    if amount <= 0:
        raise ValueError(f"Spend amount must be positive, got {amount}")
    if not source:
        raise ValueError("Spend source must not be empty")
    registry = locks or get_default_registry()
    now = now or datetime.now(UTC)

    with registry.hold(user_id):
        with get_session(engine) as session:
            account = get_or_create_account(session, user_id, for_update=True)
            if account.balance < amount:
                raise InsufficientBalanceError(user_id, account.balance, amount)

            txn = PointTransaction(
                user_id=user_id,
                amount=amount,
                kind=TransactionKind.SPEND.value,
                source=source,
                description=description,
                created_at=now,
            )
            session.add(txn)
            account.balance -= amount
            account.spent_total += amount
            session.flush()

            logger.info(
                "User %s spent %d points on %s (balance %d)",
                user_id, amount, source, account.balance,
            )
            return TransactionResult(
                transaction=LedgerEntry.from_row(txn),
                account=AccountSnapshot.from_row(account, level_step),
                previous_level=account.level,
            )


def get_snapshot(
    engine: Engine,
    user_id: str,
    *,
    level_step: int = DEFAULT_LEVEL_STEP,
) -> AccountSnapshot:
    """Current account state, creating a zeroed account on first read."""
    with get_session(engine) as session:
        account = get_or_create_account(session, user_id)
        return AccountSnapshot.from_row(account, level_step)


def list_transactions(
    engine: Engine,
    user_id: str,
    *,
    limit: int = 50,
) -> list[LedgerEntry]:
    """Most recent ledger rows for *user_id*, newest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
        ).all()
        return [LedgerEntry.from_row(row) for row in rows]
