"""
barkrep.services.reconciliation_service — Ledger Reconciliation
================================================================

Validates the cached ``points_accounts`` snapshots against the
``point_transactions`` ledger and corrects drift if found.

How it works:
    1. Collect every user with ledger rows or an account row (or just the
       one user asked for).
    2. Per user, under that user's lock, fold the ledger:
       earned = Σ earn, spent = Σ spend.
    3. Compare with the stored balance, totals, experience and level.
    4. Overwrite drifted fields with the ledger's values and log every
       correction for audit.

The ledger is authoritative.  Streaks are not reconciled; they depend on
activity dates the fold does not reproduce.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, case, func, select
from sqlalchemy.orm import Session

from barkrep.constants import DEFAULT_LEVEL_STEP, compute_level
from barkrep.database.engine import get_session
from barkrep.database.models import PointsAccount, PointTransaction, TransactionKind
from barkrep.engine.locks import UserLockRegistry, get_default_registry
from barkrep.services.ledger_service import get_or_create_account

logger = logging.getLogger(__name__)


def _ledger_totals(session: Session, user_id: str) -> tuple[int, int]:
    """(earned, spent) for *user_id* folded from the ledger."""
    earn = case((PointTransaction.kind == TransactionKind.EARN.value, PointTransaction.amount), else_=0)
    spend = case((PointTransaction.kind == TransactionKind.SPEND.value, PointTransaction.amount), else_=0)
    row = session.execute(
        select(
            func.coalesce(func.sum(earn), 0).label("earned"),
            func.coalesce(func.sum(spend), 0).label("spent"),
        ).where(PointTransaction.user_id == user_id)
    ).one()
    return int(row.earned), int(row.spent)


def _candidate_users(engine: Engine, user_id: str | None) -> list[str]:
    if user_id is not None:
        return [user_id]
    with Session(engine) as session:
        ledger_users = set(session.scalars(select(PointTransaction.user_id).distinct()))
        account_users = set(session.scalars(select(PointsAccount.user_id)))
    return sorted(ledger_users | account_users)


def reconcile_accounts(
    engine: Engine,
    user_id: str | None = None,
    *,
    locks: UserLockRegistry | None = None,
    level_step: int = DEFAULT_LEVEL_STEP,
) -> dict:
    """Fold the ledger per user and fix drifted account snapshots.

    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    registry = locks or get_default_registry()
    corrections: list[dict] = []
    checked = 0

    for uid in _candidate_users(engine, user_id):
        with registry.hold(uid):
            with get_session(engine) as session:
                account = get_or_create_account(session, uid, for_update=True)
                earned, spent = _ledger_totals(session, uid)
                expected = {
                    "balance": earned - spent,
                    "earned_total": earned,
                    "spent_total": spent,
                    "lifetime_total": earned,
                    "experience_points": earned,
                    "level": compute_level(earned, level_step),
                }
                checked += 1

                drift = {
                    name: {"stored": getattr(account, name), "actual": actual}
                    for name, actual in expected.items()
                    if getattr(account, name) != actual
                }
                if drift:
                    for name, actual in expected.items():
                        setattr(account, name, actual)
                    corrections.append({"user_id": uid, "fields": drift})

    if corrections:
        logger.warning(
            "Ledger reconciliation: corrected %d/%d accounts: %s",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Ledger reconciliation: all %d accounts match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }
