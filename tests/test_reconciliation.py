"""
tests/test_reconciliation.py — Ledger Reconciliation Tests
===========================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from barkrep.database.models import PointsAccount, PointTransaction, TransactionKind
from barkrep.services.ledger_service import award, get_snapshot, spend
from barkrep.services.reconciliation_service import reconcile_accounts

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _corrupt(engine, user_id: str, **values) -> None:
    with Session(engine) as session:
        session.execute(
            update(PointsAccount).where(PointsAccount.user_id == user_id).values(**values)
        )
        session.commit()


class TestReconcileAccounts:
    def test_consistent_accounts_untouched(self, db_engine, locks):
        award(db_engine, "a", 120, "answer_post", now=NOW, locks=locks)
        spend(db_engine, "a", 20, "perk:health_report", now=NOW, locks=locks)
        award(db_engine, "b", 10, "question_post", now=NOW, locks=locks)

        report = reconcile_accounts(db_engine, locks=locks)
        assert report["checked"] == 2
        assert report["corrected"] == 0
        assert report["corrections"] == []
        assert "timestamp" in report

    def test_drift_corrected(self, db_engine, locks):
        award(db_engine, "a", 120, "answer_post", now=NOW, locks=locks)
        spend(db_engine, "a", 20, "perk:health_report", now=NOW, locks=locks)
        _corrupt(db_engine, "a", balance=999, level=7)

        report = reconcile_accounts(db_engine, locks=locks)
        assert report["corrected"] == 1
        fields = report["corrections"][0]["fields"]
        assert fields["balance"] == {"stored": 999, "actual": 100}
        assert fields["level"] == {"stored": 7, "actual": 2}
        assert "earned_total" not in fields

        snapshot = get_snapshot(db_engine, "a")
        assert snapshot.balance == 100
        assert snapshot.level == 2

    def test_single_user(self, db_engine, locks):
        award(db_engine, "a", 10, "answer_post", now=NOW, locks=locks)
        award(db_engine, "b", 10, "answer_post", now=NOW, locks=locks)
        _corrupt(db_engine, "a", balance=0)
        _corrupt(db_engine, "b", balance=0)

        report = reconcile_accounts(db_engine, "a", locks=locks)
        assert report["checked"] == 1
        assert report["corrections"][0]["user_id"] == "a"
        assert get_snapshot(db_engine, "b").balance == 0

    def test_ledger_without_account_row(self, db_engine, locks):
        with Session(db_engine) as session:
            session.add(PointTransaction(
                user_id="orphan",
                amount=40,
                kind=TransactionKind.EARN.value,
                source="import",
                description="",
                created_at=NOW,
            ))
            session.commit()

        report = reconcile_accounts(db_engine, locks=locks)
        assert report["corrected"] == 1
        snapshot = get_snapshot(db_engine, "orphan")
        assert snapshot.balance == 40
        assert snapshot.lifetime_total == 40
        assert snapshot.experience_points == 40
