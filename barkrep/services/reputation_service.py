"""
barkrep.services.reputation_service — Service Boundary
=======================================================

:class:`ReputationEngine` is what the surrounding application holds on to.
It binds a database engine, the tuning from ``barkrep.yaml``, the
achievement catalog and a lock registry, then forwards to the ledger,
tier and achievement services.

Usage::

    from barkrep.config import load_config
    from barkrep.database.engine import create_db_engine
    from barkrep.engine.events import ActivityAction
    from barkrep.services.reputation_service import ReputationEngine

    rep = ReputationEngine(create_db_engine(), config=load_config())
    outcome = rep.record_action("user-42", ActivityAction.ANSWER_POST,
                                source_id="answer-981",
                                stats={"posts": 3, "first_post": True})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from barkrep.config import EngineConfig
from barkrep.engine import quality
from barkrep.engine.catalog import DEFAULT_CATALOG, AchievementCatalog
from barkrep.engine.events import (
    ActivityAction,
    PointContext,
    PointsCalculation,
    calculate_points,
)
from barkrep.engine.locks import UserLockRegistry, get_default_registry
from barkrep.services import (
    achievement_service,
    ledger_service,
    reconciliation_service,
    tier_service,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """Result of :meth:`ReputationEngine.record_action`."""

    calculation: PointsCalculation
    transaction: ledger_service.TransactionResult
    evaluation: achievement_service.ActivityEvaluation | None = None


class ReputationEngine:
    """Facade over the reputation services for one database."""

    def __init__(
        self,
        engine: Engine,
        *,
        config: EngineConfig | None = None,
        catalog: AchievementCatalog = DEFAULT_CATALOG,
        locks: UserLockRegistry | None = None,
    ) -> None:
        self.engine = engine
        self.config = config or EngineConfig()
        self.catalog = catalog
        self.locks = locks or get_default_registry()

    # -- Points ---------------------------------------------------------------

    def award_points(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str = "",
        *,
        source_id: str | None = None,
        now: datetime | None = None,
    ) -> ledger_service.TransactionResult:
        return ledger_service.award(
            self.engine, user_id, amount, source, description,
            source_id=source_id, now=now, locks=self.locks,
            level_step=self.config.level_step,
        )

    def spend_points(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str = "",
        *,
        now: datetime | None = None,
    ) -> ledger_service.TransactionResult:
        """Raises :class:`~barkrep.services.ledger_service.InsufficientBalanceError`."""
        return ledger_service.spend(
            self.engine, user_id, amount, source, description,
            now=now, locks=self.locks, level_step=self.config.level_step,
        )

    def get_points_snapshot(self, user_id: str) -> ledger_service.AccountSnapshot:
        return ledger_service.get_snapshot(
            self.engine, user_id, level_step=self.config.level_step,
        )

    def list_transactions(self, user_id: str, *, limit: int = 50) -> list[ledger_service.LedgerEntry]:
        return ledger_service.list_transactions(self.engine, user_id, limit=limit)

    # -- Tiers ----------------------------------------------------------------

    def get_tier_status(self, user_id: str, *, now: datetime | None = None) -> tier_service.TierStatus:
        return tier_service.get_tier_status(
            self.engine, user_id, now=now, locks=self.locks,
            window_days=self.config.trailing_window_days,
        )

    # -- Achievements ---------------------------------------------------------

    def evaluate_activity(
        self,
        user_id: str,
        stats: Mapping[str, object],
        *,
        now: datetime | None = None,
    ) -> achievement_service.ActivityEvaluation:
        return achievement_service.evaluate_activity(
            self.engine, user_id, stats,
            catalog=self.catalog, now=now, locks=self.locks,
            level_step=self.config.level_step,
        )

    def list_achievements(
        self,
        user_id: str,
        *,
        include_locked: bool = True,
        include_hidden: bool = False,
    ) -> achievement_service.AchievementListing:
        return achievement_service.list_achievements(
            self.engine, user_id,
            include_locked=include_locked,
            include_hidden=include_hidden,
            catalog=self.catalog,
            hint_threshold=self.config.hint_threshold,
        )

    # -- Quality --------------------------------------------------------------

    def score_answer(
        self,
        answer_text: str,
        question_title: str = "",
        question_content: str = "",
        engagement: quality.EngagementSignals | None = None,
        author: quality.AuthorCredibility | None = None,
        category: str | None = None,
    ) -> quality.QualityScore:
        return quality.score_answer(
            answer_text, question_title, question_content,
            engagement=engagement, author=author, category=category,
        )

    # -- Composite ------------------------------------------------------------

    def default_context(self, user_id: str, *, now: datetime | None = None) -> PointContext:
        """Multiplier context derivable from engine state alone.

        New-user status comes from the account's age; weekend from *now*.
        Premium, expert and festival flags belong to the caller.
        """
        now = now or datetime.now(UTC)
        snapshot = self.get_points_snapshot(user_id)
        created = snapshot.created_at or now
        if created.tzinfo is None:
            created = created.replace(tzinfo=UTC)
        return PointContext(
            is_new_user=now - created < timedelta(days=self.config.new_user_days),
            is_weekend=now.weekday() >= 5,
        )

    def record_action(
        self,
        user_id: str,
        action: ActivityAction | str,
        *,
        context: PointContext | None = None,
        stats: Mapping[str, object] | None = None,
        source_id: str | None = None,
        now: datetime | None = None,
    ) -> ActionOutcome:
        """Size, award and evaluate one activity.

        The award is committed (and its tier delta applied) before the
        achievement pass runs.  Without *stats* no pass runs.
        """
        now = now or datetime.now(UTC)
        if context is None:
            context = self.default_context(user_id, now=now)
        calculation = calculate_points(action, context)

        result = self.award_points(
            user_id,
            calculation.points,
            str(calculation.action),
            calculation.description,
            source_id=source_id,
            now=now,
        )

        evaluation = None
        if stats is not None:
            evaluation = self.evaluate_activity(user_id, stats, now=now)

        return ActionOutcome(
            calculation=calculation,
            transaction=result,
            evaluation=evaluation,
        )

    # -- Maintenance ----------------------------------------------------------

    def reconcile_accounts(self, user_id: str | None = None) -> dict:
        return reconciliation_service.reconcile_accounts(
            self.engine, user_id, locks=self.locks,
            level_step=self.config.level_step,
        )
