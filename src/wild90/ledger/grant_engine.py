"""Backend-side achievement eligibility check.

Runs inside the ledger's score-increment transaction, the way a database
trigger would. The scan core never calls this directly; it only sees the
grants it leaves behind.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wild90.db.models import (
    AchievementGrantRow,
    AchievementRow,
    EntityRow,
    ObservationRow,
    ScoreProfileRow,
)
from wild90.ledger.records import RuleType

logger = logging.getLogger(__name__)


def _threshold(value: Any) -> int:
    """Threshold rules are stored as numbers or numeric strings."""
    return int(value)


def _entity_type_rule(value: Any) -> tuple[str, int]:
    if isinstance(value, str):
        value = json.loads(value)
    return str(value["type"]), int(value.get("count", 1))


class GrantEngine:
    """Awards every achievement a user is now eligible for."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._achievement_cache: list[AchievementRow] | None = None

    async def _load_achievements(self) -> list[AchievementRow]:
        if self._achievement_cache is None:
            result = await self.db.execute(
                select(AchievementRow).order_by(AchievementRow.sort_order)
            )
            self._achievement_cache = list(result.scalars())
        return self._achievement_cache

    async def _earned_ids(self, user_id: str) -> set[str]:
        result = await self.db.execute(
            select(AchievementGrantRow.achievement_id).where(AchievementGrantRow.user_id == user_id)
        )
        return set(result.scalars())

    async def _entity_type_count(self, user_id: str, type_name: str) -> int:
        """Count the user's observations of entities whose name contains type_name."""
        result = await self.db.execute(
            select(func.count(ObservationRow.id))
            .join(EntityRow, ObservationRow.entity_id == EntityRow.id)
            .where(
                ObservationRow.user_id == user_id,
                EntityRow.name.icontains(type_name, autoescape=True),
            )
        )
        return int(result.scalar_one())

    async def _is_eligible(self, achievement: AchievementRow, profile: ScoreProfileRow) -> bool:
        try:
            rule = RuleType(achievement.rule_type)
        except ValueError:
            logger.warning("Unknown rule type %r on achievement %s", achievement.rule_type, achievement.id)
            return False

        if rule is RuleType.OBSERVATION_COUNT:
            return _threshold(achievement.rule_value) <= profile.observation_count
        if rule is RuleType.SCORE_THRESHOLD:
            return _threshold(achievement.rule_value) <= profile.total_score
        if rule is RuleType.ENTITY_TYPE:
            type_name, count = _entity_type_rule(achievement.rule_value)
            return await self._entity_type_count(profile.user_id, type_name) >= count
        # Special achievements are granted by hand
        return False

    async def _grant(self, user_id: str, achievement_id: str) -> bool:
        """Insert one grant. Returns False if it already existed."""
        try:
            async with self.db.begin_nested():
                self.db.add(AchievementGrantRow(
                    user_id=user_id,
                    achievement_id=achievement_id,
                    granted_at=datetime.now(timezone.utc),
                ))
        except IntegrityError:
            return False  # Race condition: already granted
        return True

    async def evaluate(self, user_id: str) -> list[str]:
        """Evaluate all rules for a user. Returns ids of achievements granted now."""
        profile = await self.db.get(ScoreProfileRow, user_id, populate_existing=True)
        if profile is None:
            return []

        earned = await self._earned_ids(user_id)
        awarded: list[str] = []
        for achievement in await self._load_achievements():
            if achievement.id in earned:
                continue
            if await self._is_eligible(achievement, profile) and await self._grant(user_id, achievement.id):
                awarded.append(achievement.id)

        if awarded:
            logger.info("Granted %d achievement(s) to %s", len(awarded), user_id)
        return awarded
