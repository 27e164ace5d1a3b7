"""Ledger client: the scan core's view of the backend data store.

``LedgerClient`` is the contract the core depends on. ``SqlLedgerClient``
implements it over async SQLAlchemy, one committed session per call, so
each operation is atomic on its own.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Collection
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wild90.db.models import (
    AchievementGrantRow,
    AchievementRow,
    EntityRow,
    ObservationRow,
    ScoreProfileRow,
)
from wild90.errors import LedgerError
from wild90.ledger.grant_engine import GrantEngine
from wild90.ledger.records import (
    Achievement,
    AchievementGrant,
    Entity,
    EntityFilter,
    ObservationRecord,
    Rarity,
    RuleType,
    ScoreProfile,
)

logger = logging.getLogger(__name__)


class LedgerClient(Protocol):
    async def create_observation(
        self,
        user_id: str,
        entity_id: str,
        image_ref: str | None = None,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> ObservationRecord: ...

    async def increment_score(self, user_id: str, points: int) -> None: ...

    async def list_achievement_grants(self, user_id: str) -> list[AchievementGrant]: ...

    async def list_achievements(self) -> list[Achievement]: ...

    async def list_entities(self, entity_filter: EntityFilter | None = None) -> list[Entity]: ...

    async def list_observations(
        self,
        entity_ids: Collection[str] | None = None,
        user_id: str | None = None,
    ) -> list[ObservationRecord]: ...

    async def get_score_profile(self, user_id: str) -> ScoreProfile: ...

    async def leaderboard(self, limit: int) -> list[ScoreProfile]: ...


# ---------------------------------------------------------------------------
# Row -> record conversion
# ---------------------------------------------------------------------------


def to_entity(row: EntityRow) -> Entity:
    return Entity(
        id=row.id,
        name=row.name,
        scientific_name=row.scientific_name,
        rarity=Rarity(row.rarity),
        points=row.points,
        description=row.description,
        image_url=row.image_url,
    )


def to_observation(row: ObservationRow) -> ObservationRecord:
    return ObservationRecord(
        id=row.id,
        user_id=row.user_id,
        entity_id=row.entity_id,
        observed_at=row.observed_at,
        latitude=row.latitude,
        longitude=row.longitude,
        image_ref=row.image_ref,
    )


def to_achievement(row: AchievementRow) -> Achievement:
    return Achievement(
        id=row.id,
        name=row.name,
        description=row.description,
        rule_type=RuleType(row.rule_type),
        rule_value=row.rule_value,
        icon_url=row.icon_url,
    )


def to_grant(row: AchievementGrantRow) -> AchievementGrant:
    return AchievementGrant(
        id=row.id,
        user_id=row.user_id,
        achievement_id=row.achievement_id,
        granted_at=row.granted_at,
    )


def to_profile(row: ScoreProfileRow) -> ScoreProfile:
    return ScoreProfile(
        user_id=row.user_id,
        total_score=row.total_score,
        observation_count=row.observation_count,
        updated_at=row.updated_at,
        username=row.username,
        email=row.email,
    )


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------


class SqlLedgerClient:
    """LedgerClient backed by the async SQLAlchemy models."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as exc:
                await db.rollback()
                raise LedgerError(str(exc)) from exc

    async def create_observation(
        self,
        user_id: str,
        entity_id: str,
        image_ref: str | None = None,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> ObservationRecord:
        async with self._session() as db:
            row = ObservationRow(
                user_id=user_id,
                entity_id=entity_id,
                observed_at=datetime.now(timezone.utc),
                latitude=latitude,
                longitude=longitude,
                image_ref=image_ref,
            )
            db.add(row)
            await db.commit()
            return to_observation(row)

    async def increment_score(self, user_id: str, points: int) -> None:
        """Add points and one observation to the user's totals, then evaluate grants.

        The totals are updated with a server-side expression, never read first.
        """
        async with self._session() as db:
            now = datetime.now(timezone.utc)
            stmt = (
                update(ScoreProfileRow)
                .where(ScoreProfileRow.user_id == user_id)
                .values(
                    total_score=ScoreProfileRow.total_score + points,
                    observation_count=ScoreProfileRow.observation_count + 1,
                    updated_at=now,
                )
            )
            result = await db.execute(stmt)
            if result.rowcount == 0:
                try:
                    async with db.begin_nested():
                        db.add(ScoreProfileRow(
                            user_id=user_id,
                            total_score=points,
                            observation_count=1,
                            updated_at=now,
                        ))
                except IntegrityError:
                    # Another writer created the profile first
                    await db.execute(stmt)

            await GrantEngine(db).evaluate(user_id)
            await db.commit()

    async def list_achievement_grants(self, user_id: str) -> list[AchievementGrant]:
        async with self._session() as db:
            result = await db.execute(
                select(AchievementGrantRow)
                .where(AchievementGrantRow.user_id == user_id)
                .order_by(AchievementGrantRow.granted_at.desc())
            )
            return [to_grant(row) for row in result.scalars()]

    async def list_achievements(self) -> list[Achievement]:
        async with self._session() as db:
            result = await db.execute(select(AchievementRow).order_by(AchievementRow.sort_order))
            return [to_achievement(row) for row in result.scalars()]

    async def list_entities(self, entity_filter: EntityFilter | None = None) -> list[Entity]:
        """Catalog entries ordered by rarity tier, then name."""
        entity_filter = entity_filter or EntityFilter()
        stmt = select(EntityRow).order_by(EntityRow.name)
        if entity_filter.name_contains:
            stmt = stmt.where(EntityRow.name.icontains(entity_filter.name_contains, autoescape=True))
        if entity_filter.rarities:
            stmt = stmt.where(EntityRow.rarity.in_([r.value for r in entity_filter.rarities]))
        if entity_filter.limit is not None:
            stmt = stmt.limit(entity_filter.limit)

        async with self._session() as db:
            result = await db.execute(stmt)
            entities = [to_entity(row) for row in result.scalars()]
        return sorted(entities, key=lambda e: e.rarity.rank)

    async def list_observations(
        self,
        entity_ids: Collection[str] | None = None,
        user_id: str | None = None,
    ) -> list[ObservationRecord]:
        if entity_ids is not None and not entity_ids:
            return []
        stmt = select(ObservationRow).order_by(ObservationRow.observed_at)
        if entity_ids is not None:
            stmt = stmt.where(ObservationRow.entity_id.in_(list(entity_ids)))
        if user_id is not None:
            stmt = stmt.where(ObservationRow.user_id == user_id)

        async with self._session() as db:
            result = await db.execute(stmt)
            return [to_observation(row) for row in result.scalars()]

    async def get_score_profile(self, user_id: str) -> ScoreProfile:
        """Current totals; a user who never scanned gets an all-zero profile."""
        async with self._session() as db:
            row = await db.get(ScoreProfileRow, user_id)
            if row is None:
                return ScoreProfile(user_id=user_id)
            return to_profile(row)

    async def leaderboard(self, limit: int) -> list[ScoreProfile]:
        async with self._session() as db:
            result = await db.execute(
                select(ScoreProfileRow)
                .order_by(ScoreProfileRow.total_score.desc(), ScoreProfileRow.user_id)
                .limit(limit)
            )
            return [to_profile(row) for row in result.scalars()]
