"""Community goals and derived progress.

Progress is never stored. It is recomputed from the append-only observation
set each time, so it cannot drift from the records it summarizes:

- current: distinct matching entities observed by anyone
- contributed: the acting user observed at least one of them
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wild90.errors import LedgerError, ProgressComputeFailed
from wild90.ledger.client import LedgerClient
from wild90.ledger.records import Entity, EntityFilter, Rarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommunityGoal:
    """A shared target over catalog coverage.

    Matches by case-insensitive name substring, or by rarity tier membership
    when ``rarities`` is set.
    """

    id: str
    name: str
    description: str
    target: int
    icon: str
    name_contains: str | None = None
    rarities: frozenset[Rarity] = field(default_factory=frozenset)

    def matches(self, entity: Entity) -> bool:
        if self.rarities:
            return entity.rarity in self.rarities
        if self.name_contains:
            return self.name_contains.lower() in entity.name.lower()
        return False

    def entity_filter(self) -> EntityFilter:
        return EntityFilter(name_contains=self.name_contains, rarities=self.rarities)


COMMUNITY_GOALS: list[CommunityGoal] = [
    CommunityGoal(
        id="butterfly-challenge",
        name="Butterfly Migration",
        description="Help the community scan 30 butterflies",
        target=30,
        icon="\U0001f98b",
        name_contains="butterfly",
    ),
    CommunityGoal(
        id="bee-challenge",
        name="Bee Colony",
        description="Scan 50 bees together",
        target=50,
        icon="\U0001f41d",
        name_contains="bee",
    ),
    CommunityGoal(
        id="rare-challenge",
        name="Rare Discovery",
        description="Find 20 rare or epic bugs",
        target=20,
        icon="✨",
        rarities=frozenset({Rarity.RARE, Rarity.EPIC, Rarity.LEGENDARY}),
    ),
]


@dataclass(frozen=True)
class GoalProgress:
    goal: CommunityGoal
    current: int
    contributed: bool

    @property
    def target(self) -> int:
        return self.goal.target

    @property
    def clamped(self) -> int:
        return max(0, min(self.current, self.goal.target))

    @property
    def percentage(self) -> float:
        if self.goal.target <= 0:
            return 100.0
        return min(self.current / self.goal.target, 1.0) * 100

    @property
    def complete(self) -> bool:
        return self.current >= self.goal.target

    def as_dict(self) -> dict:
        return {
            "goal_id": self.goal.id,
            "name": self.goal.name,
            "icon": self.goal.icon,
            "current": self.current,
            "target": self.goal.target,
            "contributed": self.contributed,
            "percentage": round(self.percentage, 2),
            "complete": self.complete,
        }


class CommunityProgressCalculator:
    """Derives goal progress from ledger reads."""

    def __init__(self, ledger: LedgerClient, goals: list[CommunityGoal] | None = None) -> None:
        self.ledger = ledger
        self.goals = goals if goals is not None else COMMUNITY_GOALS

    def goals_for(self, entity: Entity) -> list[CommunityGoal]:
        """Goals the given entity counts toward, in definition order."""
        return [goal for goal in self.goals if goal.matches(entity)]

    async def progress(self, goal: CommunityGoal, user_id: str | None) -> GoalProgress:
        """Compute one goal's progress. Raises ProgressComputeFailed on backend errors."""
        try:
            entities = await self.ledger.list_entities(goal.entity_filter())
            entity_ids = {entity.id for entity in entities}
            if not entity_ids:
                return GoalProgress(goal=goal, current=0, contributed=False)
            observations = await self.ledger.list_observations(entity_ids=entity_ids)
        except LedgerError as exc:
            raise ProgressComputeFailed(str(exc)) from exc

        observed = {obs.entity_id for obs in observations if obs.entity_id in entity_ids}
        contributed = user_id is not None and any(
            obs.user_id == user_id for obs in observations if obs.entity_id in entity_ids
        )
        return GoalProgress(goal=goal, current=len(observed), contributed=contributed)

    async def all_progress(self, user_id: str | None) -> list[GoalProgress]:
        """Progress for every goal. A goal whose reads fail is logged and left out."""
        results = []
        for goal in self.goals:
            try:
                results.append(await self.progress(goal, user_id))
            except ProgressComputeFailed as exc:
                logger.warning("Skipping goal %s: %s", goal.id, exc.message)
        return results
