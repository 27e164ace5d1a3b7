"""Community progress tests: goal matching and derived progress over a mocked ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from wild90.errors import LedgerError, ProgressComputeFailed
from wild90.gamification.community import (
    COMMUNITY_GOALS,
    CommunityGoal,
    CommunityProgressCalculator,
    GoalProgress,
)
from wild90.ledger.records import Entity, ObservationRecord, Rarity

NOW = datetime(2026, 5, 1, tzinfo=timezone.utc)
GOALS = {goal.id: goal for goal in COMMUNITY_GOALS}


def entity(entity_id: str, name: str, rarity: Rarity = Rarity.COMMON) -> Entity:
    return Entity(id=entity_id, name=name, scientific_name=name, rarity=rarity, points=10)


def observation(obs_id: str, entity_id: str, user_id: str = "bob") -> ObservationRecord:
    return ObservationRecord(
        id=obs_id,
        user_id=user_id,
        entity_id=entity_id,
        observed_at=NOW,
        latitude=None,
        longitude=None,
        image_ref=None,
    )


def mock_ledger(entities: list[Entity], observations: list[ObservationRecord]) -> AsyncMock:
    ledger = AsyncMock()
    ledger.list_entities.return_value = entities
    ledger.list_observations.return_value = observations
    return ledger


class TestGoalMatching:
    """Test which goals an entity counts toward."""

    def test_name_substring_case_insensitive(self):
        calc = CommunityProgressCalculator(AsyncMock())
        matched = calc.goals_for(entity("e1", "Monarch BUTTERFLY"))
        assert [g.id for g in matched] == ["butterfly-challenge"]

    def test_bee_matches_honeybee(self):
        calc = CommunityProgressCalculator(AsyncMock())
        assert [g.id for g in calc.goals_for(entity("e2", "Honeybee"))] == ["bee-challenge"]

    @pytest.mark.parametrize("rarity", [Rarity.RARE, Rarity.EPIC, Rarity.LEGENDARY])
    def test_rare_tier(self, rarity):
        calc = CommunityProgressCalculator(AsyncMock())
        assert [g.id for g in calc.goals_for(entity("e3", "Praying Mantis", rarity))] == ["rare-challenge"]

    def test_no_goal(self):
        calc = CommunityProgressCalculator(AsyncMock())
        assert calc.goals_for(entity("e4", "Ladybug")) == []

    def test_rare_goal_filter_covers_all_three_tiers(self):
        rarities = GOALS["rare-challenge"].entity_filter().rarities
        assert rarities == {Rarity.RARE, Rarity.EPIC, Rarity.LEGENDARY}


class TestProgress:
    """Test derived progress values."""

    @pytest.mark.asyncio
    async def test_distinct_entities_counted_once(self):
        butterflies = [entity(f"b{i}", f"Butterfly {i}") for i in range(20)]
        observations = [observation(f"o{i}", f"b{i % 12}") for i in range(40)]
        calc = CommunityProgressCalculator(mock_ledger(butterflies, observations))

        progress = await calc.progress(GOALS["butterfly-challenge"], "alice")

        assert progress.current == 12
        assert progress.percentage == pytest.approx(40.0)
        assert progress.contributed is False
        assert progress.complete is False

    @pytest.mark.asyncio
    async def test_contributed_by_acting_user(self):
        butterflies = [entity("b1", "Monarch Butterfly")]
        calc = CommunityProgressCalculator(
            mock_ledger(butterflies, [observation("o1", "b1", user_id="alice")])
        )
        progress = await calc.progress(GOALS["butterfly-challenge"], "alice")
        assert progress.contributed is True

    @pytest.mark.asyncio
    async def test_empty_matching_set(self):
        ledger = mock_ledger([], [])
        calc = CommunityProgressCalculator(ledger)

        progress = await calc.progress(GOALS["rare-challenge"], "alice")

        assert progress.current == 0
        assert progress.contributed is False
        assert progress.percentage == 0
        ledger.list_observations.assert_not_called()

    @pytest.mark.asyncio
    async def test_queries_with_goal_filter(self):
        ledger = mock_ledger([entity("b1", "Honeybee")], [])
        calc = CommunityProgressCalculator(ledger)

        await calc.progress(GOALS["bee-challenge"], None)

        entity_filter = ledger.list_entities.call_args.args[0]
        assert entity_filter.name_contains == "bee"
        ledger.list_observations.assert_awaited_once_with(entity_ids={"b1"})

    @pytest.mark.asyncio
    async def test_backend_failure_raises(self):
        ledger = AsyncMock()
        ledger.list_entities.side_effect = LedgerError("connection refused")
        calc = CommunityProgressCalculator(ledger)

        with pytest.raises(ProgressComputeFailed):
            await calc.progress(GOALS["bee-challenge"], "alice")

    @pytest.mark.asyncio
    async def test_all_progress(self):
        calc = CommunityProgressCalculator(mock_ledger([], []))
        progress = await calc.all_progress(None)
        assert [p.goal.id for p in progress] == [g.id for g in COMMUNITY_GOALS]

    @pytest.mark.asyncio
    async def test_all_progress_skips_failing_goal(self):
        async def list_entities(entity_filter=None):
            if entity_filter is not None and entity_filter.name_contains == "bee":
                raise LedgerError("statement timeout")
            return [entity("e1", "Monarch Butterfly")]

        ledger = mock_ledger([], [observation("o1", "e1", user_id="alice")])
        ledger.list_entities.side_effect = list_entities
        calc = CommunityProgressCalculator(ledger)

        progress = await calc.all_progress("alice")

        assert [p.goal.id for p in progress] == ["butterfly-challenge", "rare-challenge"]
        assert progress[0].current == 1
        assert progress[0].contributed is True


class TestGoalProgressValues:
    """Test percentage and clamping."""

    def test_percentage_capped_at_100(self):
        progress = GoalProgress(goal=GOALS["rare-challenge"], current=25, contributed=True)
        assert progress.percentage == 100.0
        assert progress.clamped == 20
        assert progress.complete is True

    def test_zero_target_is_complete(self):
        goal = CommunityGoal(id="g", name="G", description="", target=0, icon="*", name_contains="x")
        progress = GoalProgress(goal=goal, current=0, contributed=False)
        assert progress.percentage == 100.0

    def test_as_dict(self):
        data = GoalProgress(goal=GOALS["butterfly-challenge"], current=12, contributed=True).as_dict()
        assert data["goal_id"] == "butterfly-challenge"
        assert data["target"] == 30
        assert data["percentage"] == 40.0
        assert data["complete"] is False
