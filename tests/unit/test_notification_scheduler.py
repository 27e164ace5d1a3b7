"""Notification scheduler tests: reveal ordering, cancellation, sink failures."""

from __future__ import annotations

import asyncio

import pytest

from wild90.errors import ErrorKind
from wild90.gamification.community import COMMUNITY_GOALS, GoalProgress
from wild90.ledger.records import Achievement, Entity, Rarity, RuleType
from wild90.notifications.scheduler import NotificationScheduler, ScanReveal

MONARCH = Entity(
    id="e-monarch",
    name="Monarch Butterfly",
    scientific_name="Danaus plexippus",
    rarity=Rarity.COMMON,
    points=10,
)
FIRST_SCAN = Achievement(
    id="a-first",
    name="First Scan",
    description="Scan your first bug",
    rule_type=RuleType.OBSERVATION_COUNT,
    rule_value=1,
)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str | None, object]] = []

    async def __call__(self, user_id, event) -> None:
        self.events.append((user_id, event))

    @property
    def types(self) -> list[str]:
        return [event.type for _, event in self.events]


def full_reveal() -> ScanReveal:
    return ScanReveal(
        entity=MONARCH,
        progress=GoalProgress(goal=COMMUNITY_GOALS[0], current=12, contributed=True),
        achievement=FIRST_SCAN,
    )


class TestPresent:
    """Test the reveal timeline."""

    @pytest.mark.asyncio
    async def test_result_progress_achievement_order(self):
        sink = RecordingSink()
        scheduler = NotificationScheduler(sink, progress_delay=0.01, achievement_delay=0.03)

        await scheduler.present("alice", full_reveal())
        assert sink.types == ["result_reveal"]
        assert scheduler.pending_count == 2

        await scheduler.drain()
        assert sink.types == ["result_reveal", "progress_reveal", "achievement_reveal"]
        assert all(user_id == "alice" for user_id, _ in sink.events)

    @pytest.mark.asyncio
    async def test_progress_payload(self):
        sink = RecordingSink()
        scheduler = NotificationScheduler(sink, progress_delay=0, achievement_delay=0)

        await scheduler.present("alice", full_reveal())
        await scheduler.drain()

        progress = next(e for _, e in sink.events if e.type == "progress_reveal")
        assert progress.goal_id == "butterfly-challenge"
        assert progress.current == 12
        assert progress.target == 30
        assert progress.percentage == 40.0
        assert progress.contributed is True

    @pytest.mark.asyncio
    async def test_result_only(self):
        sink = RecordingSink()
        scheduler = NotificationScheduler(sink, progress_delay=0, achievement_delay=0)

        await scheduler.present("alice", ScanReveal(entity=MONARCH))
        await scheduler.drain()

        assert sink.types == ["result_reveal"]
        assert scheduler.pending_count == 0


class TestCancel:
    """Test dropping pending reveals."""

    @pytest.mark.asyncio
    async def test_cancel_pending_suppresses_later_reveals(self):
        sink = RecordingSink()
        scheduler = NotificationScheduler(sink, progress_delay=10, achievement_delay=10)

        await scheduler.present("alice", full_reveal())
        cancelled = scheduler.cancel_pending()
        await asyncio.sleep(0)

        assert cancelled == 2
        assert scheduler.pending_count == 0
        assert sink.types == ["result_reveal"]

    @pytest.mark.asyncio
    async def test_cancel_with_nothing_pending(self):
        scheduler = NotificationScheduler(RecordingSink())
        assert scheduler.cancel_pending() == 0


class TestFlashAndErrors:
    """Test the capture cue and error notices."""

    @pytest.mark.asyncio
    async def test_flash_does_not_block(self):
        sink = RecordingSink()
        scheduler = NotificationScheduler(sink, flash_visible=0.2)

        scheduler.flash("alice")
        assert sink.events == []

        await scheduler.drain()
        assert sink.types == ["flash"]
        assert sink.events[0][1].visible_ms == 200

    @pytest.mark.asyncio
    async def test_error_event(self):
        sink = RecordingSink()
        scheduler = NotificationScheduler(sink)

        await scheduler.error("alice", ErrorKind.CLASSIFICATION_EMPTY, "No bug detected.")

        _, event = sink.events[0]
        assert event.type == "error"
        assert event.kind == "classification_empty"
        assert event.message == "No bug detected."

    @pytest.mark.asyncio
    async def test_sink_failure_is_logged_not_raised(self):
        async def broken_sink(user_id, event):
            raise ConnectionError("socket closed")

        scheduler = NotificationScheduler(broken_sink, progress_delay=0, achievement_delay=0)

        await scheduler.present("alice", full_reveal())
        await scheduler.drain()
