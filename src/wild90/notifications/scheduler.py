"""Notification scheduler: timed, ordered reveals for one scan.

Offsets are relative to the result reveal:

    flash        at capture start (fire-and-forget)
    result       immediately on presenting
    progress     +progress_delay, only if a community goal matched
    achievement  +achievement_delay, only if new grants were found

Pending reveals are asyncio tasks; dismissing or starting a new scan
cancels them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from wild90.errors import ErrorKind
from wild90.gamification.community import GoalProgress
from wild90.ledger.records import Achievement, Entity
from wild90.notifications.events import (
    AchievementRevealEvent,
    ErrorEvent,
    FlashEvent,
    PresentationEvent,
    ProgressRevealEvent,
    ResultRevealEvent,
)

logger = structlog.get_logger()

EventSink = Callable[[str | None, PresentationEvent], Awaitable[None]]


@dataclass(frozen=True)
class ScanReveal:
    entity: Entity
    progress: GoalProgress | None = None
    achievement: Achievement | None = None


class NotificationScheduler:
    def __init__(
        self,
        sink: EventSink,
        *,
        flash_visible: float = 0.2,
        progress_delay: float = 0.9,
        achievement_delay: float = 2.0,
    ) -> None:
        self._sink = sink
        self.flash_visible = flash_visible
        self.progress_delay = progress_delay
        self.achievement_delay = achievement_delay
        self._pending: set[asyncio.Task[None]] = set()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._pending if not task.done())

    async def _emit(self, user_id: str | None, event: PresentationEvent) -> None:
        try:
            await self._sink(user_id, event)
        except Exception:
            logger.warning("reveal_delivery_failed", event=event.type, exc_info=True)

    async def _emit_later(self, delay: float, user_id: str | None, event: PresentationEvent) -> None:
        await asyncio.sleep(delay)
        await self._emit(user_id, event)

    def _schedule(self, delay: float, user_id: str | None, event: PresentationEvent) -> None:
        task = asyncio.create_task(self._emit_later(delay, user_id, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def flash(self, user_id: str | None) -> None:
        """Capture cue; does not block the caller."""
        task = asyncio.create_task(
            self._emit(user_id, FlashEvent(visible_ms=int(self.flash_visible * 1000)))
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def present(self, user_id: str | None, reveal: ScanReveal) -> None:
        """Emit the result now and schedule the follow-up reveals."""
        await self._emit(user_id, ResultRevealEvent.from_entity(reveal.entity))
        if reveal.progress is not None:
            self._schedule(self.progress_delay, user_id, ProgressRevealEvent.from_progress(reveal.progress))
        if reveal.achievement is not None:
            self._schedule(
                self.achievement_delay,
                user_id,
                AchievementRevealEvent.from_achievement(reveal.achievement),
            )

    async def error(self, user_id: str | None, kind: ErrorKind, message: str) -> None:
        await self._emit(user_id, ErrorEvent(kind=kind.value, message=message))

    def cancel_pending(self) -> int:
        """Cancel reveals that have not fired yet. Returns how many were cancelled."""
        cancelled = 0
        for task in list(self._pending):
            if not task.done():
                task.cancel()
                cancelled += 1
        self._pending.clear()
        if cancelled:
            logger.debug("reveals_cancelled", count=cancelled)
        return cancelled

    async def drain(self) -> None:
        """Wait for every scheduled reveal and flash to finish."""
        tasks = [*self._pending, *self._background]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
