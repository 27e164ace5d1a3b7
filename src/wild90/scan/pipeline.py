"""Scan pipeline: one capture turned into a scored, reconciled, revealed scan.

State progression per invocation:

    idle -> capturing -> classifying -> persisting -> reconciling -> presenting -> idle

A scan is only accepted from ``idle``; anything else is rejected, never
queued. The phase is set before the first await, so two triggers on the
same event loop cannot both get through. ``presenting`` lasts until the
user dismisses the result.

Failures up to and including the score update abort to ``idle`` and are
surfaced. Failures while reconciling (community progress, achievement diff)
are logged and the corresponding reveal is dropped: the observation and
score are already written by then.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog

from wild90.camera.session import CameraSessionManager
from wild90.errors import (
    CaptureFailed,
    ClassificationEmpty,
    DiffReadFailed,
    LedgerError,
    NotReady,
    PersistFailed,
    PipelineBusy,
    PipelineDisabled,
    ProgressComputeFailed,
    ScoreUpdateFailed,
    Wild90Error,
)
from wild90.gamification.achievement_diff import diff, reveal_choice
from wild90.gamification.community import CommunityProgressCalculator, GoalProgress
from wild90.ledger.client import LedgerClient
from wild90.ledger.records import Achievement, AchievementGrant, Entity, ObservationRecord
from wild90.notifications.scheduler import NotificationScheduler, ScanReveal
from wild90.scan.classifier import Classifier
from wild90.session.identity import UserSession

logger = structlog.get_logger()


class ScanPhase(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    CLASSIFYING = "classifying"
    PERSISTING = "persisting"
    RECONCILING = "reconciling"
    PRESENTING = "presenting"


VALID_TRANSITIONS: dict[ScanPhase, list[ScanPhase]] = {
    ScanPhase.IDLE: [ScanPhase.CAPTURING],
    ScanPhase.CAPTURING: [ScanPhase.CLASSIFYING, ScanPhase.IDLE],
    ScanPhase.CLASSIFYING: [ScanPhase.PERSISTING, ScanPhase.IDLE],
    ScanPhase.PERSISTING: [ScanPhase.RECONCILING, ScanPhase.IDLE],
    ScanPhase.RECONCILING: [ScanPhase.PRESENTING, ScanPhase.IDLE],
    ScanPhase.PRESENTING: [ScanPhase.IDLE],
}


def validate_transition(current: ScanPhase, target: ScanPhase) -> None:
    """Raise ValueError on a transition the state machine does not allow."""
    if target not in VALID_TRANSITIONS[current]:
        raise ValueError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Valid transitions: {[p.value for p in VALID_TRANSITIONS[current]]}"
        )


@dataclass(frozen=True)
class ScanResult:
    observation: ObservationRecord
    entity: Entity
    progress: GoalProgress | None = None
    new_achievements: list[Achievement] = field(default_factory=list)

    @property
    def achievement(self) -> Achievement | None:
        return reveal_choice(self.new_achievements)


class ScanPipeline:
    def __init__(
        self,
        camera: CameraSessionManager,
        classifier: Classifier,
        ledger: LedgerClient,
        progress: CommunityProgressCalculator,
        scheduler: NotificationScheduler,
        identity: UserSession,
        *,
        settle_delay: float = 0.5,
    ) -> None:
        self.camera = camera
        self.classifier = classifier
        self.ledger = ledger
        self.progress = progress
        self.scheduler = scheduler
        self.identity = identity
        self.settle_delay = settle_delay
        self._phase = ScanPhase.IDLE

    @property
    def phase(self) -> ScanPhase:
        return self._phase

    def _set_phase(self, target: ScanPhase) -> None:
        validate_transition(self._phase, target)
        self._phase = target

    async def scan(
        self,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> ScanResult:
        """Run one scan end to end. Raises the Wild90Error that aborted it."""
        user_id = self.identity.user_id
        if user_id is None:
            raise PipelineDisabled()
        if self._phase is not ScanPhase.IDLE:
            logger.info("scan_rejected", phase=self._phase.value)
            raise PipelineBusy()

        self._set_phase(ScanPhase.CAPTURING)
        self.scheduler.cancel_pending()
        log = logger.bind(user_id=user_id)
        log.info("scan_started")

        completed = False
        try:
            self.scheduler.flash(user_id)
            try:
                frame = await self.camera.capture_frame()
            except NotReady as exc:
                raise CaptureFailed(exc.message) from exc

            self._set_phase(ScanPhase.CLASSIFYING)
            entity = await self.classifier.classify(frame)
            if entity is None:
                raise ClassificationEmpty()

            self._set_phase(ScanPhase.PERSISTING)
            try:
                observation = await self.ledger.create_observation(
                    user_id,
                    entity.id,
                    frame.as_data_url(),
                    latitude=latitude,
                    longitude=longitude,
                )
            except LedgerError as exc:
                raise PersistFailed() from exc

            before = await self._read_grants(user_id)
            try:
                await self.ledger.increment_score(user_id, entity.points)
            except LedgerError as exc:
                # the observation above stays; profile count now trails the records
                raise ScoreUpdateFailed() from exc

            self._set_phase(ScanPhase.RECONCILING)
            progress = await self._reconcile_progress(entity, user_id)
            await asyncio.sleep(self.settle_delay)
            new_achievements = await self._detect_achievements(user_id, before)
            completed = True
        except Wild90Error as exc:
            log.warning("scan_failed", kind=exc.kind.value, error=exc.message)
            await self.scheduler.error(user_id, exc.kind, exc.message)
            raise
        finally:
            if not completed:
                self._phase = ScanPhase.IDLE

        self._set_phase(ScanPhase.PRESENTING)
        result = ScanResult(
            observation=observation,
            entity=entity,
            progress=progress,
            new_achievements=new_achievements,
        )
        log.info(
            "scan_completed",
            entity=entity.name,
            points=entity.points,
            goal=progress.goal.id if progress else None,
            new_achievements=[a.name for a in new_achievements],
        )
        await self.scheduler.present(
            user_id,
            ScanReveal(entity=entity, progress=progress, achievement=result.achievement),
        )
        return result

    def dismiss(self) -> bool:
        """User advanced past the result. Returns False if not presenting."""
        if self._phase is not ScanPhase.PRESENTING:
            return False
        self._set_phase(ScanPhase.IDLE)
        return True

    # ── Reconciliation (non-fatal) ──

    async def _read_grants(self, user_id: str) -> list[AchievementGrant] | None:
        try:
            return await self.ledger.list_achievement_grants(user_id)
        except LedgerError:
            logger.warning("achievement_snapshot_failed", kind=DiffReadFailed.kind.value, exc_info=True)
            return None

    async def _reconcile_progress(self, entity: Entity, user_id: str) -> GoalProgress | None:
        goals = self.progress.goals_for(entity)
        if not goals:
            return None
        try:
            return await self.progress.progress(goals[0], user_id)
        except ProgressComputeFailed:
            logger.warning("progress_compute_failed", goal=goals[0].id, exc_info=True)
            return None

    async def _detect_achievements(
        self,
        user_id: str,
        before: list[AchievementGrant] | None,
    ) -> list[Achievement]:
        if before is None:
            return []
        try:
            after = await self.ledger.list_achievement_grants(user_id)
            catalog = {a.id: a for a in await self.ledger.list_achievements()}
        except LedgerError:
            logger.warning("achievement_snapshot_failed", kind=DiffReadFailed.kind.value, exc_info=True)
            return []
        return diff(before, after, catalog)
