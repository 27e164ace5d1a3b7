"""Scan endpoints: trigger a scan, read the phase, advance past the result."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from wild90.dependencies import get_runtime
from wild90.gamification.leaderboard import invalidate_leaderboard
from wild90.notifications.events import AchievementRevealEvent, ResultRevealEvent
from wild90.runtime import ScannerRuntime
from wild90.scan.schemas import (
    DismissResponse,
    GoalProgressResponse,
    PhaseResponse,
    ScanRequest,
    ScanResponse,
)

router = APIRouter(prefix="/api/v1/scan", tags=["Scan"])


@router.post("", response_model=ScanResponse)
async def run_scan(
    body: ScanRequest | None = None,
    runtime: ScannerRuntime = Depends(get_runtime),  # noqa: B008
):
    """Capture, classify, persist and reconcile one scan.

    Errors are mapped by the global handler: 409 while another scan is in
    flight, 401 when signed out, 422 when nothing was recognised.
    """
    body = body or ScanRequest()
    result = await runtime.pipeline.scan(latitude=body.latitude, longitude=body.longitude)
    await invalidate_leaderboard(runtime.redis, runtime.settings.leaderboard_limit)

    return ScanResponse(
        observation_id=result.observation.id,
        observed_at=result.observation.observed_at,
        entity=ResultRevealEvent.from_entity(result.entity).entity,
        progress=GoalProgressResponse(**result.progress.as_dict()) if result.progress else None,
        new_achievements=[
            AchievementRevealEvent.from_achievement(a).achievement for a in result.new_achievements
        ],
        phase=runtime.pipeline.phase.value,
    )


@router.get("/state", response_model=PhaseResponse)
async def scan_state(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    return PhaseResponse(
        phase=runtime.pipeline.phase.value,
        pending_reveals=runtime.scheduler.pending_count,
    )


@router.post("/dismiss", response_model=DismissResponse)
async def dismiss_result(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """User tapped "Scan Another"; pending reveals keep running until the next capture."""
    dismissed = runtime.pipeline.dismiss()
    return DismissResponse(dismissed=dismissed, phase=runtime.pipeline.phase.value)


@router.post("/reveals/dismiss", response_model=DismissResponse)
async def dismiss_reveals(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """User closed a reveal; drop the ones still waiting."""
    cancelled = runtime.scheduler.cancel_pending()
    return DismissResponse(
        dismissed=cancelled > 0,
        phase=runtime.pipeline.phase.value,
        cancelled_reveals=cancelled,
    )
