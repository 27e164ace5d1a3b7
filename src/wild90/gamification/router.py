"""Gamification API endpoints: collection, profile, leaderboard, goals, achievements."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from wild90.dependencies import get_current_user_id, get_runtime
from wild90.gamification.collection import CollectionStatus, load_collection
from wild90.gamification.leaderboard import get_leaderboard
from wild90.gamification.schemas import (
    AchievementDefinitionResponse,
    AllAchievementsResponse,
    CollectionEntry,
    CollectionResponse,
    EarnedAchievementResponse,
    GoalsResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    ProfileResponse,
)
from wild90.ledger.records import Rarity
from wild90.notifications.events import ResultRevealEvent
from wild90.runtime import ScannerRuntime
from wild90.scan.schemas import GoalProgressResponse

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Get all achievement definitions."""
    achievements = await runtime.ledger.list_achievements()
    return AllAchievementsResponse(achievements=[
        AchievementDefinitionResponse(
            id=a.id,
            name=a.name,
            description=a.description,
            rule_type=a.rule_type.value,
            icon_url=a.icon_url,
        )
        for a in achievements
    ])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Top scorers, all time."""
    entries = await get_leaderboard(
        runtime.ledger,
        runtime.redis,
        limit=runtime.settings.leaderboard_limit,
        cache_ttl=runtime.settings.leaderboard_cache_ttl_seconds,
    )
    return LeaderboardResponse(entries=[LeaderboardEntry(**e) for e in entries])


@router.get("/goals", response_model=GoalsResponse)
async def community_goals(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Progress on every community goal; ``contributed`` is relative to the signed-in user."""
    progress = await runtime.progress.all_progress(runtime.identity.user_id)
    return GoalsResponse(goals=[GoalProgressResponse(**p.as_dict()) for p in progress])


# ── Signed-in endpoints ──


@router.get("/collection", response_model=CollectionResponse)
async def collection(
    status: CollectionStatus = Query(CollectionStatus.ALL),  # noqa: B008
    rarity: Rarity | None = Query(None),  # noqa: B008
    user_id: str = Depends(get_current_user_id),
    runtime: ScannerRuntime = Depends(get_runtime),  # noqa: B008
):
    """Catalog with the user's collected entries marked."""
    view = await load_collection(runtime.ledger, user_id, status=status, rarity=rarity)
    return CollectionResponse(
        entries=[
            CollectionEntry(
                entity=ResultRevealEvent.from_entity(entity).entity,
                collected=view.is_collected(entity.id),
            )
            for entity in view.entities
        ],
        collected_count=view.collected_count,
        total_count=view.total_count,
        completion_percentage=view.completion_percentage,
    )


@router.get("/profile", response_model=ProfileResponse)
async def profile(
    user_id: str = Depends(get_current_user_id),
    runtime: ScannerRuntime = Depends(get_runtime),  # noqa: B008
):
    """Score totals plus earned achievements, most recent first."""
    score = await runtime.ledger.get_score_profile(user_id)
    grants = await runtime.ledger.list_achievement_grants(user_id)
    catalog = {a.id: a for a in await runtime.ledger.list_achievements()}

    earned = [
        EarnedAchievementResponse(
            achievement_id=grant.achievement_id,
            name=catalog[grant.achievement_id].name,
            description=catalog[grant.achievement_id].description,
            icon_url=catalog[grant.achievement_id].icon_url,
            earned_at=grant.granted_at,
        )
        for grant in sorted(grants, key=lambda g: g.granted_at, reverse=True)
        if grant.achievement_id in catalog
    ]
    return ProfileResponse(
        user_id=user_id,
        display_name=score.display_name,
        total_score=score.total_score,
        observation_count=score.observation_count,
        achievements=earned,
    )
