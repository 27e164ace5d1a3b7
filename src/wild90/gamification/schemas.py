"""Pydantic response models for collection, profile, leaderboard and goal endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from wild90.notifications.events import EntityPayload
from wild90.scan.schemas import GoalProgressResponse


# --- Collection ---


class CollectionEntry(BaseModel):
    entity: EntityPayload
    collected: bool


class CollectionResponse(BaseModel):
    entries: list[CollectionEntry]
    collected_count: int
    total_count: int
    completion_percentage: int


# --- Profile ---


class EarnedAchievementResponse(BaseModel):
    achievement_id: str
    name: str
    description: str
    icon_url: str | None = None
    earned_at: datetime


class ProfileResponse(BaseModel):
    user_id: str
    display_name: str
    total_score: int
    observation_count: int
    achievements: list[EarnedAchievementResponse]


# --- Leaderboard ---


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    total_score: int
    observation_count: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]


# --- Goals ---


class GoalsResponse(BaseModel):
    goals: list[GoalProgressResponse]


# --- Achievements ---


class AchievementDefinitionResponse(BaseModel):
    id: str
    name: str
    description: str
    rule_type: str
    icon_url: str | None = None


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementDefinitionResponse]
