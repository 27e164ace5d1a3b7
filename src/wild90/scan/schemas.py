"""Pydantic request/response models for scan endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from wild90.notifications.events import AchievementPayload, EntityPayload


class ScanRequest(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class GoalProgressResponse(BaseModel):
    goal_id: str
    name: str
    icon: str
    current: int
    target: int
    contributed: bool
    percentage: float
    complete: bool


class ScanResponse(BaseModel):
    observation_id: str
    observed_at: datetime
    entity: EntityPayload
    progress: GoalProgressResponse | None = None
    new_achievements: list[AchievementPayload] = []
    phase: str


class PhaseResponse(BaseModel):
    phase: str
    pending_reveals: int = 0


class DismissResponse(BaseModel):
    dismissed: bool
    phase: str
    cancelled_reveals: int = 0
