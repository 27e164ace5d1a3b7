"""Presentation events streamed to the UI layer."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel

from wild90.gamification.community import GoalProgress
from wild90.ledger.records import Achievement, Entity


class FlashEvent(BaseModel):
    type: Literal["flash"] = "flash"
    visible_ms: int = 200


class EntityPayload(BaseModel):
    id: str
    name: str
    scientific_name: str
    rarity: str
    points: int
    image_url: str | None = None


class ResultRevealEvent(BaseModel):
    type: Literal["result_reveal"] = "result_reveal"
    entity: EntityPayload

    @classmethod
    def from_entity(cls, entity: Entity) -> ResultRevealEvent:
        return cls(entity=EntityPayload(
            id=entity.id,
            name=entity.name,
            scientific_name=entity.scientific_name,
            rarity=entity.rarity.value,
            points=entity.points,
            image_url=entity.image_url,
        ))


class ProgressRevealEvent(BaseModel):
    type: Literal["progress_reveal"] = "progress_reveal"
    goal_id: str
    name: str
    icon: str
    current: int
    target: int
    contributed: bool
    percentage: float

    @classmethod
    def from_progress(cls, progress: GoalProgress) -> ProgressRevealEvent:
        return cls(
            goal_id=progress.goal.id,
            name=progress.goal.name,
            icon=progress.goal.icon,
            current=progress.current,
            target=progress.target,
            contributed=progress.contributed,
            percentage=round(progress.percentage, 2),
        )


class AchievementPayload(BaseModel):
    id: str
    name: str
    description: str
    icon_url: str | None = None


class AchievementRevealEvent(BaseModel):
    type: Literal["achievement_reveal"] = "achievement_reveal"
    achievement: AchievementPayload

    @classmethod
    def from_achievement(cls, achievement: Achievement) -> AchievementRevealEvent:
        return cls(achievement=AchievementPayload(
            id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            icon_url=achievement.icon_url,
        ))


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    kind: str
    message: str


PresentationEvent = Union[
    FlashEvent,
    ResultRevealEvent,
    ProgressRevealEvent,
    AchievementRevealEvent,
    ErrorEvent,
]
