"""Plain records exchanged between the ledger backend and the scan core.

The core never touches ORM objects; the ledger client converts rows into
these frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Rarity(str, Enum):
    """Catalog rarity tiers, ordered common < uncommon < rare < epic < legendary."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return _RARITY_ORDER.index(self)


_RARITY_ORDER = list(Rarity)


class RuleType(str, Enum):
    OBSERVATION_COUNT = "observation_count"
    ENTITY_TYPE = "entity_type"
    SCORE_THRESHOLD = "score_threshold"
    SPECIAL = "special"


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    scientific_name: str
    rarity: Rarity
    points: int
    description: str | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class ObservationRecord:
    id: str
    user_id: str
    entity_id: str
    observed_at: datetime
    latitude: float | None = None
    longitude: float | None = None
    image_ref: str | None = None


@dataclass(frozen=True)
class ScoreProfile:
    user_id: str
    total_score: int = 0
    observation_count: int = 0
    updated_at: datetime | None = None
    username: str | None = None
    email: str | None = None

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        if self.email:
            return self.email.split("@")[0]
        return "Anonymous"


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    rule_type: RuleType
    rule_value: Any
    icon_url: str | None = None


@dataclass(frozen=True)
class AchievementGrant:
    id: str
    user_id: str
    achievement_id: str
    granted_at: datetime


@dataclass(frozen=True)
class EntityFilter:
    """Catalog query. Empty filter means the whole catalog."""

    name_contains: str | None = None
    rarities: frozenset[Rarity] = field(default_factory=frozenset)
    limit: int | None = None
