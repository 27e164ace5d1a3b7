"""Catalog and achievement seed data: the sample bugs and badges the app ships with."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wild90.db.models import AchievementRow, EntityRow

logger = logging.getLogger(__name__)

ENTITY_SEED_DATA: list[dict] = [
    {"name": "Monarch Butterfly", "scientific_name": "Danaus plexippus", "rarity": "common", "points": 10},
    {"name": "Honeybee", "scientific_name": "Apis mellifera", "rarity": "common", "points": 15},
    {"name": "Dragonfly", "scientific_name": "Odonata", "rarity": "uncommon", "points": 25},
    {"name": "Ladybug", "scientific_name": "Coccinellidae", "rarity": "common", "points": 10},
    {"name": "Firefly", "scientific_name": "Lampyridae", "rarity": "uncommon", "points": 30},
    {"name": "Praying Mantis", "scientific_name": "Mantodea", "rarity": "rare", "points": 50},
]

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "name": "First Scan",
        "description": "Scan your first bug!",
        "rule_type": "observation_count",
        "rule_value": 1,
        "sort_order": 1,
    },
    {
        "name": "Bug Collector",
        "description": "Scan 10 different bugs",
        "rule_type": "observation_count",
        "rule_value": 10,
        "sort_order": 2,
    },
    {
        "name": "Master Collector",
        "description": "Scan 50 bugs",
        "rule_type": "observation_count",
        "rule_value": 50,
        "sort_order": 3,
    },
    {
        "name": "High Scorer",
        "description": "Reach 100 points",
        "rule_type": "score_threshold",
        "rule_value": 100,
        "sort_order": 4,
    },
    {
        "name": "Butterfly Lover",
        "description": "Scan 5 butterflies",
        "rule_type": "entity_type",
        "rule_value": {"type": "butterfly", "count": 5},
        "sort_order": 5,
    },
]


async def seed_entities(db: AsyncSession) -> int:
    """Insert catalog entries missing by name. Returns number inserted."""
    existing = set((await db.execute(select(EntityRow.name))).scalars())
    now = datetime.now(timezone.utc)
    inserted = 0
    for entity_data in ENTITY_SEED_DATA:
        if entity_data["name"] in existing:
            continue
        db.add(EntityRow(**entity_data, created_at=now))
        inserted += 1
    await db.commit()
    logger.info("Seeded %d catalog entities", inserted)
    return inserted


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert all achievement definitions by name. Returns number seeded."""
    result = await db.execute(select(AchievementRow))
    by_name = {row.name: row for row in result.scalars()}
    seeded = 0
    for achievement_data in ACHIEVEMENT_SEED_DATA:
        row = by_name.get(achievement_data["name"])
        if row is None:
            db.add(AchievementRow(**achievement_data))
        else:
            row.description = achievement_data["description"]
            row.rule_type = achievement_data["rule_type"]
            row.rule_value = achievement_data["rule_value"]
            row.sort_order = achievement_data["sort_order"]
        seeded += 1
    await db.commit()
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded


async def seed_all(db: AsyncSession) -> None:
    await seed_entities(db)
    await seed_achievements(db)
