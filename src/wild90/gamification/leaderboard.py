"""Leaderboard service: all-time ranking by total score.

Reads go through a short-lived Redis cache when Redis is configured; the
ledger remains the source of truth.
"""

from __future__ import annotations

import json
import logging

from wild90.ledger.client import LedgerClient

logger = logging.getLogger(__name__)

LEADERBOARD_CACHE_KEY = "leaderboard:alltime"


async def get_leaderboard(
    ledger: LedgerClient,
    redis: object | None,
    limit: int = 100,
    cache_ttl: int = 30,
) -> list[dict]:
    """Top ``limit`` users by total score, with 1-based ranks."""
    cache_key = f"{LEADERBOARD_CACHE_KEY}:{limit}"
    if redis is not None:
        try:
            cached = await redis.get(cache_key)  # type: ignore[union-attr]
            if cached:
                return json.loads(cached)
        except Exception:
            logger.warning("Leaderboard cache read failed", exc_info=True)

    profiles = await ledger.leaderboard(limit)
    entries = [
        {
            "rank": index + 1,
            "user_id": profile.user_id,
            "display_name": profile.display_name,
            "total_score": profile.total_score,
            "observation_count": profile.observation_count,
        }
        for index, profile in enumerate(profiles)
    ]

    if redis is not None:
        try:
            await redis.setex(cache_key, cache_ttl, json.dumps(entries))  # type: ignore[union-attr]
        except Exception:
            logger.warning("Leaderboard cache write failed", exc_info=True)
    return entries


async def invalidate_leaderboard(redis: object | None, limit: int = 100) -> None:
    """Drop the cached ranking after a score change."""
    if redis is None:
        return
    try:
        await redis.delete(f"{LEADERBOARD_CACHE_KEY}:{limit}")  # type: ignore[union-attr]
    except Exception:
        logger.warning("Leaderboard cache invalidation failed", exc_info=True)
