"""Per-user collection view ("BugDex"): which catalog entries a user has observed."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from wild90.ledger.client import LedgerClient
from wild90.ledger.records import Entity, Rarity


class CollectionStatus(str, Enum):
    ALL = "all"
    COLLECTED = "collected"
    UNCOLLECTED = "uncollected"


@dataclass(frozen=True)
class CollectionView:
    entities: list[Entity]
    collected_ids: frozenset[str]
    collected_count: int
    total_count: int

    @property
    def completion_percentage(self) -> int:
        if self.total_count == 0:
            return 0
        return round(self.collected_count / self.total_count * 100)

    def is_collected(self, entity_id: str) -> bool:
        return entity_id in self.collected_ids


async def load_collection(
    ledger: LedgerClient,
    user_id: str,
    status: CollectionStatus = CollectionStatus.ALL,
    rarity: Rarity | None = None,
) -> CollectionView:
    """Catalog in rarity-then-name order with the user's collected set applied.

    Counts always cover the whole catalog; the filters only narrow ``entities``.
    """
    catalog = await ledger.list_entities()
    observations = await ledger.list_observations(user_id=user_id)
    collected = frozenset(obs.entity_id for obs in observations)

    entities = catalog
    if status is CollectionStatus.COLLECTED:
        entities = [e for e in entities if e.id in collected]
    elif status is CollectionStatus.UNCOLLECTED:
        entities = [e for e in entities if e.id not in collected]
    if rarity is not None:
        entities = [e for e in entities if e.rarity is rarity]

    return CollectionView(
        entities=entities,
        collected_ids=collected,
        collected_count=sum(1 for e in catalog if e.id in collected),
        total_count=len(catalog),
    )
