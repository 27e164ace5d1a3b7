"""Classification stub.

Stands in for a real image model: waits for a simulated inference time,
then picks a catalog entry uniformly at random. A real classifier plugs in
by implementing ``Classifier``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Protocol

from wild90.camera.session import FrameData
from wild90.errors import LedgerError
from wild90.ledger.client import LedgerClient
from wild90.ledger.records import Entity, EntityFilter

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(self, frame: FrameData) -> Entity | None: ...


class ClassificationStub:
    def __init__(
        self,
        ledger: LedgerClient,
        *,
        latency: float = 1.5,
        page_size: int = 100,
        rng: random.Random | None = None,
    ) -> None:
        self.ledger = ledger
        self.latency = latency
        self.page_size = page_size
        self._rng = rng or random.Random()

    async def classify(self, frame: FrameData) -> Entity | None:
        """Return a catalog entity, or None if the catalog is empty or unreadable."""
        await asyncio.sleep(self.latency)

        try:
            entities = await self.ledger.list_entities(EntityFilter(limit=self.page_size))
        except LedgerError:
            logger.error("Error fetching catalog for classification", exc_info=True)
            return None

        if not entities:
            logger.error("No catalog entities found")
            return None

        return self._rng.choice(entities)
