"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import numpy as np
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from wild90.config import Settings
from wild90.database import build_engine
from wild90.db.base import Base
from wild90.gamification.seed import seed_all
from wild90.ledger.client import SqlLedgerClient


class FakeCapture:
    """Stand-in for cv2.VideoCapture."""

    def __init__(
        self,
        *,
        opened: bool = True,
        frame: np.ndarray | None = None,
        readable: bool = True,
        grab_results: list[bool] | None = None,
    ) -> None:
        self.opened = opened
        self.frame = frame if frame is not None else np.zeros((720, 1280, 3), dtype=np.uint8)
        self.readable = readable
        self.grab_results = list(grab_results or [])
        self.grab_calls = 0
        self.released = False
        self.props: dict[int, float] = {}

    def isOpened(self) -> bool:  # noqa: N802
        return self.opened and not self.released

    def read(self):
        if not self.readable or self.released:
            return False, None
        return True, self.frame

    def grab(self) -> bool:
        self.grab_calls += 1
        if self.grab_results:
            return self.grab_results.pop(0)
        return True

    def set(self, prop_id: int, value: float) -> bool:
        self.props[prop_id] = value
        return True

    def release(self) -> None:
        self.released = True


class CaptureFactory:
    """Maps device index -> FakeCapture (or an exception to raise)."""

    def __init__(self, devices: dict[int, FakeCapture | Exception] | None = None) -> None:
        self.devices = devices if devices is not None else {0: FakeCapture()}
        self.opened: list[int] = []

    def __call__(self, index: int) -> FakeCapture:
        self.opened.append(index)
        device = self.devices.get(index)
        if device is None:
            return FakeCapture(opened=False)
        if isinstance(device, Exception):
            raise device
        return device


@pytest.fixture
def settings() -> Settings:
    """Settings with every delay at zero and no Redis."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        redis_url="",
        log_format="console",
        seed_on_startup=False,
        camera_preferred_index=1,
        camera_fallback_indices=[0],
        camera_retry_delay_seconds=0,
        classify_latency_seconds=0,
        settle_delay_seconds=0,
        flash_visible_seconds=0.2,
        progress_reveal_delay_seconds=0,
        achievement_reveal_delay_seconds=0,
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database with all tables."""
    eng = build_engine("sqlite+aiosqlite://")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ledger(session_factory, db_session) -> SqlLedgerClient:
    """SQL ledger over a seeded catalog (6 entities, 5 achievements)."""
    await seed_all(db_session)
    return SqlLedgerClient(session_factory)


@pytest.fixture
def capture_factory() -> CaptureFactory:
    """Only device 0 exists, so the rear-facing preference falls back."""
    return CaptureFactory()
