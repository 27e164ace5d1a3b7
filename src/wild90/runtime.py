"""Session-scoped components shared by every request.

One camera, one pipeline and one scheduler exist per running client; they
are built once in the app lifespan and hung off ``app.state.runtime``.
"""

from __future__ import annotations

from dataclasses import dataclass

from wild90.camera.session import CameraSessionManager, CaptureFactory, open_video_capture
from wild90.config import Settings
from wild90.gamification.community import CommunityProgressCalculator
from wild90.ledger.client import LedgerClient
from wild90.notifications.publisher import EventPublisher
from wild90.notifications.scheduler import NotificationScheduler
from wild90.scan.classifier import ClassificationStub, Classifier
from wild90.scan.pipeline import ScanPipeline
from wild90.session.identity import UserSession
from wild90.ws.manager import ConnectionManager, manager as default_manager


@dataclass
class ScannerRuntime:
    settings: Settings
    ledger: LedgerClient
    redis: object | None
    identity: UserSession
    camera: CameraSessionManager
    scheduler: NotificationScheduler
    progress: CommunityProgressCalculator
    pipeline: ScanPipeline

    async def shutdown(self) -> None:
        self.scheduler.cancel_pending()
        await self.camera.release()


def build_runtime(
    settings: Settings,
    ledger: LedgerClient,
    redis: object | None = None,
    *,
    capture_factory: CaptureFactory = open_video_capture,
    classifier: Classifier | None = None,
    ws_manager: ConnectionManager = default_manager,
) -> ScannerRuntime:
    identity = UserSession()
    camera = CameraSessionManager(
        preferred_index=settings.camera_preferred_index,
        fallback_indices=settings.camera_fallback_indices,
        frame_width=settings.camera_frame_width,
        frame_height=settings.camera_frame_height,
        retry_delay=settings.camera_retry_delay_seconds,
        jpeg_quality=settings.camera_jpeg_quality,
        capture_factory=capture_factory,
    )
    scheduler = NotificationScheduler(
        EventPublisher(redis, ws_manager),
        flash_visible=settings.flash_visible_seconds,
        progress_delay=settings.progress_reveal_delay_seconds,
        achievement_delay=settings.achievement_reveal_delay_seconds,
    )
    progress = CommunityProgressCalculator(ledger)
    classifier = classifier or ClassificationStub(
        ledger,
        latency=settings.classify_latency_seconds,
        page_size=settings.catalog_page_size,
    )
    pipeline = ScanPipeline(
        camera,
        classifier,
        ledger,
        progress,
        scheduler,
        identity,
        settle_delay=settings.settle_delay_seconds,
    )
    return ScannerRuntime(
        settings=settings,
        ledger=ledger,
        redis=redis,
        identity=identity,
        camera=camera,
        scheduler=scheduler,
        progress=progress,
        pipeline=pipeline,
    )
