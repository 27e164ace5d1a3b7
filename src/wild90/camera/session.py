"""Camera session manager.

Owns the one video capture device for the lifetime of the app. The device
stays open while the scan view is hidden, so returning to the view only has
to resume playback, never re-open hardware.

Blocking OpenCV calls run in worker threads via ``asyncio.to_thread``; all
state changes happen on the event loop.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import cv2
import structlog

from wild90.errors import (
    CameraError,
    CameraUnavailable,
    CaptureFailed,
    NoDevice,
    NotReady,
    PermissionDenied,
)

logger = structlog.get_logger()


class CaptureDevice(Protocol):
    """The subset of ``cv2.VideoCapture`` the manager relies on."""

    def isOpened(self) -> bool: ...  # noqa: N802

    def read(self) -> tuple[bool, Any]: ...

    def grab(self) -> bool: ...

    def set(self, prop_id: int, value: float) -> bool: ...

    def release(self) -> None: ...


CaptureFactory = Callable[[int], CaptureDevice]


def open_video_capture(index: int) -> CaptureDevice:
    return cv2.VideoCapture(index)


@dataclass(frozen=True)
class FrameData:
    """One still frame, JPEG-encoded at the device's native size."""

    jpeg: bytes
    width: int
    height: int
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_data_url(self) -> str:
        return "data:image/jpeg;base64," + base64.b64encode(self.jpeg).decode("ascii")


class CameraSessionManager:
    """acquire / release / ensure_playing / capture_frame over one capture device."""

    def __init__(
        self,
        *,
        preferred_index: int = 1,
        fallback_indices: Sequence[int] = (0,),
        frame_width: int = 1280,
        frame_height: int = 720,
        retry_delay: float = 0.3,
        jpeg_quality: int = 90,
        capture_factory: CaptureFactory = open_video_capture,
    ) -> None:
        self.preferred_index = preferred_index
        self.fallback_indices = [i for i in fallback_indices if i != preferred_index]
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.retry_delay = retry_delay
        self.jpeg_quality = jpeg_quality
        self._capture_factory = capture_factory
        self._device: CaptureDevice | None = None
        self._device_index: int | None = None
        self._playing = False
        self._degraded = False
        self._lock = asyncio.Lock()

    @property
    def attached(self) -> bool:
        return self._device is not None

    @property
    def playing(self) -> bool:
        return self._device is not None and self._playing

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def device_index(self) -> int | None:
        return self._device_index

    def status(self) -> dict[str, object]:
        return {
            "attached": self.attached,
            "playing": self.playing,
            "degraded": self.degraded,
            "device_index": self.device_index,
        }

    # ── Lifecycle ──

    async def _open(self, index: int) -> CaptureDevice:
        try:
            device = await asyncio.to_thread(self._capture_factory, index)
        except PermissionError as exc:
            raise PermissionDenied() from exc
        except (cv2.error, OSError) as exc:
            raise CameraUnavailable() from exc

        if not device.isOpened():
            device.release()
            raise NoDevice()

        device.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        device.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)
        return device

    async def acquire(self) -> int:
        """Open the preferred (rear-facing) device, else any available one.

        Any previously held device is released first. Returns the index opened.
        """
        async with self._lock:
            await self._release_locked()

            failures: list[CameraError] = []
            for index in [self.preferred_index, *self.fallback_indices]:
                try:
                    device = await self._open(index)
                except CameraError as exc:
                    if index == self.preferred_index:
                        logger.info("camera_preferred_unavailable", index=index, kind=exc.kind.value)
                    failures.append(exc)
                    continue

                self._device = device
                self._device_index = index
                self._playing = True
                self._degraded = False
                logger.info("camera_acquired", index=index)
                return index

            error = _pick_error(failures)
            logger.warning("camera_acquire_failed", kind=error.kind.value)
            raise error

    async def release(self) -> None:
        """Stop and detach the device. Safe to call when nothing is attached."""
        async with self._lock:
            await self._release_locked()

    async def _release_locked(self) -> None:
        device, self._device = self._device, None
        self._device_index = None
        self._playing = False
        self._degraded = False
        if device is not None:
            await asyncio.to_thread(device.release)
            logger.info("camera_released")

    def pause(self) -> None:
        """The consuming view was hidden; keep the device, stop treating it as live."""
        if self._device is not None:
            self._playing = False

    async def _resume(self, device: CaptureDevice) -> bool | None:
        """One grab attempt under the lock. None when the device was swapped out."""
        async with self._lock:
            if self._device is not device:
                return None
            try:
                return bool(await asyncio.to_thread(device.grab))
            except cv2.error:
                return False

    async def ensure_playing(self) -> bool:
        """Resume a paused device without re-opening it.

        One retry after ``retry_delay``; if that also fails the session is
        marked degraded and False is returned. No-op (False) when detached.
        """
        device = self._device
        if device is None:
            return False
        if self._playing:
            return True

        resumed = await self._resume(device)
        if resumed is None:
            return False
        if not resumed:
            logger.info("camera_resume_retry", delay=self.retry_delay)
            await asyncio.sleep(self.retry_delay)
            resumed = await self._resume(device)
            if resumed is None:
                return False
            if not resumed:
                self._degraded = True
                logger.warning("camera_playback_degraded", index=self._device_index)
                return False

        self._playing = True
        self._degraded = False
        return True

    # ── Capture ──

    async def capture_frame(self) -> FrameData:
        """Grab the current frame and encode it as JPEG at native size."""
        # release() and acquire() wait for an in-progress read to finish
        async with self._lock:
            device = self._device
            if device is None:
                raise NotReady()
            ok, frame = await asyncio.to_thread(device.read)

        if not ok or frame is None:
            raise CaptureFailed()

        height, width = frame.shape[:2]
        encoded, buffer = cv2.imencode(
            ".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        )
        if not encoded:
            raise CaptureFailed()
        return FrameData(jpeg=buffer.tobytes(), width=int(width), height=int(height))


def _pick_error(failures: list[CameraError]) -> CameraError:
    """Most specific error across all devices tried."""
    for failure in failures:
        if isinstance(failure, PermissionDenied):
            return failure
    if failures and all(isinstance(f, NoDevice) for f in failures):
        return failures[0]
    for failure in failures:
        if isinstance(failure, CameraUnavailable):
            return failure
    return CameraUnavailable()
