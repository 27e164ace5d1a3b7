"""Camera session manager tests: device selection, error mapping, resume, capture."""

from __future__ import annotations

import asyncio
import base64
import threading

import cv2
import numpy as np
import pytest

from tests.conftest import CaptureFactory, FakeCapture
from wild90.camera.session import CameraSessionManager, FrameData
from wild90.errors import (
    CameraUnavailable,
    CaptureFailed,
    ErrorKind,
    NoDevice,
    NotReady,
    PermissionDenied,
)


def make_manager(factory: CaptureFactory, **kwargs) -> CameraSessionManager:
    kwargs.setdefault("retry_delay", 0)
    return CameraSessionManager(
        preferred_index=1,
        fallback_indices=(0, 2),
        capture_factory=factory,
        **kwargs,
    )


class TestAcquire:
    """Test device selection on acquire."""

    @pytest.mark.asyncio
    async def test_prefers_rear_facing_device(self):
        rear = FakeCapture()
        factory = CaptureFactory({0: FakeCapture(), 1: rear})
        camera = make_manager(factory)

        index = await camera.acquire()

        assert index == 1
        assert factory.opened == [1]
        assert camera.attached is True
        assert camera.playing is True

    @pytest.mark.asyncio
    async def test_falls_back_when_preferred_missing(self):
        factory = CaptureFactory({0: FakeCapture()})
        camera = make_manager(factory)

        index = await camera.acquire()

        assert index == 0
        assert factory.opened == [1, 0]
        assert camera.device_index == 0

    @pytest.mark.asyncio
    async def test_requests_frame_size(self):
        device = FakeCapture()
        camera = make_manager(CaptureFactory({1: device}), frame_width=1920, frame_height=1080)
        await camera.acquire()
        assert device.props[cv2.CAP_PROP_FRAME_WIDTH] == 1920
        assert device.props[cv2.CAP_PROP_FRAME_HEIGHT] == 1080

    @pytest.mark.asyncio
    async def test_no_device_anywhere(self):
        camera = make_manager(CaptureFactory({}))
        with pytest.raises(NoDevice) as exc_info:
            await camera.acquire()
        assert exc_info.value.kind is ErrorKind.NO_DEVICE
        assert camera.attached is False

    @pytest.mark.asyncio
    async def test_permission_denied_wins(self):
        factory = CaptureFactory({1: PermissionError("denied")})
        camera = make_manager(factory)
        with pytest.raises(PermissionDenied):
            await camera.acquire()

    @pytest.mark.asyncio
    async def test_busy_device_is_unavailable(self):
        factory = CaptureFactory({1: OSError("device busy")})
        camera = make_manager(factory)
        with pytest.raises(CameraUnavailable):
            await camera.acquire()

    @pytest.mark.asyncio
    async def test_reacquire_releases_previous_device(self):
        first = FakeCapture()
        factory = CaptureFactory({1: first})
        camera = make_manager(factory)
        await camera.acquire()

        second = FakeCapture()
        factory.devices[1] = second
        await camera.acquire()

        assert first.released is True
        assert second.released is False
        assert camera.attached is True


class TestRelease:
    """Test release semantics."""

    @pytest.mark.asyncio
    async def test_release_detaches(self):
        device = FakeCapture()
        camera = make_manager(CaptureFactory({1: device}))
        await camera.acquire()

        await camera.release()

        assert device.released is True
        assert camera.attached is False
        assert camera.playing is False

    @pytest.mark.asyncio
    async def test_release_without_device_is_noop(self):
        camera = make_manager(CaptureFactory({}))
        await camera.release()
        await camera.release()
        assert camera.attached is False


class TestEnsurePlaying:
    """Test resume after the scan view is hidden and shown again."""

    @pytest.mark.asyncio
    async def test_detached_is_noop(self):
        factory = CaptureFactory({1: FakeCapture()})
        camera = make_manager(factory)
        assert await camera.ensure_playing() is False
        assert factory.opened == []

    @pytest.mark.asyncio
    async def test_already_playing(self):
        device = FakeCapture()
        camera = make_manager(CaptureFactory({1: device}))
        await camera.acquire()
        assert await camera.ensure_playing() is True
        assert device.grab_calls == 0

    @pytest.mark.asyncio
    async def test_resume_does_not_reopen_device(self):
        device = FakeCapture()
        factory = CaptureFactory({1: device})
        camera = make_manager(factory)
        await camera.acquire()
        camera.pause()
        assert camera.playing is False

        assert await camera.ensure_playing() is True

        assert factory.opened == [1]
        assert device.grab_calls == 1
        assert camera.playing is True

    @pytest.mark.asyncio
    async def test_single_retry_then_success(self):
        device = FakeCapture(grab_results=[False, True])
        camera = make_manager(CaptureFactory({1: device}))
        await camera.acquire()
        camera.pause()

        assert await camera.ensure_playing() is True
        assert device.grab_calls == 2
        assert camera.degraded is False

    @pytest.mark.asyncio
    async def test_second_failure_marks_degraded(self):
        device = FakeCapture(grab_results=[False, False])
        camera = make_manager(CaptureFactory({1: device}))
        await camera.acquire()
        camera.pause()

        assert await camera.ensure_playing() is False
        assert device.grab_calls == 2
        assert camera.degraded is True
        assert camera.attached is True
        assert camera.status()["degraded"] is True


class TestCaptureFrame:
    """Test still-frame capture."""

    @pytest.mark.asyncio
    async def test_not_ready_without_device(self):
        camera = make_manager(CaptureFactory({}))
        with pytest.raises(NotReady):
            await camera.capture_frame()

    @pytest.mark.asyncio
    async def test_read_failure(self):
        camera = make_manager(CaptureFactory({1: FakeCapture(readable=False)}))
        await camera.acquire()
        with pytest.raises(CaptureFailed):
            await camera.capture_frame()

    @pytest.mark.asyncio
    async def test_encodes_jpeg_at_native_size(self):
        frame = np.full((480, 640, 3), 127, dtype=np.uint8)
        camera = make_manager(CaptureFactory({1: FakeCapture(frame=frame)}))
        await camera.acquire()

        captured = await camera.capture_frame()

        assert (captured.width, captured.height) == (640, 480)
        assert captured.jpeg[:2] == b"\xff\xd8"
        decoded = cv2.imdecode(np.frombuffer(captured.jpeg, dtype=np.uint8), cv2.IMREAD_COLOR)
        assert decoded.shape == (480, 640, 3)

    def test_data_url(self):
        frame = FrameData(jpeg=b"\xff\xd8abc", width=1, height=1)
        url = frame.as_data_url()
        assert url.startswith("data:image/jpeg;base64,")
        assert base64.b64decode(url.split(",", 1)[1]) == b"\xff\xd8abc"


class BlockingCapture(FakeCapture):
    """Holds read() and grab() in the worker thread until ``proceed`` is set."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.proceed = threading.Event()
        self.released_while_busy = False

    def _block(self) -> None:
        self.entered.set()
        self.proceed.wait(timeout=5)
        self.released_while_busy = self.released

    def read(self):
        self._block()
        return super().read()

    def grab(self) -> bool:
        self._block()
        return super().grab()


class TestDeviceExclusivity:
    """A device is never released while a worker thread is still using it."""

    @pytest.mark.asyncio
    async def test_release_waits_for_in_progress_read(self):
        device = BlockingCapture()
        camera = make_manager(CaptureFactory({1: device}))
        await camera.acquire()

        capture = asyncio.create_task(camera.capture_frame())
        assert await asyncio.to_thread(device.entered.wait, 5)
        release = asyncio.create_task(camera.release())
        await asyncio.sleep(0.05)

        assert device.released is False
        device.proceed.set()
        frame = await capture
        await release

        assert frame.width == 1280
        assert device.released_while_busy is False
        assert device.released is True

    @pytest.mark.asyncio
    async def test_reacquire_waits_for_in_progress_resume(self):
        device = BlockingCapture()
        factory = CaptureFactory({1: device})
        camera = make_manager(factory)
        await camera.acquire()
        camera.pause()

        resume = asyncio.create_task(camera.ensure_playing())
        assert await asyncio.to_thread(device.entered.wait, 5)
        factory.devices[1] = FakeCapture()
        reacquire = asyncio.create_task(camera.acquire())
        await asyncio.sleep(0.05)

        assert device.released is False
        device.proceed.set()
        await resume
        await reacquire

        assert device.released_while_busy is False
        assert device.released is True
        assert camera.playing is True

    @pytest.mark.asyncio
    async def test_resume_skips_swapped_device(self):
        device = FakeCapture(grab_results=[False])
        factory = CaptureFactory({1: device})
        camera = make_manager(factory, retry_delay=0.05)
        await camera.acquire()
        camera.pause()

        resume = asyncio.create_task(camera.ensure_playing())
        await asyncio.sleep(0.01)
        await camera.release()

        assert await resume is False
        assert device.grab_calls <= 1
        assert camera.degraded is False
