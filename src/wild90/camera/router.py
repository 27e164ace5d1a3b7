"""Camera lifecycle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from wild90.dependencies import get_runtime
from wild90.runtime import ScannerRuntime

router = APIRouter(prefix="/api/v1/camera", tags=["Camera"])


class CameraStatusResponse(BaseModel):
    attached: bool
    playing: bool
    degraded: bool
    device_index: int | None = None


def _status(runtime: ScannerRuntime) -> CameraStatusResponse:
    return CameraStatusResponse(**runtime.camera.status())


@router.get("", response_model=CameraStatusResponse)
async def camera_status(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    return _status(runtime)


@router.post("/start", response_model=CameraStatusResponse)
async def start_camera(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Open the camera, replacing any device already held."""
    await runtime.camera.acquire()
    return _status(runtime)


@router.post("/stop", response_model=CameraStatusResponse)
async def stop_camera(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    await runtime.camera.release()
    return _status(runtime)


@router.post("/pause", response_model=CameraStatusResponse)
async def pause_camera(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Scan view hidden; the device stays open."""
    runtime.camera.pause()
    return _status(runtime)


@router.post("/resume", response_model=CameraStatusResponse)
async def resume_camera(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Scan view shown again. A failed resume reports ``degraded`` rather than erroring."""
    await runtime.camera.ensure_playing()
    return _status(runtime)
