"""Sign-in endpoints: tell the scanner who is scanning."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from wild90.dependencies import get_runtime
from wild90.runtime import ScannerRuntime

router = APIRouter(prefix="/api/v1/session", tags=["Session"])


class SignInRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)


class SessionResponse(BaseModel):
    user_id: str | None
    signed_in: bool


@router.get("", response_model=SessionResponse)
async def get_session_state(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    return SessionResponse(user_id=runtime.identity.user_id, signed_in=runtime.identity.signed_in)


@router.post("", response_model=SessionResponse)
async def sign_in(body: SignInRequest, runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    """Switching users mid-presentation drops any pending reveals for the old user."""
    if runtime.identity.user_id != body.user_id:
        runtime.scheduler.cancel_pending()
        runtime.pipeline.dismiss()
    runtime.identity.sign_in(body.user_id)
    return SessionResponse(user_id=body.user_id, signed_in=True)


@router.delete("", response_model=SessionResponse)
async def sign_out(runtime: ScannerRuntime = Depends(get_runtime)):  # noqa: B008
    runtime.scheduler.cancel_pending()
    runtime.pipeline.dismiss()
    runtime.identity.sign_out()
    return SessionResponse(user_id=None, signed_in=False)
