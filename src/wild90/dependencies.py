"""Shared FastAPI dependencies."""

from fastapi import Depends, HTTPException, Request

from wild90.runtime import ScannerRuntime


def get_runtime(request: Request) -> ScannerRuntime:
    """The runtime built in the app lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Scanner is not running")
    return runtime


def get_current_user_id(runtime: ScannerRuntime = Depends(get_runtime)) -> str:  # noqa: B008
    """Signed-in user id, or 401."""
    user_id = runtime.identity.user_id
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user_id
