"""Exception handler tests: error kinds map to HTTP status and JSON body."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from wild90.errors import DiffReadFailed, ErrorKind, ProgressComputeFailed
from wild90.middleware.error_handler import STATUS_BY_KIND, setup_error_handlers


def make_app(exc: Exception) -> FastAPI:
    app = FastAPI()
    setup_error_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return app


class TestStatusByKind:
    """Every error kind has an explicit status."""

    def test_all_kinds_mapped(self):
        assert set(STATUS_BY_KIND) == set(ErrorKind)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc,kind",
        [
            (ProgressComputeFailed(), "progress_compute_failed"),
            (DiffReadFailed(), "diff_read_failed"),
        ],
    )
    async def test_reconcile_failures_are_bad_gateway(self, exc, kind):
        transport = ASGITransport(app=make_app(exc))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/boom")

        assert response.status_code == 502
        assert response.json() == {"detail": exc.message, "kind": kind}
