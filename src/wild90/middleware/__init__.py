"""Middleware registration."""

from fastapi import FastAPI

from wild90.config import Settings
from wild90.middleware.cors import setup_cors
from wild90.middleware.error_handler import setup_error_handlers
from wild90.middleware.logging import setup_logging
from wild90.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Logging first, then handlers, then middleware.

    Starlette runs middleware in reverse-add order, so CORS (added last) wraps
    the error responses produced further in.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
