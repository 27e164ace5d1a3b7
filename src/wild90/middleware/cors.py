"""CORS for the scanner UI."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wild90.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    # Browsers reject credentialed requests against a wildcard origin
    wildcard = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else settings.cors_origins,
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )
