"""Signed-in user for this client.

Identity itself is handled by an external auth service; the scanner only
needs to know who is scanning. No user means scanning is disabled.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger()


class UserSession:
    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def signed_in(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id must not be empty")
        self._user_id = user_id
        logger.info("session_signed_in", user_id=user_id)

    def sign_out(self) -> None:
        if self._user_id is not None:
            logger.info("session_signed_out", user_id=self._user_id)
        self._user_id = None
