"""User session tests."""

import pytest

from wild90.session.identity import UserSession


class TestUserSession:
    def test_starts_signed_out(self):
        session = UserSession()
        assert session.user_id is None
        assert session.signed_in is False

    def test_sign_in_and_out(self):
        session = UserSession()
        session.sign_in("alice")
        assert session.user_id == "alice"
        assert session.signed_in is True

        session.sign_out()
        assert session.signed_in is False

    def test_empty_user_rejected(self):
        with pytest.raises(ValueError, match="must not be empty"):
            UserSession().sign_in("")
