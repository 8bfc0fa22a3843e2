"""Caller session passed into every backend call."""

from dataclasses import dataclass

from .errors import Unauthenticated


@dataclass(frozen=True)
class SessionContext:
    """Bearer credential of the operator driving the engine."""
    token: str | None
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.token.strip())

    def auth_headers(self) -> dict[str, str]:
        """
        Build the Authorization header for a backend request.

        Raises:
            Unauthenticated: If the session has no usable token
        """
        require_session(self)
        return {"Authorization": f"Bearer {self.token.strip()}"}

    def __repr__(self) -> str:
        token = "***" if self.is_authenticated else None
        return f"SessionContext(token={token!r}, user_id={self.user_id!r})"


def require_session(session: SessionContext | None) -> SessionContext:
    """
    Check that a session is present and carries a token.

    Called at the top of every engine operation so that a missing session
    fails before any request is built.

    Raises:
        Unauthenticated: If the session is missing or has no token
    """
    if session is None or not session.is_authenticated:
        raise Unauthenticated("No valid session. Please log in to manage integrations.")
    return session
