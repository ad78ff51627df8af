"""
In-memory session store for end users.
Sessions hold the BGH credentials a user logged in with; they are lost on
restart.
"""

import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from bgh_bridge.models.credentials import Credentials

SESSION_COOKIE_NAME = "bgh_session"
SESSION_TTL_SECONDS = 60 * 60 * 12  # 12 hours


@dataclass
class Session:
    """One logged-in user."""
    token: str
    email: str
    password: str = field(repr=False)
    created_at: float = 0.0
    expires_at: float = 0.0

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.email, self.password)


class SessionStore:
    """
    Manages user sessions keyed by an opaque cookie token.

    Expiry slides forward on every successful lookup.
    """

    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize session store.

        Args:
            ttl_seconds: Session lifetime after last use
            clock: Time source in seconds (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, email: str, password: str) -> Session:
        """
        Start a session for a user.

        Args:
            email: BGH account email
            password: BGH account password

        Returns:
            The new Session (its token goes in the cookie)
        """
        self.purge_expired()

        now = self._clock()
        session = Session(
            token=secrets.token_urlsafe(32),
            email=email,
            password=password,
            created_at=now,
            expires_at=now + self.ttl_seconds
        )
        self._sessions[session.token] = session
        return session

    def get(self, token: Optional[str]) -> Optional[Session]:
        """
        Look up a live session and extend its expiry.

        Returns:
            Session, or None if unknown or expired
        """
        if not token:
            return None

        session = self._sessions.get(token)
        if session is None:
            return None

        now = self._clock()
        if session.expires_at <= now:
            del self._sessions[token]
            return None

        session.expires_at = now + self.ttl_seconds
        return session

    def delete(self, token: str) -> None:
        """Remove a session (logout)."""
        self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        """
        Drop every expired session.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [token for token, s in self._sessions.items() if s.expires_at <= now]
        for token in expired:
            del self._sessions[token]
        return len(expired)
