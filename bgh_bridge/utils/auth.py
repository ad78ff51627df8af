"""
Session cookie authentication dependency.
"""

from typing import Optional
from fastapi import Cookie, Depends, HTTPException, status

from bgh_bridge.dependencies import get_session_store
from bgh_bridge.utils.sessions import SESSION_COOKIE_NAME, Session, SessionStore


def require_session(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    sessions: SessionStore = Depends(get_session_store)
) -> Session:
    """
    Resolve the caller's session from the session cookie.

    Args:
        session_token: Value of the bgh_session cookie
        sessions: Session store (injected)

    Returns:
        Active Session

    Raises:
        HTTPException: If the cookie is missing or the session expired (401)
    """
    session = sessions.get(session_token)

    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "UNAUTHENTICATED",
                "message": "You need to log in to continue."
            }
        )

    return session
