"""
User session endpoints (login / logout / current user).

Users log in with their BGH account credentials; the credentials stay in
the server-side session and are used for every /api/bgh call.
"""

from typing import Optional
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from pydantic import BaseModel

from bgh_bridge.dependencies import get_session_store, get_settings
from bgh_bridge.models.config import Settings
from bgh_bridge.utils.auth import require_session
from bgh_bridge.utils.logging import get_logger
from bgh_bridge.utils.sessions import SESSION_COOKIE_NAME, Session, SessionStore

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth")


class LoginRequest(BaseModel):
    """Request model for /api/auth/login."""
    email: Optional[str] = None
    password: Optional[str] = None


def _cookie_options(settings: Settings, sessions: SessionStore) -> dict:
    return {
        "httponly": True,
        "samesite": "none" if settings.production else "lax",
        "secure": settings.production,
        "path": "/",
        "max_age": int(sessions.ttl_seconds),
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings)
):
    """
    Start a session and set the session cookie.

    Returns:
        dict: {"user": {"email": "..."}}
    """
    email = (request.email or "").strip()
    password = (request.password or "").strip()

    if not email or not password:
        logger.warning(
            "login_missing_credentials",
            has_email=bool(email),
            has_password=bool(password)
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_BODY",
                "message": "A valid email and password are required."
            }
        )

    session = sessions.create(email, password)
    response.set_cookie(SESSION_COOKIE_NAME, session.token, **_cookie_options(settings, sessions))

    logger.info("user_authenticated", email=email)
    return {"user": {"email": email}}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings)
):
    """End the current session (if any) and clear the cookie."""
    session = sessions.get(session_token)
    if session:
        sessions.delete(session.token)
        logger.info("session_terminated", email=session.email)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    options = _cookie_options(settings, sessions)
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path=options["path"],
        secure=options["secure"],
        httponly=options["httponly"],
        samesite=options["samesite"]
    )
    return response


@router.get("/me")
async def current_user(session: Session = Depends(require_session)):
    """
    Return the logged-in user.

    Returns:
        dict: {"user": {"email": "..."}}
    """
    return {"user": {"email": session.email}}
