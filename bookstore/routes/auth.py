"""
Login, logout and landing endpoints.
"""

import secrets
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse

from bookstore.auth import (
    OAUTH_STATE_KEY, SESSION_USER_KEY,
    GitHubOAuthClient, OAuthError, current_user, get_oauth_client, get_session
)
from bookstore.models import MessageResponse, SessionUser, StatusResponse
from bookstore.sessions import Session

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Auth"])

LOGIN_SUCCESS_REDIRECT = "/"
LOGIN_FAILURE_REDIRECT = "/api-docs"


@router.get("/", response_model=StatusResponse)
async def index(user: Optional[SessionUser] = Depends(current_user)):
    """Service banner with the caller's login status."""
    return StatusResponse(
        message="Bookstore API is running",
        status="authenticated" if user else "unauthenticated",
        user=user,
        endpoints={
            "login": "/auth/github",
            "logout": "/logout",
            "users": "/users",
            "books": "/books",
            "orders": "/orders",
            "reviews": "/reviews",
            "docs": "/api-docs",
        }
    )


@router.get("/login", include_in_schema=False)
async def login():
    return RedirectResponse("/auth/github", status_code=status.HTTP_302_FOUND)


@router.get("/auth/github", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
async def github_login(
    session: Session = Depends(get_session),
    oauth: GitHubOAuthClient = Depends(get_oauth_client)
):
    """Start the GitHub login; redirects to GitHub asking for the user:email scope."""
    state = secrets.token_urlsafe(24)
    session.set(OAUTH_STATE_KEY, state)
    logger.info("GitHub login started")
    return RedirectResponse(oauth.authorization_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/auth/github/callback", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
async def github_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: Session = Depends(get_session),
    oauth: GitHubOAuthClient = Depends(get_oauth_client)
):
    """
    Finish the GitHub login.

    On success the normalised identity is stored in the session and the
    browser goes to `/`; on any failure it goes to the documentation page.
    """
    expected_state = session.pop(OAUTH_STATE_KEY)

    if error or not code:
        logger.warning("GitHub login refused", error=error)
        return RedirectResponse(LOGIN_FAILURE_REDIRECT, status_code=status.HTTP_302_FOUND)

    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        logger.warning("GitHub login state mismatch")
        return RedirectResponse(LOGIN_FAILURE_REDIRECT, status_code=status.HTTP_302_FOUND)

    try:
        user = await oauth.authenticate(code)
    except OAuthError as e:
        logger.error("GitHub login failed", error=str(e))
        return RedirectResponse(LOGIN_FAILURE_REDIRECT, status_code=status.HTTP_302_FOUND)

    session.regenerate()
    session.set(SESSION_USER_KEY, user.model_dump())
    logger.info("GitHub login succeeded", user_id=user.id, username=user.username)
    return RedirectResponse(LOGIN_SUCCESS_REDIRECT, status_code=status.HTTP_302_FOUND)


@router.get("/logout", response_model=MessageResponse)
async def logout(session: Session = Depends(get_session)):
    """Destroy the session and clear its cookie."""
    session.invalidate()
    return MessageResponse(message="Successfully logged out")
