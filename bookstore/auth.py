"""
GitHub OAuth login and the session-based authentication gate.
"""

from typing import Any, Dict, Optional

import httpx
import structlog
from fastapi import Depends, HTTPException, Request, status

from bookstore.config import APIConfig
from bookstore.models import SessionUser
from bookstore.sessions import Session

logger = structlog.get_logger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"

SESSION_USER_KEY = "user"
OAUTH_STATE_KEY = "oauth_state"


class OAuthError(Exception):
    """The identity provider exchange did not produce an identity."""


def normalize_identity(profile: Dict[str, Any], email: Optional[str] = None) -> SessionUser:
    """
    Reduce a GitHub profile to the identity kept in the session.

    Args:
        profile: Body of GET /user
        email: Primary email, used when the profile hides its address

    Returns:
        SessionUser
    """
    if profile.get("id") is None:
        raise OAuthError("GitHub profile has no id")
    login = profile.get("login")
    return SessionUser(
        id=str(profile["id"]),
        username=login,
        displayName=profile.get("name") or login,
        email=profile.get("email") or email,
        profileUrl=profile.get("html_url")
    )


class GitHubOAuthClient:
    """Authorization-code flow against GitHub."""

    def __init__(self, config: APIConfig):
        self.client_id = config.github_client_id
        self.client_secret = config.github_client_secret
        self.callback_url = config.github_callback_url
        self.scope = config.github_scope
        self.timeout = config.oauth_timeout

    def authorization_url(self, state: str) -> str:
        """URL the browser is sent to in order to start the login."""
        params = {
            "client_id": self.client_id,
            "scope": self.scope,
            "state": state,
        }
        if self.callback_url:
            params["redirect_uri"] = self.callback_url
        return str(httpx.URL(AUTHORIZE_URL, params=params))

    async def authenticate(self, code: str) -> SessionUser:
        """
        Exchange a callback code for the caller's identity.

        Args:
            code: The ``code`` query parameter GitHub sent to the callback

        Returns:
            Normalised SessionUser

        Raises:
            OAuthError: If GitHub refuses the code or cannot be reached
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                access_token = await self._exchange_code(client, code)
                profile = await self._get_json(client, "/user", access_token)

                email = None
                if not profile.get("email"):
                    email = await self._primary_email(client, access_token)

        except httpx.HTTPError as e:
            raise OAuthError(f"GitHub request failed: {e}") from e

        return normalize_identity(profile, email)

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
        }
        if self.callback_url:
            data["redirect_uri"] = self.callback_url

        response = await client.post(TOKEN_URL, data=data, headers={"Accept": "application/json"})
        response.raise_for_status()
        payload = response.json()

        # GitHub reports a bad code with 200 and an error field
        if "error" in payload or not payload.get("access_token"):
            raise OAuthError(payload.get("error_description") or payload.get("error") or "No access token")
        return payload["access_token"]

    async def _get_json(self, client: httpx.AsyncClient, path: str, access_token: str) -> Any:
        response = await client.get(
            f"{API_URL}{path}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/vnd.github+json",
            }
        )
        response.raise_for_status()
        return response.json()

    async def _primary_email(self, client: httpx.AsyncClient, access_token: str) -> Optional[str]:
        emails = await self._get_json(client, "/user/emails", access_token)
        for entry in emails:
            if entry.get("primary") and entry.get("verified"):
                return entry.get("email")
        return None


def get_config(request: Request) -> APIConfig:
    return request.app.state.config


def get_oauth_client(config: APIConfig = Depends(get_config)) -> GitHubOAuthClient:
    return GitHubOAuthClient(config)


def get_session(request: Request) -> Session:
    """The current request's session, attached by SessionMiddleware."""
    session = getattr(request.state, "session", None)
    if session is None:
        raise RuntimeError("SessionMiddleware is not installed")
    return session


def current_user(session: Session = Depends(get_session)) -> Optional[SessionUser]:
    """The logged in identity, or None for anonymous callers."""
    data = session.get(SESSION_USER_KEY)
    if not data:
        return None
    return SessionUser.model_validate(data)


async def require_user(user: Optional[SessionUser] = Depends(current_user)) -> SessionUser:
    """
    Gate for mutating routes.

    Raises:
        HTTPException: 401 when the session is not authenticated
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return user
