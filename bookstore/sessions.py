"""
Server-side sessions.

The browser only holds an opaque, HMAC-signed session id; the session data
lives in the MongoDB ``sessions`` collection and expires through a TTL index.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorCollection
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = structlog.get_logger(__name__)


def sign_session_id(session_id: str, secret: str) -> str:
    """Return the cookie value for a session id."""
    signature = hmac.new(secret.encode(), session_id.encode(), hashlib.sha256).hexdigest()
    return f"{session_id}.{signature}"


def unsign_session_id(cookie_value: Optional[str], secret: str) -> Optional[str]:
    """Return the session id from a cookie value, or None if it was tampered with."""
    if not cookie_value:
        return None
    session_id, _, signature = cookie_value.rpartition(".")
    if not session_id or not signature:
        return None
    expected = hmac.new(secret.encode(), session_id.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature):
        return None
    return session_id


class Session:
    """Mutable per-request view of one session's data."""

    def __init__(self, session_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.id = session_id
        self.data: Dict[str, Any] = dict(data or {})
        self.modified = False
        self.invalidated = False
        self.previous_id: Optional[str] = None

    @property
    def is_new(self) -> bool:
        return self.id is None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def pop(self, key: str, default: Any = None) -> Any:
        if key in self.data:
            self.modified = True
        return self.data.pop(key, default)

    def regenerate(self) -> None:
        """Keep the data but move it to a fresh id, retiring the old one."""
        if self.id is not None:
            self.previous_id = self.id
        self.id = None
        self.modified = True

    def invalidate(self) -> None:
        """Drop all data; the stored session and the cookie are removed."""
        self.data.clear()
        self.invalidated = True


class MongoSessionStore:
    """Session persistence in a MongoDB collection."""

    def __init__(self, collection: AsyncIOMotorCollection, ttl_seconds: int):
        self.collection = collection
        self.ttl_seconds = ttl_seconds

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return stored session data, or None if missing or expired."""
        document = await self.collection.find_one({
            "_id": session_id,
            "expiresAt": {"$gt": datetime.now(timezone.utc)}
        })
        if document is None:
            return None
        return document.get("data", {})

    async def save(self, session_id: str, data: Dict[str, Any]) -> None:
        """Create or replace a session and push its expiry forward."""
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        await self.collection.update_one(
            {"_id": session_id},
            {"$set": {"data": data, "expiresAt": expires_at}},
            upsert=True
        )

    async def destroy(self, session_id: str) -> None:
        await self.collection.delete_one({"_id": session_id})


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Attach a Session to every request as ``request.state.session``.

    The store is looked up on ``app.state.session_store`` at request time,
    since the database only connects during the application lifespan.
    """

    def __init__(
        self,
        app,
        secret: str,
        cookie_name: str = "bookstore.sid",
        max_age: int = 24 * 60 * 60,
        same_site: str = "lax",
        https_only: bool = False
    ):
        super().__init__(app)
        self.secret = secret
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.same_site = same_site
        self.https_only = https_only

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        store = getattr(request.app.state, "session_store", None)

        session = Session()
        session_id = unsign_session_id(request.cookies.get(self.cookie_name), self.secret)
        if store is not None and session_id:
            data = await store.load(session_id)
            if data is not None:
                session = Session(session_id, data)
        request.state.session = session

        response = await call_next(request)

        if store is None:
            return response

        if session.invalidated:
            if not session.is_new:
                await store.destroy(session.id)
                logger.info("Session destroyed")
            response.delete_cookie(
                self.cookie_name,
                path="/",
                secure=self.https_only,
                httponly=True,
                samesite=self.same_site
            )
        elif session.modified:
            if session.previous_id:
                await store.destroy(session.previous_id)
            if session.is_new:
                session.id = secrets.token_urlsafe(32)
            await store.save(session.id, session.data)
            response.set_cookie(
                self.cookie_name,
                sign_session_id(session.id, self.secret),
                max_age=self.max_age,
                path="/",
                secure=self.https_only,
                httponly=True,
                samesite=self.same_site
            )
        return response
