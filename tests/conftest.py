"""
Pytest configuration and shared fixtures.
"""

import copy
import secrets
from typing import Any, Dict, List, Optional, Tuple

import pytest
from bson import ObjectId, decode, encode
from bson.codec_options import CodecOptions
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from bookstore.auth import SESSION_USER_KEY
from bookstore.config import APIConfig
from bookstore.database import REVIEWS, USERS
from bookstore.main import create_app
from bookstore.sessions import sign_session_id

TEST_SECRET = "test-session-secret"

# what a tz-aware motor client hands back
BSON_OPTIONS = CodecOptions(tz_aware=True)


def _round_trip(document: Dict[str, Any]) -> Dict[str, Any]:
    return decode(encode(document), codec_options=BSON_OPTIONS)


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, expected in query.items():
        actual = document.get(key)
        if isinstance(expected, dict) and any(op.startswith("$") for op in expected):
            for op, operand in expected.items():
                if op == "$ne" and actual == operand:
                    return False
                if op == "$gt" and not (actual is not None and actual > operand):
                    return False
        elif actual != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]]):
        self.documents = documents

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        documents = self.documents if length is None else self.documents[:length]
        return [_round_trip(document) for document in documents]


class FakeCollection:
    """
    In-memory stand-in for a motor collection, with optional unique indexes.

    Documents pass through BSON on the way in and out, so datetimes come back
    at millisecond precision as they do from MongoDB.
    """

    def __init__(self, unique: Tuple[Tuple[str, ...], ...] = ()):
        self.documents: List[Dict[str, Any]] = []
        self.unique = unique

    def _check_unique(self, candidate: Dict[str, Any]) -> None:
        for keys in self.unique:
            for document in self.documents:
                if document["_id"] == candidate.get("_id"):
                    continue
                if all(document.get(k) == candidate.get(k) for k in keys):
                    raise DuplicateKeyError(f"E11000 duplicate key error index: {'_'.join(keys)}")

    def find(self, query: Optional[Dict[str, Any]] = None) -> FakeCursor:
        return FakeCursor([d for d in self.documents if _matches(d, query or {})])

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for document in self.documents:
            if _matches(document, query):
                return _round_trip(document)
        return None

    async def insert_one(self, document: Dict[str, Any]) -> InsertOneResult:
        document.setdefault("_id", ObjectId())
        self._check_unique(document)
        self.documents.append(_round_trip(document))
        return InsertOneResult(document["_id"], acknowledged=True)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False) -> UpdateResult:
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                updated = _round_trip({**document, **update.get("$set", {})})
                self._check_unique(updated)
                modified = int(updated != document)
                self.documents[index] = updated
                return UpdateResult({"n": 1, "nModified": modified}, acknowledged=True)
        if upsert:
            document = _round_trip({**query, **update.get("$set", {})})
            self.documents.append(document)
            return UpdateResult({"n": 1, "nModified": 0, "upserted": document["_id"]}, acknowledged=True)
        return UpdateResult({"n": 0, "nModified": 0}, acknowledged=True)

    async def delete_one(self, query: Dict[str, Any]) -> DeleteResult:
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                del self.documents[index]
                return DeleteResult({"n": 1}, acknowledged=True)
        return DeleteResult({"n": 0}, acknowledged=True)

    async def count_documents(self, query: Dict[str, Any]) -> int:
        return len([d for d in self.documents if _matches(d, query)])


class FakeMongoManager:
    """Stands in for MongoDBManager with the same unique indexes."""

    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {
            USERS: FakeCollection(unique=(("email",),)),
            REVIEWS: FakeCollection(unique=(("userId", "bookId"),)),
        }

    def collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    @property
    def sessions(self) -> FakeCollection:
        return self.collection("sessions")

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}


class MemorySessionStore:
    """Session store kept in a dict."""

    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        data = self.sessions.get(session_id)
        return copy.deepcopy(data) if data is not None else None

    async def save(self, session_id: str, data: Dict[str, Any]) -> None:
        self.sessions[session_id] = copy.deepcopy(data)

    async def destroy(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


@pytest.fixture
def test_config():
    """Configuration that does not depend on the environment."""
    return APIConfig(
        session_secret=TEST_SECRET,
        github_client_id="test-client-id",
        github_client_secret="test-client-secret",
        github_callback_url="http://testserver/auth/github/callback",
        environment="development",
        _env_file=None
    )


@pytest.fixture
def fake_db():
    return FakeMongoManager()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def app(test_config, fake_db, session_store):
    """Application wired to in-memory collaborators instead of MongoDB."""
    application = create_app(test_config)
    application.state.database = fake_db
    application.state.session_store = session_store
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Anonymous test client."""
    return TestClient(app)


@pytest.fixture
def github_user():
    return {
        "id": "583231",
        "username": "octocat",
        "displayName": "The Octocat",
        "email": "octocat@github.com",
        "profileUrl": "https://github.com/octocat",
    }


@pytest.fixture
def auth_client(app, session_store, test_config, github_user):
    """Test client carrying a logged in session."""
    session_id = secrets.token_urlsafe(16)
    session_store.sessions[session_id] = {SESSION_USER_KEY: github_user}
    test_client = TestClient(app)
    test_client.cookies.set(
        test_config.session_cookie_name,
        sign_session_id(session_id, test_config.session_secret)
    )
    return test_client
