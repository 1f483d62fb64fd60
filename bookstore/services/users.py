"""
User persistence rules.
"""

from typing import Any, Dict

import structlog

from bookstore.database import USERS
from bookstore.services.base import CollectionService, DuplicateEntryError

logger = structlog.get_logger(__name__)


class UserService(CollectionService):
    """
    Users are unique by email, compared without case.
    Emails are stored lower-cased so the unique index enforces that.
    """

    collection_name = USERS
    resource = "user"
    duplicate_message = "Email already exists"

    def prepare_create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        document["email"] = document["email"].lower()
        return document

    def prepare_update(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "email" in changes:
            changes["email"] = changes["email"].lower()
        return changes

    async def before_create(self, document: Dict[str, Any]) -> None:
        if await self.collection.find_one({"email": document["email"]}):
            logger.warning("Duplicate email on create", email=document["email"])
            raise DuplicateEntryError("Email already exists")

    async def before_update(self, changes: Dict[str, Any], existing: Dict[str, Any]) -> None:
        email = changes.get("email")
        if not email or email == existing.get("email"):
            return
        if await self.collection.find_one({"email": email, "_id": {"$ne": existing["_id"]}}):
            logger.warning("Duplicate email on update", email=email)
            raise DuplicateEntryError("Email already in use")
