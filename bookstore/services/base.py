"""
Shared CRUD logic for the resource collections.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from bookstore.database import MongoDBManager

logger = structlog.get_logger(__name__)


class DuplicateEntryError(Exception):
    """A write would break a uniqueness rule."""


class NoChangesError(Exception):
    """The store reported that an update modified nothing."""


class PersistenceError(Exception):
    """The store did not acknowledge a write."""


def utcnow() -> datetime:
    """Current UTC time at BSON date precision (milliseconds)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def serialize_document(value: Any) -> Any:
    """
    Make a stored document safe for JSON responses.

    Renames _id to id and turns every ObjectId into its hex string.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize_document(item) for item in value]
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            result["id" if key == "_id" else key] = serialize_document(item)
        return result
    return value


def update_fields(payload: BaseModel) -> Dict[str, Any]:
    """
    Fields an update payload actually sets.

    Absent and null fields are left out so the stored value survives; every
    other value, falsy ones included, is kept.
    """
    provided = payload.model_dump(mode="json", exclude_unset=True)
    return {key: value for key, value in provided.items() if value is not None}


class CollectionService:
    """Base service exposing list/get/create/update/delete over one collection."""

    collection_name = ""
    resource = "document"
    # reported when the unique index rejects a write
    duplicate_message = "Document already exists"

    def __init__(self, db: MongoDBManager):
        self.db = db
        self.collection = db.collection(self.collection_name)

    def prepare_create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Normalise a validated payload before it is inserted."""
        return document

    def prepare_update(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Normalise update fields before they are written."""
        return changes

    async def before_create(self, document: Dict[str, Any]) -> None:
        """Uniqueness pre-checks for inserts. Raise DuplicateEntryError to refuse."""

    async def before_update(self, changes: Dict[str, Any], existing: Dict[str, Any]) -> None:
        """Uniqueness pre-checks for updates. Raise DuplicateEntryError to refuse."""

    async def list_all(self) -> List[Dict[str, Any]]:
        """Return every document in storage order."""
        cursor = self.collection.find()
        documents = await cursor.to_list(length=None)
        return [serialize_document(document) for document in documents]

    async def get_by_id(self, oid: ObjectId) -> Optional[Dict[str, Any]]:
        """Return one document, or None if nothing has that id."""
        document = await self.collection.find_one({"_id": oid})
        if document is None:
            return None
        return serialize_document(document)

    async def create(self, payload: BaseModel) -> Dict[str, Any]:
        """
        Insert a new document built from a validated payload.

        Args:
            payload: Parsed create model

        Returns:
            The stored document including its generated id

        Raises:
            DuplicateEntryError: If a uniqueness rule would be broken
            PersistenceError: If the write was not acknowledged
        """
        document = self.prepare_create(payload.model_dump(mode="json"))
        now = utcnow()
        document["createdAt"] = now
        document["updatedAt"] = now

        await self.before_create(document)

        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning("Duplicate key on insert", resource=self.resource, error=str(e))
            raise DuplicateEntryError(self.duplicate_message) from e

        if not result.acknowledged:
            raise PersistenceError("Database operation not acknowledged")

        document["_id"] = result.inserted_id
        logger.info("Document created", resource=self.resource, id=str(result.inserted_id))
        return serialize_document(document)

    async def update(self, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Merge changes over a stored document.

        Args:
            oid: Document id
            changes: Fields to overwrite, already filtered by update_fields()

        Returns:
            The merged document, or None if nothing has that id

        Raises:
            DuplicateEntryError: If a uniqueness rule would be broken
            NoChangesError: If the store modified nothing
        """
        existing = await self.collection.find_one({"_id": oid})
        if existing is None:
            return None

        changes = self.prepare_update(dict(changes))
        await self.before_update(changes, existing)
        changes["updatedAt"] = utcnow()

        try:
            result = await self.collection.update_one({"_id": oid}, {"$set": changes})
        except DuplicateKeyError as e:
            logger.warning("Duplicate key on update", resource=self.resource, id=str(oid), error=str(e))
            raise DuplicateEntryError(self.duplicate_message) from e

        # deleted since it was read
        if result.matched_count == 0:
            return None
        if result.modified_count == 0:
            raise NoChangesError("No changes detected")

        logger.info("Document updated", resource=self.resource, id=str(oid), fields=sorted(changes))
        return serialize_document({**existing, **changes})

    async def delete(self, oid: ObjectId) -> bool:
        """Remove a document. Returns False if nothing matched."""
        result = await self.collection.delete_one({"_id": oid})
        deleted = result.deleted_count > 0
        if deleted:
            logger.info("Document deleted", resource=self.resource, id=str(oid))
        return deleted
