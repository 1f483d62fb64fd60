"""
Review persistence rules.
"""

from typing import Any, Dict

import structlog
from bson import ObjectId

from bookstore.database import REVIEWS
from bookstore.services.base import CollectionService, DuplicateEntryError

logger = structlog.get_logger(__name__)

DUPLICATE_REVIEW = "Review already exists for this user and book"


class ReviewService(CollectionService):
    """One review per (userId, bookId), backed by a unique compound index."""

    collection_name = REVIEWS
    resource = "review"
    duplicate_message = DUPLICATE_REVIEW

    def prepare_create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        document["userId"] = ObjectId(document["userId"])
        document["bookId"] = ObjectId(document["bookId"])
        return document

    async def before_create(self, document: Dict[str, Any]) -> None:
        existing = await self.collection.find_one(
            {"userId": document["userId"], "bookId": document["bookId"]}
        )
        if existing:
            logger.warning(
                "Duplicate review",
                user_id=str(document["userId"]),
                book_id=str(document["bookId"])
            )
            raise DuplicateEntryError(DUPLICATE_REVIEW)

