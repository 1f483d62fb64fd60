"""
Per-resource services over the MongoDB collections.
"""

from bookstore.services.base import (
    CollectionService, DuplicateEntryError, NoChangesError, PersistenceError,
    serialize_document, update_fields
)
from bookstore.services.books import BookService
from bookstore.services.orders import OrderService
from bookstore.services.reviews import ReviewService
from bookstore.services.users import UserService

__all__ = [
    "CollectionService", "DuplicateEntryError", "NoChangesError", "PersistenceError",
    "serialize_document", "update_fields",
    "BookService", "OrderService", "ReviewService", "UserService",
]
