"""
Book persistence rules.
"""

from bookstore.database import BOOKS
from bookstore.services.base import CollectionService


class BookService(CollectionService):
    """Books need no normalisation beyond what the rule set coerces."""

    collection_name = BOOKS
    resource = "book"
