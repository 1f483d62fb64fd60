"""
Order persistence rules.
"""

from typing import Any, Dict, List

from bson import ObjectId

from bookstore.database import ORDERS
from bookstore.services.base import CollectionService


def _order_lines(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"bookId": ObjectId(line["bookId"]), "quantity": line["quantity"]} for line in lines]


class OrderService(CollectionService):
    """
    Orders store their references as ObjectIds.

    totalAmount is stored as the caller sent it and is not checked against
    book prices; stock is not decremented.
    """

    collection_name = ORDERS
    resource = "order"

    def prepare_create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        document["userId"] = ObjectId(document["userId"])
        document["books"] = _order_lines(document["books"])
        return document

    def prepare_update(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "userId" in changes:
            changes["userId"] = ObjectId(changes["userId"])
        if "books" in changes:
            changes["books"] = _order_lines(changes["books"])
        return changes
