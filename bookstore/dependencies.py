"""
FastAPI dependencies shared by the resource routers.
"""

from typing import Any, Callable, Dict

import structlog
from bson import ObjectId
from fastapi import Depends, HTTPException, Path, Request, status

from bookstore.database import MongoDBManager
from bookstore.services import BookService, OrderService, ReviewService, UserService
from bookstore.validation import is_empty_body

logger = structlog.get_logger(__name__)


def get_database(request: Request) -> MongoDBManager:
    """The shared database gateway created in the application lifespan."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return database


def get_user_service(db: MongoDBManager = Depends(get_database)) -> UserService:
    return UserService(db)


def get_book_service(db: MongoDBManager = Depends(get_database)) -> BookService:
    return BookService(db)


def get_order_service(db: MongoDBManager = Depends(get_database)) -> OrderService:
    return OrderService(db)


def get_review_service(db: MongoDBManager = Depends(get_database)) -> ReviewService:
    return ReviewService(db)


def parse_object_id(value: str, resource: str) -> ObjectId:
    """
    Convert a path identifier to an ObjectId.

    Raises:
        HTTPException: 400 if the identifier is not a valid ObjectId
    """
    if not ObjectId.is_valid(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {resource} ID format"
        )
    return ObjectId(value)


def object_id_param(resource: str) -> Callable[..., ObjectId]:
    """Build a dependency that reads and checks the ``id`` path parameter."""

    def dependency(id: str = Path(..., description=f"{resource.capitalize()} identifier")) -> ObjectId:
        return parse_object_id(id, resource)

    return dependency


async def require_body(request: Request) -> Dict[str, Any]:
    """
    Refuse requests whose JSON body is missing or an empty object.

    Raises:
        HTTPException: 400 when there is nothing to write
    """
    try:
        body = await request.json()
    except ValueError:
        body = None
    if is_empty_body(body):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body is empty"
        )
    return body


def server_error(message: str, error: Exception) -> HTTPException:
    """
    Log an infrastructure failure and build the 500 to raise for it.

    Raise the result ``from error``; the exception handler shows the cause
    to callers outside production.
    """
    logger.error(message, error=str(error), error_type=type(error).__name__)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message
    )
