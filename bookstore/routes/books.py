"""
Book endpoints.
"""

from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Response, status

from bookstore.auth import require_user
from bookstore.dependencies import get_book_service, object_id_param, require_body, server_error
from bookstore.models import BookCreate, BookResponse, BookUpdate, ErrorResponse, ValidationErrorResponse
from bookstore.services import BookService, NoChangesError, update_fields

router = APIRouter(prefix="/books", tags=["Books"])

book_id = object_id_param("book")

WRITE_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID format or empty body"},
    401: {"model": ErrorResponse, "description": "Not logged in"},
    412: {"model": ValidationErrorResponse, "description": "Book validation failed"},
}


@router.get("", response_model=List[BookResponse])
async def list_books(service: BookService = Depends(get_book_service)):
    """Get all books."""
    try:
        return await service.list_all()
    except Exception as e:
        raise server_error("Failed to fetch books", e) from e


@router.get(
    "/{id}",
    response_model=BookResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def get_book(oid: ObjectId = Depends(book_id), service: BookService = Depends(get_book_service)):
    """Get a single book by ID."""
    try:
        book = await service.get_by_id(oid)
    except Exception as e:
        raise server_error("Failed to fetch book", e) from e

    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses=WRITE_RESPONSES,
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def create_book(payload: BookCreate, service: BookService = Depends(get_book_service)):
    """
    Create a book.

    - **price**: numeric strings are accepted and stored as numbers
    - **stock**: defaults to 0
    """
    try:
        return await service.create(payload)
    except Exception as e:
        raise server_error("Failed to create book", e) from e


@router.put(
    "/{id}",
    response_model=BookResponse,
    responses={**WRITE_RESPONSES, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def update_book(
    payload: BookUpdate,
    oid: ObjectId = Depends(book_id),
    service: BookService = Depends(get_book_service)
):
    """Update a book. Fields left out of the body keep their stored value."""
    try:
        book = await service.update(oid, update_fields(payload))
    except NoChangesError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")
    except Exception as e:
        raise server_error("Failed to update book", e) from e

    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user)]
)
async def delete_book(oid: ObjectId = Depends(book_id), service: BookService = Depends(get_book_service)):
    """Delete a book."""
    try:
        deleted = await service.delete(oid)
    except Exception as e:
        raise server_error("Failed to delete book", e) from e

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
