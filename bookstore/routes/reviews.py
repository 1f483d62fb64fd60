"""
Review endpoints.
"""

from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Response, status

from bookstore.auth import require_user
from bookstore.dependencies import get_review_service, object_id_param, require_body, server_error
from bookstore.models import ReviewCreate, ReviewResponse, ReviewUpdate, ErrorResponse, ValidationErrorResponse
from bookstore.services import ReviewService, DuplicateEntryError, NoChangesError, update_fields

router = APIRouter(prefix="/reviews", tags=["Reviews"])

review_id = object_id_param("review")

WRITE_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID format or empty body"},
    401: {"model": ErrorResponse, "description": "Not logged in"},
    412: {"model": ValidationErrorResponse, "description": "Review validation failed"},
}


@router.get("", response_model=List[ReviewResponse])
async def list_reviews(service: ReviewService = Depends(get_review_service)):
    """Get all reviews."""
    try:
        return await service.list_all()
    except Exception as e:
        raise server_error("Failed to fetch reviews", e) from e


@router.get(
    "/{id}",
    response_model=ReviewResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def get_review(oid: ObjectId = Depends(review_id), service: ReviewService = Depends(get_review_service)):
    """Get a single review by ID."""
    try:
        review = await service.get_by_id(oid)
    except Exception as e:
        raise server_error("Failed to fetch review", e) from e

    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


@router.post(
    "",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**WRITE_RESPONSES, 409: {"model": ErrorResponse}},
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def create_review(payload: ReviewCreate, service: ReviewService = Depends(get_review_service)):
    """
    Create a review.

    - **rating**: whole number from 1 to 5
    - **comment**: optional, up to 500 characters
    """
    try:
        return await service.create(payload)
    except DuplicateEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        raise server_error("Failed to create review", e) from e


@router.put(
    "/{id}",
    response_model=ReviewResponse,
    responses={**WRITE_RESPONSES, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def update_review(
    payload: ReviewUpdate,
    oid: ObjectId = Depends(review_id),
    service: ReviewService = Depends(get_review_service)
):
    """Update a review. Fields left out of the body keep their stored value."""
    try:
        review = await service.update(oid, update_fields(payload))
    except NoChangesError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")
    except Exception as e:
        raise server_error("Failed to update review", e) from e

    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


@router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user)]
)
async def delete_review(oid: ObjectId = Depends(review_id), service: ReviewService = Depends(get_review_service)):
    """Delete a review."""
    try:
        deleted = await service.delete(oid)
    except Exception as e:
        raise server_error("Failed to delete review", e) from e

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
