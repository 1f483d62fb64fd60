"""
User endpoints.
"""

from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Response, status

from bookstore.auth import require_user
from bookstore.dependencies import get_user_service, object_id_param, require_body, server_error
from bookstore.models import UserCreate, UserResponse, UserUpdate, ErrorResponse, ValidationErrorResponse
from bookstore.services import UserService, DuplicateEntryError, NoChangesError, update_fields

router = APIRouter(prefix="/users", tags=["Users"])

user_id = object_id_param("user")

WRITE_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID format or empty body"},
    401: {"model": ErrorResponse, "description": "Not logged in"},
    412: {"model": ValidationErrorResponse, "description": "User validation failed"},
}


@router.get("", response_model=List[UserResponse])
async def list_users(service: UserService = Depends(get_user_service)):
    """Get all users."""
    try:
        return await service.list_all()
    except Exception as e:
        raise server_error("Failed to fetch users", e) from e


@router.get(
    "/{id}",
    response_model=UserResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def get_user(oid: ObjectId = Depends(user_id), service: UserService = Depends(get_user_service)):
    """Get a single user by ID."""
    try:
        user = await service.get_by_id(oid)
    except Exception as e:
        raise server_error("Failed to fetch user", e) from e

    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**WRITE_RESPONSES, 409: {"model": ErrorResponse}},
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def create_user(payload: UserCreate, service: UserService = Depends(get_user_service)):
    """
    Create a user.

    - **email**: stored lower-cased; must not already be used, ignoring case
    - **role**: `user` or `admin`, defaults to `user`
    """
    try:
        return await service.create(payload)
    except DuplicateEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        raise server_error("Failed to create user", e) from e


@router.put(
    "/{id}",
    response_model=UserResponse,
    responses={**WRITE_RESPONSES, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def update_user(
    payload: UserUpdate,
    oid: ObjectId = Depends(user_id),
    service: UserService = Depends(get_user_service)
):
    """Update a user. Fields left out of the body keep their stored value."""
    try:
        user = await service.update(oid, update_fields(payload))
    except DuplicateEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except NoChangesError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")
    except Exception as e:
        raise server_error("Failed to update user", e) from e

    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user)]
)
async def delete_user(oid: ObjectId = Depends(user_id), service: UserService = Depends(get_user_service)):
    """Delete a user."""
    try:
        deleted = await service.delete(oid)
    except Exception as e:
        raise server_error("Failed to delete user", e) from e

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
