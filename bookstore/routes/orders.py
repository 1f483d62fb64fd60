"""
Order endpoints.
"""

from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Response, status

from bookstore.auth import require_user
from bookstore.dependencies import get_order_service, object_id_param, require_body, server_error
from bookstore.models import OrderCreate, OrderResponse, OrderUpdate, ErrorResponse, ValidationErrorResponse
from bookstore.services import OrderService, NoChangesError, update_fields

router = APIRouter(prefix="/orders", tags=["Orders"])

order_id = object_id_param("order")

WRITE_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID format or empty body"},
    401: {"model": ErrorResponse, "description": "Not logged in"},
    412: {"model": ValidationErrorResponse, "description": "Order validation failed"},
}


@router.get("", response_model=List[OrderResponse])
async def list_orders(service: OrderService = Depends(get_order_service)):
    """Get all orders."""
    try:
        return await service.list_all()
    except Exception as e:
        raise server_error("Failed to fetch orders", e) from e


@router.get(
    "/{id}",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def get_order(oid: ObjectId = Depends(order_id), service: OrderService = Depends(get_order_service)):
    """Get a single order by ID."""
    try:
        order = await service.get_by_id(oid)
    except Exception as e:
        raise server_error("Failed to fetch order", e) from e

    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=WRITE_RESPONSES,
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    """
    Create an order.

    - **books**: at least one line, each with a quantity of 1 or more
    - **totalAmount**: stored as sent
    - **status**: defaults to `pending`
    """
    try:
        return await service.create(payload)
    except Exception as e:
        raise server_error("Failed to create order", e) from e


@router.put(
    "/{id}",
    response_model=OrderResponse,
    responses={**WRITE_RESPONSES, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user), Depends(require_body)]
)
async def update_order(
    payload: OrderUpdate,
    oid: ObjectId = Depends(order_id),
    service: OrderService = Depends(get_order_service)
):
    """Update an order. Fields left out of the body keep their stored value."""
    try:
        order = await service.update(oid, update_fields(payload))
    except NoChangesError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")
    except Exception as e:
        raise server_error("Failed to update order", e) from e

    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_user)]
)
async def delete_order(oid: ObjectId = Depends(order_id), service: OrderService = Depends(get_order_service)):
    """Delete an order."""
    try:
        deleted = await service.delete(oid)
    except Exception as e:
        raise server_error("Failed to delete order", e) from e

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
