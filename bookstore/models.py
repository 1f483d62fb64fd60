"""
API models and schemas for the bookstore.

The *Create / *Update models are the validation rule sets for incoming
payloads; the *Response models describe what the API returns.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("must be a 24 character hex ObjectId")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]


class UserRole(str, Enum):
    """User role enumeration."""
    USER = "user"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    """Order lifecycle status."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PayloadModel(BaseModel):
    """Base for request payload rule sets."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


# Users

class UserCreate(PayloadModel):
    """Rules for creating a user."""
    firstName: str = Field(..., min_length=1, description="First name")
    lastName: str = Field(..., min_length=1, description="Last name")
    email: EmailStr = Field(..., description="Email address, unique ignoring case")
    role: UserRole = Field(UserRole.USER, description="User role")


class UserUpdate(PayloadModel):
    """Rules for updating a user. Absent or null fields keep their value."""
    firstName: Optional[str] = Field(None, min_length=1, description="First name")
    lastName: Optional[str] = Field(None, min_length=1, description="Last name")
    email: Optional[EmailStr] = Field(None, description="Email address")
    role: Optional[UserRole] = Field(None, description="User role")


class UserResponse(BaseModel):
    """User response model."""
    id: str = Field(..., description="Unique user identifier")
    firstName: str = Field(..., description="First name")
    lastName: str = Field(..., description="Last name")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(UserRole.USER, description="User role")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp")
    updatedAt: Optional[datetime] = Field(None, description="Last update timestamp")


# Books

class BookCreate(PayloadModel):
    """Rules for creating a book. Numeric strings are coerced."""
    title: str = Field(..., min_length=3, description="Book title")
    author: str = Field(..., min_length=1, description="Author name")
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Price")
    stock: int = Field(0, ge=0, description="Units in stock")


class BookUpdate(PayloadModel):
    """Rules for updating a book. Absent or null fields keep their value."""
    title: Optional[str] = Field(None, min_length=3, description="Book title")
    author: Optional[str] = Field(None, min_length=1, description="Author name")
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Price")
    stock: Optional[int] = Field(None, ge=0, description="Units in stock")


class BookResponse(BaseModel):
    """Book response model."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Author name")
    price: float = Field(..., description="Price")
    stock: int = Field(0, description="Units in stock")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp")
    updatedAt: Optional[datetime] = Field(None, description="Last update timestamp")


# Orders

class OrderLine(PayloadModel):
    """A single ordered book."""
    bookId: ObjectIdStr = Field(..., description="Referenced book identifier")
    quantity: int = Field(..., ge=1, description="Number of copies")


class OrderCreate(PayloadModel):
    """Rules for creating an order. totalAmount is taken as supplied."""
    userId: ObjectIdStr = Field(..., description="Owning user identifier")
    books: List[OrderLine] = Field(..., min_length=1, description="Ordered books")
    totalAmount: float = Field(..., ge=0, allow_inf_nan=False, description="Order total")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Order status")


class OrderUpdate(PayloadModel):
    """Rules for updating an order. Absent or null fields keep their value."""
    userId: Optional[ObjectIdStr] = Field(None, description="Owning user identifier")
    books: Optional[List[OrderLine]] = Field(None, min_length=1, description="Ordered books")
    totalAmount: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Order total")
    status: Optional[OrderStatus] = Field(None, description="Order status")


class OrderLineResponse(BaseModel):
    bookId: str
    quantity: int


class OrderResponse(BaseModel):
    """Order response model."""
    id: str = Field(..., description="Unique order identifier")
    userId: str = Field(..., description="Owning user identifier")
    books: List[OrderLineResponse] = Field(..., description="Ordered books")
    totalAmount: float = Field(..., description="Order total")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Order status")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp")
    updatedAt: Optional[datetime] = Field(None, description="Last update timestamp")


# Reviews

class ReviewCreate(PayloadModel):
    """Rules for creating a review. One review per user and book."""
    userId: ObjectIdStr = Field(..., description="Reviewing user identifier")
    bookId: ObjectIdStr = Field(..., description="Reviewed book identifier")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: str = Field("", max_length=500, description="Optional comment")


class ReviewUpdate(PayloadModel):
    """Rules for updating a review. The user and book cannot change."""
    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, max_length=500, description="Comment")


class ReviewResponse(BaseModel):
    """Review response model."""
    id: str = Field(..., description="Unique review identifier")
    userId: str = Field(..., description="Reviewing user identifier")
    bookId: str = Field(..., description="Reviewed book identifier")
    rating: int = Field(..., description="Rating from 1 to 5")
    comment: str = Field("", description="Comment")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp")
    updatedAt: Optional[datetime] = Field(None, description="Last update timestamp")


# Sessions

class SessionUser(BaseModel):
    """The one identity shape stored in a session after GitHub login."""
    id: str = Field(..., description="GitHub account identifier")
    username: Optional[str] = Field(None, description="GitHub login")
    displayName: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Primary email")
    profileUrl: Optional[str] = Field(None, description="GitHub profile URL")


# Generic responses

class FieldViolation(BaseModel):
    """A single failed rule for one payload field."""
    field: str = Field(..., description="Dotted path of the offending field")
    rule: str = Field(..., description="Name of the failed rule")
    message: str = Field(..., description="Human-readable explanation")


class ValidationErrorData(BaseModel):
    errors: List[FieldViolation]


class ValidationErrorResponse(BaseModel):
    """Body returned with HTTP 412."""
    success: bool = False
    message: str = Field(..., description="Summary of the failure")
    data: ValidationErrorData


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class MessageResponse(BaseModel):
    message: str


class StatusResponse(BaseModel):
    """Landing page summary."""
    message: str = Field(..., description="Service banner")
    status: str = Field(..., description="authenticated or unauthenticated")
    user: Optional[SessionUser] = Field(None, description="Logged in identity")
    endpoints: Dict[str, str] = Field(..., description="Entry points")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
    details: Optional[Dict[str, Any]] = Field(None, description="Collection counts")
