"""
Request Schemas

Pydantic models validating request bodies before any store access.
Field names follow the JSON API (camelCase); each model maps onto the
MongoDB collection named in its docstring.
"""

from typing import Annotated, List, Literal, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field

OrderStatus = Literal["pending", "paid", "shipped", "delivered", "cancelled", "refunded"]
LocationStatus = Literal["active", "inactive", "maintenance"]
Role = Literal["customer", "user", "manager", "admin"]
RequestStatus = Literal["open", "in_progress", "resolved", "closed"]
RequestPriority = Literal["low", "medium", "high", "urgent"]


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value) or len(value) != 24:
        raise ValueError("must be a valid identifier")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]


class Schema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# Auth / users

class RegisterRequest(Schema):
    name: str = Field(..., min_length=1, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="Login email, unique")
    password: str = Field(..., min_length=6, description="Plain password, 6 or more characters")


class LoginRequest(Schema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(Schema):
    refreshToken: str = Field(..., min_length=1)


class UserUpdate(Schema):
    """
    Users collection schema (admin update)
    Collection name: "users"
    """
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    status: Optional[str] = Field(None, max_length=20)
    isActive: Optional[bool] = None


# Catalog

class ProductCreate(Schema):
    """
    Products collection schema
    Collection name: "products"
    """
    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    description: str = Field(..., min_length=1, max_length=1000, description="Product description")
    price: float = Field(..., ge=0, description="Unit price in the shop currency")
    category: ObjectIdStr = Field(..., description="Referenced category id")
    stock: int = Field(0, ge=0, description="Units in stock")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    primaryImage: str = Field("", description="Main image URL")


class ProductUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[ObjectIdStr] = None
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    primaryImage: Optional[str] = None
    isActive: Optional[bool] = None


class CategoryCreate(Schema):
    """
    Categories collection schema
    Collection name: "categories"
    """
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)


class CategoryUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    isActive: Optional[bool] = None


# Locations

class GovernorateCreate(Schema):
    """
    Governorates collection schema
    Collection name: "governorates"
    """
    name: str = Field(..., min_length=1, max_length=50)
    nameAr: str = Field(..., min_length=1, max_length=50, description="Arabic name")
    code: str = Field(..., min_length=1, max_length=10)
    status: LocationStatus = "active"
    description: Optional[str] = Field(None, max_length=500)


class GovernorateUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    nameAr: Optional[str] = Field(None, min_length=1, max_length=50)
    code: Optional[str] = Field(None, min_length=1, max_length=10)
    status: Optional[LocationStatus] = None
    description: Optional[str] = Field(None, max_length=500)
    isActive: Optional[bool] = None


class CityCreate(GovernorateCreate):
    """
    Cities collection schema
    Collection name: "cities"
    """
    governorate: ObjectIdStr = Field(..., description="Referenced governorate id")


class CityUpdate(GovernorateUpdate):
    governorate: Optional[ObjectIdStr] = None


# Addresses

class AddressCreate(Schema):
    """
    Addresses collection schema
    Collection name: "addresses"
    """
    fullName: Optional[str] = Field(None, max_length=120)
    phone: str = Field(..., min_length=1, max_length=40)
    line1: str = Field(..., min_length=1, max_length=200)
    line2: str = Field("", max_length=200)
    cityId: ObjectIdStr
    governorateId: ObjectIdStr
    postalCode: str = Field("", max_length=20)
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166 alpha-2")
    isDefault: bool = False


class AddressUpdate(Schema):
    fullName: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, min_length=1, max_length=40)
    line1: Optional[str] = Field(None, min_length=1, max_length=200)
    line2: Optional[str] = Field(None, max_length=200)
    cityId: Optional[ObjectIdStr] = None
    governorateId: Optional[ObjectIdStr] = None
    postalCode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    isDefault: Optional[bool] = None


class ShippingAddress(Schema):
    """Inline address copied verbatim into an order snapshot."""
    fullName: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=1, max_length=40)
    line1: str = Field(..., min_length=1, max_length=200)
    line2: str = Field("", max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    governorate: str = Field(..., min_length=1, max_length=100)
    postalCode: str = Field("", max_length=20)
    country: str = Field(..., min_length=2, max_length=2)


# Cart

class CartAdd(Schema):
    productId: ObjectIdStr = Field(..., description="Referenced product id")
    quantity: int = Field(1, ge=1, description="Units to add")


class CartQuantity(Schema):
    quantity: int = Field(..., ge=0, description="Absolute quantity, 0 removes the line")


class CheckoutRequest(Schema):
    addressId: Optional[ObjectIdStr] = None
    userId: Optional[ObjectIdStr] = Field(None, description="Target user, elevated callers only")
    notes: str = Field("", max_length=2000)


# Orders

class OrderItemIn(Schema):
    productId: ObjectIdStr
    quantity: int = Field(..., ge=1)


class OrderCreate(Schema):
    """
    Orders collection schema (authenticated checkout)
    Collection name: "orders"
    """
    items: Optional[List[OrderItemIn]] = Field(None, min_length=1, description="Falls back to the cart when omitted")
    addressId: ObjectIdStr = Field(..., description="Shipping address of the target user")
    userId: Optional[ObjectIdStr] = Field(None, description="Target user, elevated callers only")
    notes: str = Field("", max_length=2000)


class GuestInfo(Schema):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr


class GuestOrderCreate(Schema):
    items: List[OrderItemIn] = Field(..., min_length=1)
    shippingAddress: ShippingAddress
    guest: GuestInfo
    notes: str = Field("", max_length=2000)


class StatusUpdate(Schema):
    status: OrderStatus


class BulkStatusUpdate(Schema):
    orderIds: List[str] = Field(..., min_length=1, description="Order ids or order codes, mixed")
    status: OrderStatus


class BulkDelete(Schema):
    orderIds: List[str] = Field(..., min_length=1)


# Reviews / wishlist / settings

class ReviewCreate(Schema):
    """
    Reviews collection schema
    Collection name: "reviews"
    """
    product: ObjectIdStr
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=500)


class ReviewUpdate(Schema):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=500)


class WishlistAdd(Schema):
    productId: ObjectIdStr


class RequestCreate(Schema):
    """
    Requests collection schema (support tickets)
    Collection name: "requests"
    """
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field("", max_length=2000)
    priority: RequestPriority = "medium"


class RequestUpdate(Schema):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Optional[RequestPriority] = None
    status: Optional[RequestStatus] = None


class CurrencyUpdate(Schema):
    currency: str = Field(..., min_length=3, max_length=3)
