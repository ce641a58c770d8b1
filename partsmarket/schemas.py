from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict
from typing import Any, Dict, Literal, Optional, Union

from .models import ROLES, ROLE_USER

Number = Union[int, float]

# largest integer BSON can store
MAX_INT64 = 2**63 - 1


def _check_role(v: Optional[str]):
    if v is not None and v not in ROLES:
        raise ValueError("role must be 'user' or 'admin'")
    return v


# -------------------- Users --------------------

class UserUpsert(BaseModel):
    uid: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    name: Optional[str] = None
    photoURL: Optional[str] = None
    phone: Optional[str] = None
    socialAccount: Optional[str] = None
    facebookURL: Optional[str] = None
    role: Optional[str] = Field(default=ROLE_USER)

    @field_validator("role")
    def valid_role(cls, v):
        return _check_role(v)


class UserUpdate(BaseModel):
    toggleRole: bool = False
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, min_length=1)
    photoURL: Optional[str] = None
    phone: Optional[str] = None
    socialAccount: Optional[str] = None
    facebookURL: Optional[str] = None
    role: Optional[str] = None

    # uid is the identity and cannot be rewritten
    model_config = ConfigDict(extra="forbid")

    @field_validator("role")
    def valid_role(cls, v):
        return _check_role(v)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True, exclude={"toggleRole"})


class UserRead(BaseModel):
    id: str = Field(alias="_id")
    uid: str
    email: str
    name: Optional[str] = None
    photoURL: Optional[str] = None
    phone: Optional[str] = None
    socialAccount: Optional[str] = None
    facebookURL: Optional[str] = None
    role: str = ROLE_USER

    model_config = ConfigDict(populate_by_name=True)


class UserAuthResponse(BaseModel):
    message: str
    token: str
    user: UserRead


class UserUpdateResponse(BaseModel):
    message: str
    data: UserRead


class RoleResponse(BaseModel):
    message: str
    role: str


class MessageResponse(BaseModel):
    message: str


# -------------------- Products --------------------

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    available_quantity: int = Field(..., ge=0, le=MAX_INT64)
    minimum_order_quantity: int = Field(..., ge=1, le=MAX_INT64)
    description: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1)


class ProductRead(BaseModel):
    id: str = Field(alias="_id")
    name: Optional[str] = None
    price: Optional[Number] = None
    available_quantity: Optional[Any] = None
    minimum_order_quantity: Optional[Number] = None
    description: Optional[str] = None
    image: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ProductCreateResponse(BaseModel):
    message: str
    product: ProductRead


class StockAdjust(BaseModel):
    quantity: int = Field(..., gt=0, le=MAX_INT64, strict=True)
    action: Literal["add", "deduct"]


class StockAdjustResult(BaseModel):
    message: str
    productId: str
    available_quantity: Number


# -------------------- Orders --------------------

class OrderCreate(BaseModel):
    orderId: str = Field(..., min_length=1)
    productName: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    totalPrice: float = Field(..., gt=0)
    quantity: int = Field(..., gt=0, le=MAX_INT64)
    customerName: str = Field(..., min_length=1)
    customerEmail: str = Field(..., min_length=1)
    shippingInfo: Union[str, Dict[str, Any]]
    contactInfo: Union[str, Dict[str, Any]]
    status: str = Field(..., min_length=1)

    @field_validator("shippingInfo", "contactInfo")
    def not_empty(cls, v):
        if not v:
            raise ValueError("must not be empty")
        return v


class OrderRead(BaseModel):
    id: str = Field(alias="_id")
    orderId: Optional[str] = None
    productName: Optional[str] = None
    price: Optional[Number] = None
    totalPrice: Optional[Number] = None
    quantity: Optional[int] = None
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    shippingInfo: Optional[Union[str, Dict[str, Any]]] = None
    contactInfo: Optional[Union[str, Dict[str, Any]]] = None
    status: Optional[str] = None
    orderTime: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class OrderCreateResponse(BaseModel):
    message: str
    order: OrderRead


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


# -------------------- Reviews --------------------

class ReviewCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    rating: Number
    review: str = Field(..., min_length=1)


class ReviewRead(BaseModel):
    id: str = Field(alias="_id")
    name: Optional[str] = None
    email: Optional[str] = None
    rating: Optional[Number] = None
    review: Optional[str] = None
    createdAt: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ReviewCreateResponse(BaseModel):
    message: str
    reviewId: str
