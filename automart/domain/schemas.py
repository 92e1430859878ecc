# automart/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Compartment = Literal["fresh", "freezer", "snack", "drink", "mixed"]


class WireModel(BaseModel):
    """Base for everything that travels as camelCase JSON (storage, HTTP)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# =====================================================
# catalog
# =====================================================
class Nutrition(WireModel):
    vegetarian: bool = False
    vegan: bool = False


class Product(WireModel):
    """Catalog entry. Immutable once loaded."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    original_price: Decimal | None = None
    image: str | None = None
    category: List[str] = Field(default_factory=list)
    badges: List[str] = Field(default_factory=list)
    nutrition: Nutrition = Field(default_factory=Nutrition)
    compartment: Compartment = "mixed"


class Location(WireModel):
    id: str
    name: str
    address: str
    lat: float
    lng: float
    lockers: List[str]


class PaymentMethod(WireModel):
    id: str
    name: str


# =====================================================
# cart
# =====================================================
class CartLineItem(WireModel):
    id: str
    product: Product
    quantity: int = Field(..., ge=1)
    added_at: datetime
    updated_at: datetime | None = None


class CartView(WireModel):
    items: List[CartLineItem]
    item_count: int
    total_items: int
    total_price: Decimal
    original_total_price: Decimal
    total_savings: Decimal
    is_empty: bool
    formatted_total: str
    formatted_savings: str


class CartValidation(WireModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class UserPreferences(WireModel):
    name: str
    location: str
    preferences: dict[str, Any] = Field(default_factory=dict)


# =====================================================
# checkout / orders
# =====================================================
class CheckoutLine(WireModel):
    product_id: str
    name: str
    price: Decimal
    quantity: int = Field(..., ge=1)
    compartment: Compartment = "mixed"


class CheckoutPayload(WireModel):
    """Transient order payload assembled from a cart snapshot."""

    order_id: str
    locker_id: str
    location: str
    location_name: str
    customer: str
    time_slot: str
    payment_method: str
    items: List[CheckoutLine]
    total: Decimal
    product: Compartment
    compartment: Compartment
    quantity: int
    timestamp: int


class OrderResult(WireModel):
    status: Literal["completed", "queued"]
    order_id: str
    locker_id: str
    response: dict[str, Any] | None = None


class OrderCompleteIn(WireModel):
    """Body of POST /order/complete."""

    order_id: str = Field(..., min_length=1)
    locker_id: str = Field(..., min_length=1)
    product: str | None = None
    products: List[dict[str, Any]] | None = None
    items: List[CheckoutLine] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")
    customer: str | None = None
    location: str | None = None
    compartment: Compartment | None = None
    quantity: int | None = Field(default=None, ge=1)
    timestamp: int | None = None


class OrderCompleteOut(WireModel):
    status: str = "ok"
    order_id: str
    locker_id: str
    products: List[dict[str, Any]]


class PickupOpenIn(WireModel):
    order_id: str = Field(..., min_length=1)
    locker_id: str = Field(..., min_length=1)
    action: Literal["open"] = "open"
    timestamp: int | None = None


class OrderOut(WireModel):
    id: str
    locker_id: str
    location: str
    customer: str
    compartment: str
    items: int
    quantity: int
    total: Decimal
    status: str
    date: str
    created_at: datetime


class OrderPage(WireModel):
    orders: List[OrderOut]
    total: int
    page: int
    limit: int


class ProductPage(WireModel):
    products: List[Product]
    total: int
    page: int
    limit: int
    has_more: bool
