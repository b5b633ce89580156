"""Pydantic models for order receipt reconciliation."""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    """Aggregate receipt status of an order.

    State Transitions (driven by item ``received`` flags only):
        - pending → partial (some items confirmed)
        - pending → confirmed (all items confirmed at once)
        - partial → confirmed (remaining items confirmed)
        - confirmed → archived (explicit user action)
    """
    PENDING = "pending"
    PARTIAL = "partial"
    CONFIRMED = "confirmed"
    ARCHIVED = "archived"


class InventoryStatus(str, Enum):
    """Row-level status of an inventory item."""
    PENDING = "pending"
    CURRENT = "current"
    ARCHIVED = "archived"
    SOLD = "sold"


class ConfirmResult(BaseModel):
    """Successful confirm response (camelCase on the wire)."""

    success: bool = True
    message: str
    updated_count: int
    order_status: OrderStatus
    total_items: int
    received_items: int
    pending_items: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReceiptStatus(BaseModel):
    order_id: uuid.UUID
    status: OrderStatus
    total_items: int
    received_items: int
    pending_items: int


class InventoryItemView(BaseModel):
    id: uuid.UUID
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    color_code: Optional[str] = None
    size: Optional[str] = None
    quantity: int = 1
    wholesale_price: Optional[Decimal] = None
    upc: Optional[str] = None
    sku: Optional[str] = None
    received: Optional[bool] = None
    received_date: Optional[date] = None
    status: InventoryStatus

    model_config = ConfigDict(from_attributes=True)


class OrderView(BaseModel):
    """An order as seen by a consumer revisiting it.

    For a partial order ``items`` holds only the unreceived items unless
    the caller explicitly asked for all of them.
    """

    id: uuid.UUID
    account_id: str
    vendor_id: str
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    order_date: Optional[str] = None
    rep_name: Optional[str] = None
    status: OrderStatus
    total_items: int
    received_items: int
    pending_items: int
    items: List[InventoryItemView] = Field(default_factory=list)
