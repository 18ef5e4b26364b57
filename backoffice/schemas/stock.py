from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from backoffice.models.order import enum_value
from backoffice.models.stock import MovementType, ReferenceKind


# --- Warehouse schemas ---

class WarehouseCreate(BaseModel):
    code: str
    name: str
    address: str = ""
    is_active: bool = True


class WarehouseUpdate(BaseModel):
    name: str | None = None
    address: str | None = None
    is_active: bool | None = None


class WarehouseOut(BaseModel):
    id: int
    code: str
    name: str
    address: str
    is_active: bool

    model_config = {"from_attributes": True}


# --- Stock schemas ---

class StockAdjust(BaseModel):
    product_id: int
    variant_id: int | None = None
    warehouse_id: int
    quantity: int  # positive to add, negative to remove
    type: MovementType = MovementType.ADJUSTMENT
    reference_kind: ReferenceKind = ReferenceKind.MANUAL_ADJUSTMENT
    unit_cost: Decimal | None = None
    notes: str = ""

    @field_validator("quantity")
    @classmethod
    def non_zero(cls, v):
        if v == 0:
            raise ValueError("quantity must not be zero")
        return v

    @field_validator("reference_kind")
    @classmethod
    def not_order(cls, v):
        if v == ReferenceKind.ORDER:
            raise ValueError("order movements are created by order status changes")
        return v


class StockLevelOut(BaseModel):
    id: int
    product_id: int
    product_variant_id: int | None = None
    warehouse_id: int
    quantity: int
    reserved_quantity: int
    available_quantity: int
    average_cost: Decimal
    last_movement_at: datetime | None = None

    model_config = {"from_attributes": True}


class StockMovementOut(BaseModel):
    id: int
    product_id: int
    product_variant_id: int | None = None
    warehouse_id: int
    type: str
    quantity: int
    quantity_before: int
    quantity_after: int
    unit_cost: Decimal | None = None
    reference_type: str | None = None
    reference_id: int | None = None
    notes: str
    created_by: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("type", "reference_type", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)
