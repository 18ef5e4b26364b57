from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

PRODUCT_STATUSES = ("active", "inactive", "draft")
ATTRIBUTE_TYPES = ("select", "text", "number", "color")


# --- Category schemas ---

class CategoryCreate(BaseModel):
    name: str
    slug: str = ""  # empty = derived from name
    description: str = ""
    parent_id: int | None = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: str | None = None
    slug: str | None = None
    description: str | None = None
    parent_id: int | None = None
    is_active: bool | None = None


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    description: str
    parent_id: int | None = None
    is_active: bool

    model_config = {"from_attributes": True}


# --- Variant schemas ---

class VariantCreate(BaseModel):
    sku: str
    name: str = ""
    attributes: dict[str, str] = {}  # {"color": "Red", "size": "M"}
    price: Decimal | None = None  # None = product base price
    cost_price: Decimal | None = None
    is_active: bool = True


class VariantUpdate(BaseModel):
    name: str | None = None
    attributes: dict[str, str] | None = None
    price: Decimal | None = None
    cost_price: Decimal | None = None
    is_active: bool | None = None


class VariantOut(BaseModel):
    id: int
    product_id: int
    sku: str
    name: str
    attributes: dict[str, str] = {}
    price: Decimal | None = None
    cost_price: Decimal | None = None
    is_active: bool

    model_config = {"from_attributes": True}

    @field_validator("attributes", mode="before")
    @classmethod
    def attributes_default(cls, v):
        return v or {}


# --- Product schemas ---

class ProductCreate(BaseModel):
    sku: str
    name: str
    description: str = ""
    category_id: int | None = None
    base_price: Decimal = Decimal("0")
    cost_price: Decimal = Decimal("0")
    track_quantity: bool = True
    status: str = "active"
    variants: list[VariantCreate] = []

    @field_validator("status")
    @classmethod
    def known_status(cls, v):
        if v not in PRODUCT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(PRODUCT_STATUSES)}")
        return v


class ProductUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    category_id: int | None = None
    base_price: Decimal | None = None
    cost_price: Decimal | None = None
    track_quantity: bool | None = None
    status: str | None = None

    @field_validator("status")
    @classmethod
    def known_status(cls, v):
        if v is not None and v not in PRODUCT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(PRODUCT_STATUSES)}")
        return v


class ProductOut(BaseModel):
    id: int
    sku: str
    name: str
    description: str
    category_id: int | None = None
    base_price: Decimal
    cost_price: Decimal
    track_quantity: bool
    status: str
    variants: list[VariantOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# --- Attribute template schemas ---

class AttributeTemplateCreate(BaseModel):
    name: str
    label: str = ""
    type: str = "select"
    values: list[str] = []
    is_required: bool = False

    @field_validator("type")
    @classmethod
    def known_type(cls, v):
        if v not in ATTRIBUTE_TYPES:
            raise ValueError(f"type must be one of {', '.join(ATTRIBUTE_TYPES)}")
        return v


class AttributeTemplateUpdate(BaseModel):
    label: str | None = None
    type: str | None = None
    values: list[str] | None = None
    is_required: bool | None = None

    @field_validator("type")
    @classmethod
    def known_type(cls, v):
        if v is not None and v not in ATTRIBUTE_TYPES:
            raise ValueError(f"type must be one of {', '.join(ATTRIBUTE_TYPES)}")
        return v


class AttributeTemplateOut(BaseModel):
    id: int
    name: str
    label: str
    type: str
    values: list[str] = []
    is_required: bool

    model_config = {"from_attributes": True}
