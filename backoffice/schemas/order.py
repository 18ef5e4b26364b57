from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from backoffice.models.order import OrderStatus, PaymentMethod, PaymentStatus, enum_value


class OrderItemCreate(BaseModel):
    product_id: int
    variant_id: int | None = None
    warehouse_id: int | None = None
    quantity: int = Field(1, ge=1)
    unit_price: Decimal | None = None  # None = catalog price (tier price for agent orders)


class AddressInput(BaseModel):
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    address_line_1: str = ""
    address_line_2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "Malaysia"


class _OrderFields(BaseModel):
    items: list[OrderItemCreate] = Field(min_length=1)
    shipping_cost: Decimal | None = None
    tax_rate: Decimal | None = None
    discount_amount: Decimal | None = None
    currency: str = ""  # empty = DEFAULT_CURRENCY
    customer_notes: str = ""
    order_date: datetime | None = None
    billing_address: AddressInput | None = None
    shipping_address: AddressInput | None = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: OrderStatus = OrderStatus.PENDING


class OrderCreate(_OrderFields):
    """Retail order: either a registered customer or a guest, never both."""

    customer_id: int | None = None
    guest_email: str | None = None
    customer_name: str = ""
    customer_phone: str = ""

    @model_validator(mode="after")
    def one_customer_mode(self):
        if self.customer_id is None and not self.guest_email:
            raise ValueError("Either customer_id or guest_email is required")
        if self.customer_id is not None and self.guest_email:
            raise ValueError("Use customer_id or guest_email, not both")
        if self.guest_email and not self.customer_name:
            raise ValueError("customer_name is required for guest orders")
        return self


class AgentOrderCreate(_OrderFields):
    agent_id: int


class OrderUpdate(BaseModel):
    """Edit an order. ``items`` replaces all existing items."""

    items: list[OrderItemCreate] | None = Field(None, min_length=1)
    shipping_cost: Decimal | None = None
    tax_rate: Decimal | None = None
    discount_amount: Decimal | None = None
    customer_notes: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    guest_email: str | None = None
    agent_id: int | None = None
    billing_address: AddressInput | None = None
    shipping_address: AddressInput | None = None
    payment_method: PaymentMethod | None = None
    payment_status: PaymentStatus | None = None
    status: OrderStatus | None = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class CancelRequest(BaseModel):
    reason: str = ""


class PaymentUpdate(BaseModel):
    status: PaymentStatus
    method: PaymentMethod | None = None


class NoteCreate(BaseModel):
    message: str = Field(min_length=1)
    type: str = "internal"

    @field_validator("type")
    @classmethod
    def known_type(cls, v):
        if v not in ("customer", "internal"):
            raise ValueError("type must be customer or internal")
        return v


class TotalsLine(BaseModel):
    quantity: int = Field(ge=1)
    unit_price: Decimal


class TotalsRequest(BaseModel):
    items: list[TotalsLine] = []
    shipping_cost: Decimal | None = None
    tax_rate: Decimal | None = None
    discount_amount: Decimal | None = None


class TotalsOut(BaseModel):
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal


# --- Output schemas ---

class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_variant_id: int | None = None
    warehouse_id: int | None = None
    product_name: str
    variant_name: str = ""
    sku: str
    quantity_ordered: int
    unit_price: Decimal
    unit_cost: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}


class AddressOut(AddressInput):
    id: int
    type: str

    model_config = {"from_attributes": True}

    @field_validator("type", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)


class PaymentOut(BaseModel):
    id: int
    payment_method: str
    amount: Decimal
    currency: str
    status: str
    paid_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("payment_method", "status", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)


class NoteOut(BaseModel):
    id: int
    type: str
    message: str
    is_visible_to_customer: bool
    user_id: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("type", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)


class OrderOut(BaseModel):
    id: int
    order_number: str
    order_type: str
    status: str
    currency: str
    subtotal: Decimal
    shipping_cost: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    customer_id: int | None = None
    agent_id: int | None = None
    guest_email: str | None = None
    display_customer_name: str
    customer_email: str
    customer_phone: str
    payment_status: str
    order_date: datetime | None = None
    confirmed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    customer_notes: str
    items: list[OrderItemOut] = []
    addresses: list[AddressOut] = []
    payments: list[PaymentOut] = []
    notes: list[NoteOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("order_type", "status", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)


class OrderListOut(BaseModel):
    id: int
    order_number: str
    order_type: str
    status: str
    display_customer_name: str
    total_amount: Decimal
    currency: str
    payment_status: str
    order_date: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("order_type", "status", mode="before")
    @classmethod
    def plain_enum(cls, v):
        return enum_value(v)
