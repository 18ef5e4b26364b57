from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base


class OrderStatus(str, PyEnum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"


class OrderType(str, PyEnum):
    REGULAR = "regular"
    AGENT = "agent"


class AddressType(str, PyEnum):
    BILLING = "billing"
    SHIPPING = "shipping"


class NoteType(str, PyEnum):
    SYSTEM = "system"
    CUSTOMER = "customer"
    INTERNAL = "internal"


class PaymentMethod(str, PyEnum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT = "credit"  # agent terms
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    FPX = "fpx"
    GRABPAY = "grabpay"
    BOOST = "boost"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


def enum_value(value) -> str | None:
    """Plain string for an enum member or raw column value."""
    if value is None:
        return None
    return value.value if isinstance(value, PyEnum) else str(value)


def _values(enum_cls):
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x])


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    order_type: Mapped[str] = mapped_column(_values(OrderType), default=OrderType.REGULAR, index=True)
    status: Mapped[str] = mapped_column(_values(OrderStatus), default=OrderStatus.PENDING, index=True)
    currency: Mapped[str] = mapped_column(String, default="MYR")

    # Pricing
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    # Customer: registered customer, guest, or agent
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id"), nullable=True, index=True)
    agent_id: Mapped[int | None] = mapped_column(ForeignKey("agents.id"), nullable=True, index=True)
    guest_email: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_name: Mapped[str] = mapped_column(String, default="")
    customer_phone: Mapped[str] = mapped_column(String, default="")

    order_date: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    customer_notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    addresses: Mapped[list["OrderAddress"]] = relationship(
        "OrderAddress", back_populates="order", cascade="all, delete-orphan"
    )
    payments: Mapped[list["OrderPayment"]] = relationship(
        "OrderPayment", back_populates="order", cascade="all, delete-orphan", order_by="OrderPayment.id"
    )
    notes: Mapped[list["OrderNote"]] = relationship(
        "OrderNote", back_populates="order", cascade="all, delete-orphan", order_by="OrderNote.id"
    )
    customer: Mapped["Customer | None"] = relationship("Customer")
    agent: Mapped["Agent | None"] = relationship("Agent")

    @property
    def is_agent_order(self) -> bool:
        return self.agent_id is not None

    @property
    def current_payment(self) -> "OrderPayment | None":
        """Latest created payment; earlier payments are history."""
        if not self.payments:
            return None
        return max(self.payments, key=lambda p: (p.created_at or datetime.min, p.id or 0))

    @property
    def payment_status(self) -> str:
        payment = self.current_payment
        return enum_value(payment.status) if payment else PaymentStatus.PENDING.value

    @property
    def billing_address(self) -> "OrderAddress | None":
        return next((a for a in self.addresses if a.type == AddressType.BILLING), None)

    @property
    def shipping_address(self) -> "OrderAddress | None":
        return next((a for a in self.addresses if a.type == AddressType.SHIPPING), None)

    @property
    def display_customer_name(self) -> str:
        if self.customer_name:
            return self.customer_name
        if self.customer:
            return self.customer.name
        billing = self.billing_address
        if billing:
            return f"{billing.first_name} {billing.last_name}".strip()
        return "Guest Customer"

    @property
    def customer_email(self) -> str:
        if self.customer:
            return self.customer.email
        if self.agent:
            return self.agent.email
        return self.guest_email or ""


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    product_variant_id: Mapped[int | None] = mapped_column(ForeignKey("product_variants.id"), nullable=True)
    warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id"), nullable=True)

    # Copied from the product at order time
    product_name: Mapped[str] = mapped_column(String, default="")
    variant_name: Mapped[str] = mapped_column(String, default="")
    sku: Mapped[str] = mapped_column(String, default="")
    product_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)

    quantity_ordered: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    warehouse: Mapped["Warehouse | None"] = relationship("Warehouse")


class OrderAddress(Base):
    __tablename__ = "order_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(_values(AddressType), nullable=False)
    first_name: Mapped[str] = mapped_column(String, default="")
    last_name: Mapped[str] = mapped_column(String, default="")
    company: Mapped[str] = mapped_column(String, default="")
    email: Mapped[str] = mapped_column(String, default="")
    phone: Mapped[str] = mapped_column(String, default="")
    address_line_1: Mapped[str] = mapped_column(String, default="")
    address_line_2: Mapped[str] = mapped_column(String, default="")
    city: Mapped[str] = mapped_column(String, default="")
    state: Mapped[str] = mapped_column(String, default="")
    postal_code: Mapped[str] = mapped_column(String, default="")
    country: Mapped[str] = mapped_column(String, default="Malaysia")

    order: Mapped["Order"] = relationship("Order", back_populates="addresses")


class OrderPayment(Base):
    __tablename__ = "order_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(_values(PaymentMethod), default=PaymentMethod.CASH)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String, default="MYR")
    status: Mapped[str] = mapped_column(_values(PaymentStatus), default=PaymentStatus.PENDING)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    order: Mapped["Order"] = relationship("Order", back_populates="payments")


class OrderNote(Base):
    __tablename__ = "order_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    type: Mapped[str] = mapped_column(_values(NoteType), default=NoteType.SYSTEM)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_visible_to_customer: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    order: Mapped["Order"] = relationship("Order", back_populates="notes")


# Resolve string relationship targets
from backoffice.models.agent import Agent  # noqa: E402, F401
from backoffice.models.customer import Customer  # noqa: E402, F401
from backoffice.models.stock import Warehouse  # noqa: E402, F401
