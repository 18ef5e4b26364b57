from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base


class MovementType(str, PyEnum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class ReferenceKind(str, PyEnum):
    ORDER = "order"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    INITIAL_STOCK = "initial_stock"


@dataclass(frozen=True)
class StockReference:
    """What caused a stock movement."""

    kind: ReferenceKind
    id: int | None = None

    @classmethod
    def order(cls, order_id: int) -> "StockReference":
        return cls(ReferenceKind.ORDER, order_id)

    @classmethod
    def manual(cls) -> "StockReference":
        return cls(ReferenceKind.MANUAL_ADJUSTMENT)

    @property
    def label(self) -> str:
        if self.kind == ReferenceKind.ORDER:
            return f"Order #{self.id}"
        return self.kind.value.replace("_", " ").capitalize()


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class StockLevel(Base):
    """Current on-hand quantity for one product/variant/warehouse combination."""

    __tablename__ = "stock_levels"
    __table_args__ = (UniqueConstraint("product_id", "product_variant_id", "warehouse_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    product_variant_id: Mapped[int | None] = mapped_column(ForeignKey("product_variants.id"), nullable=True)
    warehouse_id: Mapped[int] = mapped_column(ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity: Mapped[int] = mapped_column(Integer, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, default=0)
    available_quantity: Mapped[int] = mapped_column(Integer, default=0)
    average_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    last_movement_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    warehouse: Mapped["Warehouse"] = relationship("Warehouse")


class StockMovement(Base):
    """Append-only audit record of one stock quantity change."""

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    product_variant_id: Mapped[int | None] = mapped_column(ForeignKey("product_variants.id"), nullable=True)
    warehouse_id: Mapped[int] = mapped_column(ForeignKey("warehouses.id"), nullable=False, index=True)

    type: Mapped[str] = mapped_column(
        Enum(MovementType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # positive=in, negative=out
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    reference_type: Mapped[str | None] = mapped_column(
        Enum(ReferenceKind, values_callable=lambda x: [e.value for e in x]),
        nullable=True,
    )
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    @property
    def reference(self) -> StockReference | None:
        if self.reference_type is None:
            return None
        return StockReference(ReferenceKind(self.reference_type), self.reference_id)
