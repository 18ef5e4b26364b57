import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.models.order import Order, OrderItem
from backoffice.models.product import Product, ProductVariant
from backoffice.models.stock import (
    MovementType,
    StockLevel,
    StockMovement,
    StockReference,
    Warehouse,
)
from backoffice.schemas.stock import StockAdjust, WarehouseCreate, WarehouseUpdate
from backoffice.services.totals import ZERO, to_decimal
from backoffice.time_utils import utcnow

logger = logging.getLogger(__name__)


# --- Warehouses ---

def create_warehouse(db: Session, data: WarehouseCreate) -> Warehouse:
    existing = db.query(Warehouse).filter(Warehouse.code == data.code).first()
    if existing:
        raise ValueError(f"Warehouse code '{data.code}' already exists")
    warehouse = Warehouse(**data.model_dump())
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


def get_warehouse(db: Session, warehouse_id: int) -> Warehouse | None:
    return db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()


def list_warehouses(db: Session, active_only: bool = False) -> list[Warehouse]:
    q = db.query(Warehouse)
    if active_only:
        q = q.filter(Warehouse.is_active.is_(True))
    return q.order_by(Warehouse.name).all()


def update_warehouse(db: Session, warehouse_id: int, data: WarehouseUpdate) -> Warehouse | None:
    warehouse = get_warehouse(db, warehouse_id)
    if not warehouse:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(warehouse, field, value)
    db.commit()
    db.refresh(warehouse)
    return warehouse


# --- Stock levels ---

def get_stock_level(
    db: Session, product_id: int, variant_id: int | None, warehouse_id: int
) -> StockLevel | None:
    q = db.query(StockLevel).filter(
        StockLevel.product_id == product_id,
        StockLevel.warehouse_id == warehouse_id,
    )
    if variant_id is None:
        q = q.filter(StockLevel.product_variant_id.is_(None))
    else:
        q = q.filter(StockLevel.product_variant_id == variant_id)
    return q.first()


def get_or_create_stock_level(
    db: Session, product_id: int, variant_id: int | None, warehouse_id: int, average_cost=None
) -> StockLevel:
    level = get_stock_level(db, product_id, variant_id, warehouse_id)
    if level:
        return level
    level = StockLevel(
        product_id=product_id,
        product_variant_id=variant_id,
        warehouse_id=warehouse_id,
        quantity=0,
        reserved_quantity=0,
        available_quantity=0,
        average_cost=to_decimal(average_cost),
    )
    db.add(level)
    db.flush()
    return level


def list_stock_levels(
    db: Session,
    warehouse_id: int | None = None,
    product_id: int | None = None,
    low_stock: bool = False,
) -> list[StockLevel]:
    q = db.query(StockLevel)
    if warehouse_id:
        q = q.filter(StockLevel.warehouse_id == warehouse_id)
    if product_id:
        q = q.filter(StockLevel.product_id == product_id)
    if low_stock:
        q = q.filter(StockLevel.available_quantity <= settings.LOW_STOCK_THRESHOLD)
    return q.order_by(StockLevel.product_id, StockLevel.warehouse_id).all()


# --- Movements ---

def _record_movement(
    db: Session,
    level: StockLevel,
    movement_type: MovementType,
    quantity: int,
    quantity_before: int,
    reference: StockReference | None,
    unit_cost=None,
    notes: str = "",
    actor_id: int | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=level.product_id,
        product_variant_id=level.product_variant_id,
        warehouse_id=level.warehouse_id,
        type=movement_type,
        quantity=quantity,
        quantity_before=quantity_before,
        quantity_after=level.quantity,
        unit_cost=to_decimal(unit_cost) if unit_cost is not None else None,
        reference_type=reference.kind if reference else None,
        reference_id=reference.id if reference else None,
        notes=notes,
        created_by=actor_id,
    )
    db.add(movement)
    return movement


def deduct_item(
    db: Session, order: Order, item: OrderItem, reason: str, actor_id: int | None = None
) -> StockMovement | None:
    """Take an order item's quantity out of its warehouse stock."""
    if not item.warehouse_id:
        logger.warning(
            "Cannot deduct stock - no warehouse assigned (order=%s item=%s product=%s)",
            order.id, item.id, item.product_id,
        )
        return None

    level = get_or_create_stock_level(
        db, item.product_id, item.product_variant_id, item.warehouse_id, average_cost=item.unit_cost or ZERO
    )
    qty = item.quantity_ordered
    before = level.quantity
    taken = qty
    if not settings.ALLOW_NEGATIVE_STOCK:
        # Never take more than is on hand
        taken = min(qty, max(before, 0))
    after = before - taken

    level.quantity = after
    level.available_quantity = level.available_quantity - taken
    level.last_movement_at = utcnow()

    notes = f"Stock deducted: {reason} (Order #{order.order_number})"
    if taken < qty:
        logger.warning(
            "Insufficient stock, deduction clamped (order=%s product=%s warehouse=%s wanted=%d taken=%d)",
            order.id, item.product_id, item.warehouse_id, qty, taken,
        )
        notes += f" [WARNING: Only {taken} of {qty} units were in stock]"
    if after < 0:
        logger.warning(
            "Stock level is now NEGATIVE (order=%s product=%s warehouse=%s before=%d after=%d)",
            order.id, item.product_id, item.warehouse_id, before, after,
        )
        notes += f" [WARNING: Stock is now NEGATIVE by {abs(after)} units]"

    return _record_movement(
        db,
        level,
        MovementType.OUT,
        -taken,
        before,
        StockReference.order(order.id),
        unit_cost=item.unit_cost,
        notes=notes,
        actor_id=actor_id,
    )


def quantity_held(db: Session, order_id: int, item: OrderItem) -> int:
    """Units the order's own movements currently hold for the item's stock level."""
    db.flush()
    ref = StockReference.order(order_id)
    q = db.query(func.coalesce(func.sum(StockMovement.quantity), 0)).filter(
        StockMovement.reference_type == ref.kind,
        StockMovement.reference_id == ref.id,
        StockMovement.product_id == item.product_id,
        StockMovement.warehouse_id == item.warehouse_id,
    )
    if item.product_variant_id is None:
        q = q.filter(StockMovement.product_variant_id.is_(None))
    else:
        q = q.filter(StockMovement.product_variant_id == item.product_variant_id)
    return max(0, -int(q.scalar()))


def restore_item(
    db: Session, order: Order, item: OrderItem, reason: str, actor_id: int | None = None
) -> StockMovement | None:
    """Put an order item's quantity back. Only existing stock levels are restored."""
    if not item.warehouse_id:
        return None
    level = get_stock_level(db, item.product_id, item.product_variant_id, item.warehouse_id)
    if not level:
        return None

    qty = item.quantity_ordered
    if not settings.ALLOW_NEGATIVE_STOCK:
        # A clamped deduction took fewer units than ordered
        qty = min(qty, quantity_held(db, order.id, item))
        if qty == 0:
            return None

    before = level.quantity
    level.quantity = before + qty
    level.available_quantity = level.available_quantity + qty
    level.last_movement_at = utcnow()

    return _record_movement(
        db,
        level,
        MovementType.IN,
        qty,
        before,
        StockReference.order(order.id),
        unit_cost=item.unit_cost,
        notes=f"Stock restored: {reason} (Order #{order.order_number})",
        actor_id=actor_id,
    )


def adjust_stock(db: Session, data: StockAdjust, actor_id: int | None = None) -> StockMovement:
    """Manual stock adjustment (stock take, damage, initial stock)."""
    product = db.query(Product).filter(Product.id == data.product_id).first()
    if not product:
        raise ValueError(f"Product {data.product_id} not found")
    if data.variant_id is not None:
        variant = db.query(ProductVariant).filter(
            ProductVariant.id == data.variant_id,
            ProductVariant.product_id == product.id,
        ).first()
        if not variant:
            raise ValueError(f"Variant {data.variant_id} not found for product {product.sku}")
    if not get_warehouse(db, data.warehouse_id):
        raise ValueError(f"Warehouse {data.warehouse_id} not found")

    level = get_or_create_stock_level(
        db, product.id, data.variant_id, data.warehouse_id, average_cost=product.cost_price
    )
    before = level.quantity
    new_qty = before + data.quantity
    if new_qty < 0:
        db.rollback()
        raise ValueError(f"Insufficient stock. Current: {before}, requested change: {data.quantity}")

    level.quantity = new_qty
    level.available_quantity = level.available_quantity + data.quantity
    level.last_movement_at = utcnow()

    if data.unit_cost is not None and data.quantity > 0:
        # Weighted average over the units on hand
        old_value = to_decimal(level.average_cost) * max(before, 0)
        level.average_cost = (old_value + to_decimal(data.unit_cost) * data.quantity) / new_qty

    movement = _record_movement(
        db,
        level,
        data.type,
        data.quantity,
        before,
        StockReference(data.reference_kind),
        unit_cost=data.unit_cost,
        notes=data.notes,
        actor_id=actor_id,
    )
    db.commit()
    db.refresh(movement)
    return movement


def list_movements(
    db: Session,
    product_id: int | None = None,
    warehouse_id: int | None = None,
    movement_type: MovementType | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    q = db.query(StockMovement)
    if product_id:
        q = q.filter(StockMovement.product_id == product_id)
    if warehouse_id:
        q = q.filter(StockMovement.warehouse_id == warehouse_id)
    if movement_type:
        q = q.filter(StockMovement.type == movement_type)
    return q.order_by(StockMovement.id.desc()).limit(limit).all()


def movements_for_order(db: Session, order_id: int) -> list[StockMovement]:
    ref = StockReference.order(order_id)
    return (
        db.query(StockMovement)
        .filter(StockMovement.reference_type == ref.kind, StockMovement.reference_id == ref.id)
        .order_by(StockMovement.id)
        .all()
    )
