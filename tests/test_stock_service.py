from decimal import Decimal

import pytest
from pydantic import ValidationError

from backoffice.config import settings
from backoffice.models.stock import MovementType, ReferenceKind, StockReference
from backoffice.schemas.stock import StockAdjust, WarehouseCreate
from backoffice.services import stock_service


class TestWarehouses:
    def test_duplicate_code_rejected(self, db, warehouse):
        with pytest.raises(ValueError, match="already exists"):
            stock_service.create_warehouse(db, WarehouseCreate(code="WH-KL", name="Another"))

    def test_list_active_only(self, db, warehouse):
        stock_service.create_warehouse(db, WarehouseCreate(code="WH-PG", name="Penang", is_active=False))
        assert [w.code for w in stock_service.list_warehouses(db, active_only=True)] == ["WH-KL"]
        assert len(stock_service.list_warehouses(db)) == 2


class TestStockLevels:
    def test_get_or_create_reuses_existing(self, db, stock, product, warehouse):
        level = stock_service.get_or_create_stock_level(db, product.id, None, warehouse.id)
        assert level.id == stock.id

    def test_get_or_create_starts_at_zero(self, db, product_b, warehouse):
        level = stock_service.get_or_create_stock_level(db, product_b.id, None, warehouse.id, average_cost="3.00")
        assert level.id is not None
        assert level.quantity == 0
        assert level.available_quantity == 0

    def test_low_stock_filter(self, db, stock, product_b, warehouse, monkeypatch):
        stock_service.adjust_stock(db, StockAdjust(product_id=product_b.id, warehouse_id=warehouse.id, quantity=2))
        monkeypatch.setattr(settings, "LOW_STOCK_THRESHOLD", 5)
        low = stock_service.list_stock_levels(db, low_stock=True)
        assert [lvl.product_id for lvl in low] == [product_b.id]


class TestAdjustStock:
    def test_positive_adjustment(self, db, user, stock, product, warehouse):
        movement = stock_service.adjust_stock(
            db,
            StockAdjust(product_id=product.id, warehouse_id=warehouse.id, quantity=5, notes="Stock take"),
            actor_id=user.id,
        )
        assert movement.quantity_before == 10
        assert movement.quantity_after == 15
        assert movement.type == MovementType.ADJUSTMENT
        assert movement.reference_type == ReferenceKind.MANUAL_ADJUSTMENT
        assert movement.created_by == user.id
        assert stock.quantity == 15

    def test_rejects_result_below_zero(self, db, stock, product, warehouse):
        with pytest.raises(ValueError, match="Insufficient stock"):
            stock_service.adjust_stock(db, StockAdjust(product_id=product.id, warehouse_id=warehouse.id, quantity=-11))
        assert stock.quantity == 10

    def test_weighted_average_cost(self, db, stock, product, warehouse):
        """10 @ 6.00 plus 10 @ 8.00 averages to 7.00."""
        stock_service.adjust_stock(
            db,
            StockAdjust(
                product_id=product.id, warehouse_id=warehouse.id, quantity=10,
                type=MovementType.IN, unit_cost=Decimal("8.00"),
            ),
        )
        assert stock.average_cost == Decimal("7.00")

    def test_unknown_product(self, db, warehouse):
        with pytest.raises(ValueError, match="not found"):
            stock_service.adjust_stock(db, StockAdjust(product_id=999, warehouse_id=warehouse.id, quantity=1))

    def test_unknown_warehouse(self, db, product):
        with pytest.raises(ValueError, match="Warehouse 999 not found"):
            stock_service.adjust_stock(db, StockAdjust(product_id=product.id, warehouse_id=999, quantity=1))

    def test_zero_quantity_invalid(self):
        with pytest.raises(ValidationError):
            StockAdjust(product_id=1, warehouse_id=1, quantity=0)

    def test_order_reference_reserved_for_orders(self):
        with pytest.raises(ValidationError):
            StockAdjust(product_id=1, warehouse_id=1, quantity=1, reference_kind="order")


class TestStockReference:
    def test_labels(self):
        assert StockReference.order(42).label == "Order #42"
        assert StockReference.manual().label == "Manual adjustment"
