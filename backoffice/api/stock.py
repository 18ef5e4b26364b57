from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.models.stock import MovementType
from backoffice.models.user import User
from backoffice.schemas.stock import (
    StockAdjust,
    StockLevelOut,
    StockMovementOut,
    WarehouseCreate,
    WarehouseOut,
    WarehouseUpdate,
)
from backoffice.services import stock_service

router = APIRouter(tags=["Stock"])


# --- Warehouses ---

@router.post("/warehouses", response_model=WarehouseOut, status_code=201)
def create_warehouse(data: WarehouseCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return stock_service.create_warehouse(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/warehouses", response_model=list[WarehouseOut])
def list_warehouses(active_only: bool = False, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return stock_service.list_warehouses(db, active_only=active_only)


@router.get("/warehouses/{warehouse_id}", response_model=WarehouseOut)
def get_warehouse(warehouse_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    warehouse = stock_service.get_warehouse(db, warehouse_id)
    if not warehouse:
        raise HTTPException(404, "Warehouse not found")
    return warehouse


@router.patch("/warehouses/{warehouse_id}", response_model=WarehouseOut)
def update_warehouse(
    warehouse_id: int, data: WarehouseUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    warehouse = stock_service.update_warehouse(db, warehouse_id, data)
    if not warehouse:
        raise HTTPException(404, "Warehouse not found")
    return warehouse


# --- Stock levels & movements ---

@router.get("/stock/levels", response_model=list[StockLevelOut])
def stock_levels(
    warehouse_id: int | None = None,
    product_id: int | None = None,
    low_stock: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return stock_service.list_stock_levels(db, warehouse_id=warehouse_id, product_id=product_id, low_stock=low_stock)


@router.get("/stock/movements", response_model=list[StockMovementOut])
def stock_movements(
    product_id: int | None = None,
    warehouse_id: int | None = None,
    type: MovementType | None = None,
    limit: int = 100,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return stock_service.list_movements(
        db, product_id=product_id, warehouse_id=warehouse_id, movement_type=type, limit=limit
    )


@router.post("/stock/adjustments", response_model=StockMovementOut, status_code=201)
def adjust_stock(data: StockAdjust, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return stock_service.adjust_stock(db, data, actor_id=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
