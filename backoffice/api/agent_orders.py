from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.api.orders import apply_payment, apply_status, document_or_404, notify
from backoffice.database import get_db
from backoffice.models.order import Order, OrderStatus, OrderType
from backoffice.models.user import User
from backoffice.schemas.order import (
    AgentOrderCreate,
    CancelRequest,
    NoteCreate,
    NoteOut,
    OrderListOut,
    OrderOut,
    OrderUpdate,
    PaymentUpdate,
    StatusUpdate,
)
from backoffice.schemas.stock import StockMovementOut
from backoffice.services import order_service, stock_service

router = APIRouter(prefix="/agent-orders", tags=["Agent Orders"])


def _get_or_404(db: Session, order_id: int) -> Order:
    order = order_service.get_agent_order(db, order_id)
    if not order:
        raise HTTPException(404, "Agent order not found")
    return order


@router.post("", response_model=OrderOut, status_code=201)
def create_agent_order(
    data: AgentOrderCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        order = order_service.create_agent_order(db, data, actor_id=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    notify(background_tasks, order, "order.created")
    return order


@router.get("", response_model=list[OrderListOut])
def list_agent_orders(
    skip: int = 0,
    limit: int = 100,
    status: OrderStatus | None = None,
    agent_id: int | None = None,
    search: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.list_orders(
        db, skip=skip, limit=limit, status=status, order_type=OrderType.AGENT,
        agent_id=agent_id, search=search,
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_agent_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _get_or_404(db, order_id)


@router.put("/{order_id}", response_model=OrderOut)
def update_agent_order(
    order_id: int,
    data: OrderUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = _get_or_404(db, order_id)
    try:
        order = order_service.update_order(db, order, data, actor_id=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    notify(background_tasks, order, "order.updated")
    return order


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_agent_order_status(
    order_id: int,
    data: StatusUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = apply_status(db, _get_or_404(db, order_id), data.status, user)
    notify(background_tasks, order, "order.status_changed")
    return order


def _named_route(status: OrderStatus):
    def endpoint(
        order_id: int,
        background_tasks: BackgroundTasks,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        order = apply_status(db, _get_or_404(db, order_id), status, user)
        notify(background_tasks, order, "order.status_changed")
        return order
    return endpoint


for _action, _status in (
    ("confirm", OrderStatus.CONFIRMED),
    ("process", OrderStatus.PROCESSING),
    ("ship", OrderStatus.SHIPPED),
    ("deliver", OrderStatus.DELIVERED),
):
    router.add_api_route(f"/{{order_id}}/{_action}", _named_route(_status), methods=["POST"], response_model=OrderOut)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_agent_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    data: CancelRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reason = data.reason if data else ""
    order = apply_status(db, _get_or_404(db, order_id), OrderStatus.CANCELLED, user, reason)
    notify(background_tasks, order, "order.status_changed")
    return order


@router.patch("/{order_id}/payment", response_model=OrderOut)
def update_agent_order_payment(
    order_id: int,
    data: PaymentUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = apply_payment(db, _get_or_404(db, order_id), data, user)
    notify(background_tasks, order, "order.payment_changed")
    return order


@router.post("/{order_id}/notes", response_model=NoteOut, status_code=201)
def add_agent_order_note(
    order_id: int, data: NoteCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    order = _get_or_404(db, order_id)
    return order_service.add_note(db, order, data.message, data.type, user_id=user.id)


@router.get("/{order_id}/stock-movements", response_model=list[StockMovementOut])
def agent_order_stock_movements(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = _get_or_404(db, order_id)
    return stock_service.movements_for_order(db, order.id)


@router.get("/{order_id}/documents/{kind}")
def agent_order_document(
    order_id: int, kind: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return document_or_404(_get_or_404(db, order_id), kind)
