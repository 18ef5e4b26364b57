from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.models.order import Order, OrderStatus, OrderType
from backoffice.models.user import User
from backoffice.schemas.order import (
    CancelRequest,
    NoteCreate,
    NoteOut,
    OrderCreate,
    OrderListOut,
    OrderOut,
    OrderUpdate,
    PaymentUpdate,
    StatusUpdate,
    TotalsOut,
    TotalsRequest,
)
from backoffice.schemas.stock import StockMovementOut
from backoffice.services import (
    document_service,
    lifecycle_service,
    order_service,
    payment_service,
    stock_service,
    webhook_service,
)
from backoffice.services.totals import calculate_line_totals

router = APIRouter(prefix="/orders", tags=["Orders"])


def notify(background_tasks: BackgroundTasks, order: Order, event: str) -> None:
    """Queue the order webhook; the payload is built now, while the session is open."""
    if webhook_service.webhook_urls():
        background_tasks.add_task(webhook_service.send_payload, webhook_service.build_payload(order, event))


def _get_or_404(db: Session, order_id: int) -> Order:
    order = order_service.get_regular_order(db, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


def apply_status(db: Session, order: Order, status: OrderStatus, user: User, reason: str = "") -> Order:
    """Route a status change to its named transition."""
    named = {
        OrderStatus.CONFIRMED: lifecycle_service.mark_as_confirmed,
        OrderStatus.PROCESSING: lifecycle_service.mark_as_processing,
        OrderStatus.SHIPPED: lifecycle_service.mark_as_shipped,
        OrderStatus.DELIVERED: lifecycle_service.mark_as_delivered,
    }
    try:
        if status == OrderStatus.CANCELLED:
            return lifecycle_service.mark_as_cancelled(db, order, reason, actor_id=user.id)
        if status in named:
            return named[status](db, order, actor_id=user.id)
        return lifecycle_service.transition(db, order, status, actor_id=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


def apply_payment(db: Session, order: Order, data: PaymentUpdate, user: User) -> Order:
    try:
        payment_service.update_payment_status(db, order, data.status, data.method, actor_id=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    db.refresh(order)
    return order


def document_or_404(order: Order, kind: str) -> dict:
    if kind not in document_service.DOCUMENT_KINDS:
        raise HTTPException(404, f"Unknown document '{kind}'")
    return document_service.document_data(order, kind)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    data: OrderCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        order = order_service.create_order(db, data, actor_id=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    notify(background_tasks, order, "order.created")
    return order


@router.get("", response_model=list[OrderListOut])
def list_orders(
    skip: int = 0,
    limit: int = 100,
    status: OrderStatus | None = None,
    customer_id: int | None = None,
    search: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.list_orders(
        db, skip=skip, limit=limit, status=status, order_type=OrderType.REGULAR,
        customer_id=customer_id, search=search,
    )


@router.post("/totals", response_model=TotalsOut)
def preview_totals(data: TotalsRequest):
    """Totals for an order form before it is saved."""
    totals = calculate_line_totals(
        ((line.quantity, line.unit_price) for line in data.items),
        shipping_cost=data.shipping_cost,
        tax_rate=data.tax_rate,
        discount_amount=data.discount_amount,
    ).rounded()
    return TotalsOut(**asdict(totals))


@router.get("/export")
def export_orders(
    status: OrderStatus | None = None,
    order_type: OrderType | None = None,
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = db.query(Order)
    if status:
        q = q.filter(Order.status == status)
    if order_type:
        q = q.filter(Order.order_type == order_type)
    if start_date:
        q = q.filter(Order.order_date >= start_date)
    if end_date:
        q = q.filter(Order.order_date <= end_date)
    content = document_service.orders_csv(q.order_by(Order.id).all())
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=orders.csv"},
    )


@router.get("/by-number/{order_number}", response_model=OrderOut)
def get_order_by_number(order_number: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = order_service.get_order_by_number(db, order_number)
    if not order or order.is_agent_order:
        raise HTTPException(404, "Order not found")
    return order


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _get_or_404(db, order_id)


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
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
def update_status(
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


router.add_api_route("/{order_id}/confirm", _named_route(OrderStatus.CONFIRMED), methods=["POST"], response_model=OrderOut)
router.add_api_route("/{order_id}/process", _named_route(OrderStatus.PROCESSING), methods=["POST"], response_model=OrderOut)
router.add_api_route("/{order_id}/ship", _named_route(OrderStatus.SHIPPED), methods=["POST"], response_model=OrderOut)
router.add_api_route("/{order_id}/deliver", _named_route(OrderStatus.DELIVERED), methods=["POST"], response_model=OrderOut)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
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
def update_payment(
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
def add_note(order_id: int, data: NoteCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = _get_or_404(db, order_id)
    return order_service.add_note(db, order, data.message, data.type, user_id=user.id)


@router.get("/{order_id}/stock-movements", response_model=list[StockMovementOut])
def order_stock_movements(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = _get_or_404(db, order_id)
    return stock_service.movements_for_order(db, order.id)


@router.get("/{order_id}/documents/{kind}")
def order_document(order_id: int, kind: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return document_or_404(_get_or_404(db, order_id), kind)
