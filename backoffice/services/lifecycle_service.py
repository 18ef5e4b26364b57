"""Order status transitions and the stock movements they cause.

An order holds stock while its status is in ``DEDUCTING_STATUSES``. Moving
into that set deducts every item from its warehouse; moving from it into
``RESTORING_STATUSES`` puts the stock back. Any other change leaves stock
alone, so repeated or same-status transitions never double count.
"""

import logging

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.models.order import NoteType, Order, OrderNote, OrderStatus, enum_value
from backoffice.models.stock import StockMovement
from backoffice.services import stock_service
from backoffice.time_utils import utcnow

logger = logging.getLogger(__name__)

DEDUCTING_STATUSES = frozenset({
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})

RESTORING_STATUSES = frozenset({
    OrderStatus.DRAFT,
    OrderStatus.PENDING,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.RETURNED,
})

# Used only when ENFORCE_STATUS_TRANSITIONS is on
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED}),
    OrderStatus.PENDING: frozenset({
        OrderStatus.DRAFT, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED, OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING}),
    OrderStatus.RETURNED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}


class LifecycleError(ValueError):
    """Raised when a status change is not allowed."""


def _status(value) -> OrderStatus:
    try:
        return OrderStatus(enum_value(value))
    except ValueError:
        raise LifecycleError(f"Unknown order status '{value}'") from None


def can_transition(previous, new) -> bool:
    previous, new = _status(previous), _status(new)
    if previous == new:
        return True
    return new in ALLOWED_TRANSITIONS[previous]


def reconcile(
    db: Session, order: Order, previous, new, actor_id: int | None = None
) -> list[StockMovement]:
    """Apply the stock side effect of moving ``order`` from ``previous`` to ``new``."""
    previous, new = _status(previous), _status(new)
    was_deducted = previous in DEDUCTING_STATUSES
    reason = f"Order status changed to {new.value}"
    movements: list[StockMovement] = []

    if not was_deducted and new in DEDUCTING_STATUSES:
        for item in order.items:
            movement = stock_service.deduct_item(db, order, item, reason, actor_id)
            if movement is not None:
                movements.append(movement)
    elif was_deducted and new in RESTORING_STATUSES:
        for item in order.items:
            movement = stock_service.restore_item(db, order, item, reason, actor_id)
            if movement is not None:
                movements.append(movement)

    return movements


def add_system_note(db: Session, order: Order, message: str, actor_id: int | None = None) -> OrderNote:
    note = OrderNote(type=NoteType.SYSTEM, message=message, user_id=actor_id)
    order.notes.append(note)
    db.add(note)
    return note


def _apply(db: Session, order: Order, new: OrderStatus, actor_id: int | None) -> str:
    previous = _status(order.status)
    if settings.ENFORCE_STATUS_TRANSITIONS and not can_transition(previous, new):
        raise LifecycleError(f"Cannot change order status from {previous.value} to {new.value}")

    order.status = new
    movements = reconcile(db, order, previous, new, actor_id)
    add_system_note(db, order, f"Order status changed from {previous.value} to {new.value}", actor_id)
    logger.info(
        "Order %s status %s -> %s (%d stock movements)",
        order.order_number, previous.value, new.value, len(movements),
    )
    return previous.value


def transition(
    db: Session,
    order: Order,
    new_status,
    actor_id: int | None = None,
    note: str | None = None,
    **stamps,
) -> Order:
    """Change the order status, reconcile stock and record a note in one transaction.

    ``note`` is an extra system note written after the status note. Extra
    keyword arguments are set on the order before commit (timestamps for the
    named transitions).
    """
    new = _status(new_status)
    try:
        _apply(db, order, new, actor_id)
        if note:
            add_system_note(db, order, note, actor_id)
        for field, value in stamps.items():
            setattr(order, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    return order


def mark_as_confirmed(db: Session, order: Order, actor_id: int | None = None) -> Order:
    return transition(db, order, OrderStatus.CONFIRMED, actor_id, confirmed_at=utcnow())


def mark_as_processing(db: Session, order: Order, actor_id: int | None = None) -> Order:
    return transition(db, order, OrderStatus.PROCESSING, actor_id)


def mark_as_shipped(db: Session, order: Order, actor_id: int | None = None) -> Order:
    return transition(db, order, OrderStatus.SHIPPED, actor_id, shipped_at=utcnow())


def mark_as_delivered(db: Session, order: Order, actor_id: int | None = None) -> Order:
    return transition(db, order, OrderStatus.DELIVERED, actor_id, delivered_at=utcnow())


def mark_as_cancelled(db: Session, order: Order, reason: str = "", actor_id: int | None = None) -> Order:
    note = f"Order cancelled: {reason}" if reason else None
    return transition(db, order, OrderStatus.CANCELLED, actor_id, note=note, cancelled_at=utcnow())
