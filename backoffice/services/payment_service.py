import logging

from sqlalchemy.orm import Session

from backoffice.models.order import Order, OrderPayment, PaymentMethod, PaymentStatus, enum_value
from backoffice.services.lifecycle_service import add_system_note
from backoffice.time_utils import utcnow

logger = logging.getLogger(__name__)


def current_payment(order: Order) -> OrderPayment | None:
    return order.current_payment


def update_payment_status(
    db: Session,
    order: Order,
    status,
    method=None,
    actor_id: int | None = None,
) -> OrderPayment:
    """Set the payment status of an order; creates the payment record if none exists.

    Stock is never touched here.
    """
    status = PaymentStatus(enum_value(status))
    method = PaymentMethod(enum_value(method)) if method else None
    paid_at = utcnow() if status == PaymentStatus.COMPLETED else None

    try:
        payment = order.current_payment
        if payment is None:
            payment = OrderPayment(
                payment_method=method or PaymentMethod.CASH,
                amount=order.total_amount,
                currency=order.currency,
                status=status,
                paid_at=paid_at,
            )
            order.payments.append(payment)
            db.add(payment)
        else:
            if method:
                payment.payment_method = method
            payment.amount = order.total_amount
            payment.status = status
            payment.paid_at = paid_at

        add_system_note(db, order, f"Payment status changed to {status.value}", actor_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    logger.info("Order %s payment status -> %s", order.order_number, status.value)
    return payment
