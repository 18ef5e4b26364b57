from datetime import datetime
from decimal import Decimal

import pytest

from backoffice.models.order import Order, OrderPayment, PaymentMethod, PaymentStatus
from backoffice.services import payment_service


@pytest.fixture
def bare_order(db):
    order = Order(order_number="PO-20260101-ABC123", total_amount=Decimal("12.00"), currency="MYR")
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


class TestUpdatePaymentStatus:
    def test_creates_payment_when_missing(self, db, bare_order):
        payment = payment_service.update_payment_status(db, bare_order, "completed")
        assert payment.payment_method == PaymentMethod.CASH
        assert payment.amount == Decimal("12.00")
        assert payment.currency == "MYR"
        assert payment.paid_at is not None
        assert bare_order.payment_status == "completed"

    def test_latest_payment_is_updated(self, db, bare_order):
        """Older payments are history; only the newest one changes."""
        old = OrderPayment(status=PaymentStatus.FAILED, created_at=datetime(2026, 1, 1, 9, 0))
        new = OrderPayment(status=PaymentStatus.PENDING, created_at=datetime(2026, 1, 2, 9, 0))
        bare_order.payments.extend([new, old])
        db.commit()

        assert bare_order.current_payment.id == new.id
        payment_service.update_payment_status(db, bare_order, PaymentStatus.COMPLETED, PaymentMethod.FPX)

        db.refresh(old)
        db.refresh(new)
        assert new.status == PaymentStatus.COMPLETED
        assert new.payment_method == PaymentMethod.FPX
        assert old.status == PaymentStatus.FAILED
        assert len(bare_order.payments) == 2

    def test_leaving_completed_clears_paid_at(self, db, make_order):
        order = make_order()
        payment_service.update_payment_status(db, order, "completed")
        assert order.current_payment.paid_at is not None
        payment_service.update_payment_status(db, order, "failed")
        assert order.current_payment.paid_at is None
        assert order.payment_status == "failed"

    def test_adds_note(self, db, user, make_order):
        order = make_order()
        payment_service.update_payment_status(db, order, "refunded", actor_id=user.id)
        assert order.notes[-1].message == "Payment status changed to refunded"
        assert order.notes[-1].user_id == user.id

    def test_does_not_touch_stock(self, db, stock, make_order):
        order = make_order()
        payment_service.update_payment_status(db, order, "completed")
        assert stock.quantity == 10

    def test_unknown_status(self, db, make_order):
        order = make_order()
        with pytest.raises(ValueError):
            payment_service.update_payment_status(db, order, "bounced")
