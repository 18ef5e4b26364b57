import logging
import uuid

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.models.agent import Agent
from backoffice.models.customer import Customer
from backoffice.models.order import (
    AddressType,
    NoteType,
    Order,
    OrderAddress,
    OrderItem,
    OrderNote,
    OrderPayment,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    enum_value,
)
from backoffice.models.product import Product, ProductVariant
from backoffice.models.stock import Warehouse
from backoffice.schemas.order import (
    AddressInput,
    AgentOrderCreate,
    OrderCreate,
    OrderItemCreate,
    OrderUpdate,
)
from backoffice.services import lifecycle_service, stock_service
from backoffice.services.totals import calculate_totals, line_total, money, to_decimal
from backoffice.time_utils import utcnow

logger = logging.getLogger(__name__)


def _generate_order_number(order_type: OrderType = OrderType.REGULAR) -> str:
    if order_type == OrderType.AGENT:
        return f"AGT-{uuid.uuid4().hex[:12].upper()}"
    date = utcnow().strftime("%Y%m%d")
    short = uuid.uuid4().hex[:6].upper()
    return f"PO-{date}-{short}"


def _unique_order_number(db: Session, order_type: OrderType) -> str:
    while True:
        number = _generate_order_number(order_type)
        if not get_order_by_number(db, number):
            return number


# --- Items ---

def _build_item(db: Session, item_data: OrderItemCreate, agent: Agent | None = None) -> OrderItem:
    """Validate references and snapshot product data into a new order item."""
    product = db.query(Product).filter(Product.id == item_data.product_id).first()
    if not product:
        raise ValueError(f"Product {item_data.product_id} not found")

    variant = None
    variant_name = ""
    if item_data.variant_id:
        variant = db.query(ProductVariant).filter(
            ProductVariant.id == item_data.variant_id,
            ProductVariant.product_id == product.id,
        ).first()
        if not variant:
            raise ValueError(f"Variant {item_data.variant_id} not found for product {product.sku}")
        variant_name = variant.name or " / ".join(variant.attributes.values() if variant.attributes else [])

    if item_data.warehouse_id:
        warehouse = db.query(Warehouse).filter(Warehouse.id == item_data.warehouse_id).first()
        if not warehouse:
            raise ValueError(f"Warehouse {item_data.warehouse_id} not found")

    # Price: explicit > agent tier price > variant price > product base price
    catalog_price = variant.effective_price if variant else product.base_price
    if item_data.unit_price is not None:
        unit_price = to_decimal(item_data.unit_price)
    elif agent is not None:
        unit_price = money(agent.tier_price(to_decimal(catalog_price)))
    else:
        unit_price = to_decimal(catalog_price)
    unit_cost = variant.effective_cost if variant else product.cost_price

    snapshot = product.snapshot()
    if variant:
        snapshot["variant"] = {"id": variant.id, "sku": variant.sku, "attributes": variant.attributes or {}}

    return OrderItem(
        product_id=product.id,
        product_variant_id=variant.id if variant else None,
        warehouse_id=item_data.warehouse_id,
        product_name=product.name,
        variant_name=variant_name,
        sku=variant.sku if variant else product.sku,
        product_snapshot=snapshot,
        quantity_ordered=item_data.quantity,
        unit_price=money(unit_price),
        unit_cost=money(unit_cost),
        total_price=money(line_total(item_data.quantity, unit_price)),
    )


def recalculate_totals(order: Order) -> None:
    """Recompute header totals from the order's items."""
    totals = calculate_totals(
        (line_total(i.quantity_ordered, i.unit_price) for i in order.items),
        shipping_cost=order.shipping_cost,
        tax_rate=order.tax_rate,
        discount_amount=order.discount_amount,
    ).rounded()
    order.subtotal = totals.subtotal
    order.shipping_cost = totals.shipping_cost
    order.tax_amount = totals.tax_amount
    order.discount_amount = totals.discount_amount
    order.total_amount = totals.total


def _set_address(order: Order, address_type: AddressType, data: AddressInput) -> None:
    existing = next((a for a in order.addresses if a.type == address_type), None)
    if existing:
        for field, value in data.model_dump().items():
            setattr(existing, field, value)
    else:
        order.addresses.append(OrderAddress(type=address_type, **data.model_dump()))


def _add_note(order: Order, message: str, note_type: NoteType, user_id: int | None, visible: bool = False) -> OrderNote:
    note = OrderNote(type=note_type, message=message, user_id=user_id, is_visible_to_customer=visible)
    order.notes.append(note)
    return note


# --- Create ---

def _create(
    db: Session,
    order: Order,
    data,
    agent: Agent | None,
    actor_id: int | None,
    note: str,
) -> Order:
    order.currency = data.currency or settings.DEFAULT_CURRENCY
    order.shipping_cost = to_decimal(data.shipping_cost)
    order.tax_rate = to_decimal(data.tax_rate)
    order.discount_amount = to_decimal(data.discount_amount)
    order.customer_notes = data.customer_notes
    order.created_by = actor_id
    if data.order_date:
        order.order_date = data.order_date

    for item_data in data.items:
        order.items.append(_build_item(db, item_data, agent))
    recalculate_totals(order)

    if data.billing_address:
        _set_address(order, AddressType.BILLING, data.billing_address)
    if data.shipping_address:
        _set_address(order, AddressType.SHIPPING, data.shipping_address)

    order.payments.append(OrderPayment(
        payment_method=data.payment_method,
        amount=order.total_amount,
        currency=order.currency,
        status=data.payment_status,
        paid_at=utcnow() if data.payment_status == PaymentStatus.COMPLETED else None,
    ))
    _add_note(order, note, NoteType.SYSTEM, actor_id)

    try:
        db.add(order)
        db.flush()
        # Orders start out of stock; an initial deducting status takes stock now
        lifecycle_service.reconcile(db, order, OrderStatus.PENDING, data.status, actor_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Created %s order %s (%s)", enum_value(order.order_type), order.order_number, data.status.value)
    return order


def create_order(db: Session, data: OrderCreate, actor_id: int | None = None) -> Order:
    customer = None
    if data.customer_id is not None:
        customer = db.query(Customer).filter(Customer.id == data.customer_id).first()
        if not customer:
            raise ValueError(f"Customer {data.customer_id} not found")

    order = Order(
        order_number=_unique_order_number(db, OrderType.REGULAR),
        order_type=OrderType.REGULAR,
        status=data.status,
        customer_id=customer.id if customer else None,
        guest_email=data.guest_email if not customer else None,
        customer_name=data.customer_name or (customer.name if customer else ""),
        customer_phone=data.customer_phone or (customer.phone if customer else ""),
    )
    return _create(db, order, data, None, actor_id, "Order created manually")


def create_agent_order(db: Session, data: AgentOrderCreate, actor_id: int | None = None) -> Order:
    agent = db.query(Agent).filter(Agent.id == data.agent_id).first()
    if not agent:
        raise ValueError(f"Agent {data.agent_id} not found")
    if not agent.is_active:
        raise ValueError(f"Agent {agent.agent_code} is not active")

    order = Order(
        order_number=_unique_order_number(db, OrderType.AGENT),
        order_type=OrderType.AGENT,
        status=data.status,
        agent_id=agent.id,
        customer_name=agent.name,
        customer_phone=agent.phone,
    )
    if data.billing_address:
        data.billing_address.email = data.billing_address.email or agent.email
        data.billing_address.phone = data.billing_address.phone or agent.phone
    return _create(db, order, data, agent, actor_id, "Agent order created manually")


# --- Read ---

def get_order(db: Session, order_id: int) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def get_regular_order(db: Session, order_id: int) -> Order | None:
    order = get_order(db, order_id)
    if order is None or order.is_agent_order:
        return None
    return order


def get_agent_order(db: Session, order_id: int) -> Order | None:
    order = get_order(db, order_id)
    if order is None or not order.is_agent_order:
        return None
    return order


def get_order_by_number(db: Session, order_number: str) -> Order | None:
    return db.query(Order).filter(Order.order_number == order_number).first()


def list_orders(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status: OrderStatus | None = None,
    order_type: OrderType | None = None,
    agent_id: int | None = None,
    customer_id: int | None = None,
    search: str | None = None,
) -> list[Order]:
    q = db.query(Order)
    if status:
        q = q.filter(Order.status == status)
    if order_type:
        q = q.filter(Order.order_type == order_type)
    if agent_id:
        q = q.filter(Order.agent_id == agent_id)
    if customer_id:
        q = q.filter(Order.customer_id == customer_id)
    if search:
        like = f"%{search}%"
        q = q.filter(
            Order.order_number.ilike(like)
            | Order.customer_name.ilike(like)
            | Order.guest_email.ilike(like)
        )
    return q.order_by(Order.id.desc()).offset(skip).limit(limit).all()


# --- Update ---

def update_order(db: Session, order: Order, data: OrderUpdate, actor_id: int | None = None) -> Order:
    """Edit an order in one transaction.

    New items replace the old ones wholesale. While the order holds stock the
    old items are restored and the new ones deducted, so the ledger follows
    the edit.
    """
    fields = data.model_dump(exclude_unset=True)
    previous = OrderStatus(order.status)
    new_status = data.status or previous
    if settings.ENFORCE_STATUS_TRANSITIONS and not lifecycle_service.can_transition(previous, new_status):
        raise lifecycle_service.LifecycleError(
            f"Cannot change order status from {previous.value} to {new_status.value}"
        )

    agent = None
    if order.is_agent_order:
        agent = order.agent
        if data.agent_id and data.agent_id != order.agent_id:
            agent = db.query(Agent).filter(Agent.id == data.agent_id).first()
            if not agent:
                raise ValueError(f"Agent {data.agent_id} not found")
            order.agent_id = agent.id
            order.customer_name = agent.name
            order.customer_phone = agent.phone
    elif data.agent_id:
        raise ValueError("Cannot assign an agent to a regular order")

    new_items = [_build_item(db, i, agent) for i in data.items] if data.items else None

    try:
        if new_items is not None:
            reason = "Order items replaced"
            if previous in lifecycle_service.DEDUCTING_STATUSES:
                for item in order.items:
                    stock_service.restore_item(db, order, item, reason, actor_id)
            order.items.clear()
            db.flush()
            order.items.extend(new_items)
            db.flush()
            if previous in lifecycle_service.DEDUCTING_STATUSES:
                for item in order.items:
                    stock_service.deduct_item(db, order, item, reason, actor_id)

        for field in ("shipping_cost", "tax_rate", "discount_amount"):
            if field in fields:
                setattr(order, field, to_decimal(fields[field]))
        for field in ("customer_notes", "customer_name", "customer_phone"):
            if fields.get(field) is not None:
                setattr(order, field, fields[field])
        if data.guest_email is not None and not order.is_agent_order and order.customer_id is None:
            order.guest_email = data.guest_email
        if data.billing_address:
            _set_address(order, AddressType.BILLING, data.billing_address)
        if data.shipping_address:
            _set_address(order, AddressType.SHIPPING, data.shipping_address)

        recalculate_totals(order)

        if new_status != previous:
            order.status = new_status
            lifecycle_service.reconcile(db, order, previous, new_status, actor_id)
            _add_note(order, f"Order status changed from {previous.value} to {new_status.value}", NoteType.SYSTEM, actor_id)

        payment = order.current_payment
        status = data.payment_status or (PaymentStatus(payment.status) if payment else PaymentStatus.PENDING)
        paid_at = utcnow() if status == PaymentStatus.COMPLETED else None
        if payment:
            if data.payment_method:
                payment.payment_method = data.payment_method
            payment.amount = order.total_amount
            if data.payment_status:
                payment.status = status
                payment.paid_at = paid_at
        else:
            order.payments.append(OrderPayment(
                payment_method=data.payment_method or PaymentMethod.CASH,
                amount=order.total_amount,
                currency=order.currency,
                status=status,
                paid_at=paid_at,
            ))

        _add_note(order, "Order updated", NoteType.SYSTEM, actor_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Updated order %s", order.order_number)
    return order


# --- Notes ---

def add_note(
    db: Session, order: Order, message: str, note_type: str = "internal", user_id: int | None = None
) -> OrderNote:
    note_type = NoteType(note_type)
    note = _add_note(order, message, note_type, user_id, visible=note_type == NoteType.CUSTOMER)
    db.commit()
    db.refresh(note)
    return note


def add_customer_note(db: Session, order: Order, message: str, user_id: int | None = None) -> OrderNote:
    return add_note(db, order, message, NoteType.CUSTOMER.value, user_id)


def add_internal_note(db: Session, order: Order, message: str, user_id: int | None = None) -> OrderNote:
    return add_note(db, order, message, NoteType.INTERNAL.value, user_id)
