import re
from decimal import Decimal

import pytest
from pydantic import ValidationError

from backoffice.models.agent import PricingTier
from backoffice.models.customer import Customer
from backoffice.models.order import NoteType, OrderStatus, OrderType
from backoffice.schemas.agent import AgentCreate
from backoffice.schemas.order import AgentOrderCreate, OrderCreate, OrderUpdate
from backoffice.services import agent_service, lifecycle_service, order_service, stock_service


class TestOrderNumbers:
    def test_regular_format(self):
        number = order_service._generate_order_number(OrderType.REGULAR)
        assert re.fullmatch(r"PO-\d{8}-[0-9A-F]{6}", number)

    def test_agent_format(self):
        number = order_service._generate_order_number(OrderType.AGENT)
        assert re.fullmatch(r"AGT-[0-9A-F]{12}", number)

    def test_agent_codes_follow_type(self, db):
        company = agent_service.create_agent(db, AgentCreate(name="Syarikat Buku", type="company"))
        store = agent_service.create_agent(db, AgentCreate(name="Kedai Buku", type="bookstore"))
        assert re.fullmatch(r"CO-[0-9A-F]{6}", company.agent_code)
        assert re.fullmatch(r"BS-[0-9A-F]{6}", store.agent_code)


class TestCreateOrder:
    def test_guest_order(self, db, user, product, product_b, warehouse):
        data = OrderCreate(
            guest_email="buyer@example.com",
            customer_name="Aminah",
            items=[
                {"product_id": product.id, "warehouse_id": warehouse.id, "quantity": 2},
                {"product_id": product_b.id, "warehouse_id": warehouse.id, "quantity": 1},
            ],
            shipping_cost="3.00",
            tax_rate="6",
        )
        order = order_service.create_order(db, data, actor_id=user.id)

        assert order.order_type == OrderType.REGULAR
        assert order.status == OrderStatus.PENDING
        assert order.subtotal == Decimal("25.50")
        assert order.tax_amount == Decimal("1.53")
        assert order.total_amount == Decimal("30.03")
        assert order.customer_email == "buyer@example.com"
        assert order.payment_status == "pending"
        assert order.current_payment.amount == Decimal("30.03")
        assert order.notes[0].message == "Order created manually"
        assert order.notes[0].type == NoteType.SYSTEM
        assert order.created_by == user.id

    def test_item_snapshot(self, db, product, make_order):
        order = make_order(quantity=2)
        [item] = order.items
        assert item.product_name == "Buku Latihan"
        assert item.sku == "BK-001"
        assert item.unit_price == Decimal("10.00")
        assert item.unit_cost == Decimal("6.00")
        assert item.total_price == Decimal("20.00")
        assert item.product_snapshot["sku"] == "BK-001"

        # Later catalog changes do not reach existing orders
        product.name = "Renamed"
        product.base_price = Decimal("99.00")
        db.commit()
        db.refresh(item)
        assert item.product_name == "Buku Latihan"
        assert item.unit_price == Decimal("10.00")

    def test_registered_customer(self, db, product):
        customer = Customer(name="Siti", email="siti@example.com", phone="011")
        db.add(customer)
        db.commit()
        data = OrderCreate(customer_id=customer.id, items=[{"product_id": product.id}])
        order = order_service.create_order(db, data)
        assert order.customer_id == customer.id
        assert order.guest_email is None
        assert order.display_customer_name == "Siti"
        assert order.customer_email == "siti@example.com"

    def test_unknown_customer(self, db, product):
        data = OrderCreate(customer_id=404, items=[{"product_id": product.id}])
        with pytest.raises(ValueError, match="Customer 404 not found"):
            order_service.create_order(db, data)

    def test_unknown_product(self, db):
        data = OrderCreate(guest_email="a@b.c", customer_name="A", items=[{"product_id": 999}])
        with pytest.raises(ValueError, match="Product 999 not found"):
            order_service.create_order(db, data)

    def test_unknown_warehouse(self, db, product):
        data = OrderCreate(guest_email="a@b.c", customer_name="A", items=[{"product_id": product.id, "warehouse_id": 77}])
        with pytest.raises(ValueError, match="Warehouse 77 not found"):
            order_service.create_order(db, data)

    def test_initial_processing_takes_stock(self, db, stock, make_order):
        order = make_order(quantity=3, status="processing")
        assert order.status == OrderStatus.PROCESSING
        assert stock.quantity == 7
        assert len(stock_service.movements_for_order(db, order.id)) == 1

    def test_initial_pending_leaves_stock(self, db, stock, make_order):
        make_order(quantity=3)
        assert stock.quantity == 10

    def test_completed_payment_is_stamped(self, db, make_order):
        order = make_order(payment_status="completed", payment_method="fpx")
        assert order.current_payment.paid_at is not None
        assert order.payment_status == "completed"


class TestOrderSchemas:
    def test_guest_needs_name(self):
        with pytest.raises(ValidationError):
            OrderCreate(guest_email="a@b.c", items=[{"product_id": 1}])

    def test_customer_or_guest_not_both(self):
        with pytest.raises(ValidationError):
            OrderCreate(customer_id=1, guest_email="a@b.c", customer_name="A", items=[{"product_id": 1}])

    def test_needs_a_customer(self):
        with pytest.raises(ValidationError):
            OrderCreate(items=[{"product_id": 1}])

    def test_needs_items(self):
        with pytest.raises(ValidationError):
            OrderCreate(guest_email="a@b.c", customer_name="A", items=[])

    def test_quantity_at_least_one(self):
        with pytest.raises(ValidationError):
            OrderCreate(guest_email="a@b.c", customer_name="A", items=[{"product_id": 1, "quantity": 0}])


class TestAgentOrders:
    def test_tier_price_applied(self, db, agent, make_agent_order):
        """Standard tier takes 10% off the 10.00 base price."""
        order = make_agent_order(quantity=2)
        assert order.order_type == OrderType.AGENT
        assert order.order_number.startswith("AGT-")
        [item] = order.items
        assert item.unit_price == Decimal("9.00")
        assert order.subtotal == Decimal("18.00")
        assert order.customer_name == "Kedai Ilmu"
        assert order.guest_email is None
        assert order.customer_email == "ilmu@example.com"
        assert order.notes[0].message == "Agent order created manually"

    def test_vip_tier(self, db, agent, make_agent_order):
        agent.pricing_tier = PricingTier.VIP
        db.commit()
        order = make_agent_order(quantity=1)
        assert order.items[0].unit_price == Decimal("8.00")

    def test_explicit_price_wins(self, db, agent, product, warehouse):
        data = AgentOrderCreate(
            agent_id=agent.id,
            items=[{"product_id": product.id, "warehouse_id": warehouse.id, "unit_price": "7.25"}],
        )
        order = order_service.create_agent_order(db, data)
        assert order.items[0].unit_price == Decimal("7.25")

    def test_inactive_agent_rejected(self, db, agent, product):
        agent.is_active = False
        db.commit()
        data = AgentOrderCreate(agent_id=agent.id, items=[{"product_id": product.id}])
        with pytest.raises(ValueError, match="not active"):
            order_service.create_agent_order(db, data)

    def test_unknown_agent(self, db, product):
        data = AgentOrderCreate(agent_id=404, items=[{"product_id": product.id}])
        with pytest.raises(ValueError, match="Agent 404 not found"):
            order_service.create_agent_order(db, data)

    def test_initial_processing_takes_stock(self, db, stock, make_agent_order):
        make_agent_order(quantity=2, status="processing")
        assert stock.quantity == 8

    def test_kind_specific_lookups(self, db, make_order, make_agent_order):
        regular = make_order()
        agent_order = make_agent_order()
        assert order_service.get_agent_order(db, regular.id) is None
        assert order_service.get_regular_order(db, agent_order.id) is None
        assert order_service.get_agent_order(db, agent_order.id).id == agent_order.id
        assert order_service.get_regular_order(db, regular.id).id == regular.id

    def test_tier_price_helper(self, agent):
        quote = agent_service.tier_price(agent, Decimal("10.00"))
        assert quote["discount_percentage"] == 10
        assert quote["price"] == Decimal("9.00")


class TestListOrders:
    def test_filters(self, db, make_order, make_agent_order, agent):
        regular = make_order()
        agent_order = make_agent_order()
        assert [o.id for o in order_service.list_orders(db, order_type=OrderType.REGULAR)] == [regular.id]
        assert [o.id for o in order_service.list_orders(db, agent_id=agent.id)] == [agent_order.id]
        assert [o.id for o in order_service.list_orders(db, search="Guest")] == [regular.id]
        assert order_service.get_order_by_number(db, regular.order_number).id == regular.id


class TestUpdateOrder:
    def test_replaces_items_and_recalculates(self, db, product_b, warehouse, make_order):
        order = make_order(quantity=3)
        data = OrderUpdate(
            items=[{"product_id": product_b.id, "warehouse_id": warehouse.id, "quantity": 2}],
            shipping_cost="4.00",
        )
        order = order_service.update_order(db, order, data)
        assert [i.product_id for i in order.items] == [product_b.id]
        assert order.subtotal == Decimal("11.00")
        assert order.total_amount == Decimal("15.00")
        assert order.current_payment.amount == Decimal("15.00")
        assert order.notes[-1].message == "Order updated"

    def test_item_edit_while_holding_stock_moves_ledger(self, db, product, warehouse, stock, make_order):
        order = make_order(quantity=3)
        lifecycle_service.mark_as_processing(db, order)
        assert stock.quantity == 7

        data = OrderUpdate(items=[{"product_id": product.id, "warehouse_id": warehouse.id, "quantity": 5}])
        order_service.update_order(db, order, data)
        assert stock.quantity == 5
        quantities = [m.quantity for m in stock_service.movements_for_order(db, order.id)]
        assert quantities == [-3, 3, -5]

    def test_item_edit_and_cancel_restores_new_items_once(self, db, product, warehouse, stock, make_order):
        order = make_order(quantity=3)
        lifecycle_service.mark_as_processing(db, order)

        data = OrderUpdate(
            items=[{"product_id": product.id, "warehouse_id": warehouse.id, "quantity": 5}],
            status="cancelled",
        )
        order_service.update_order(db, order, data)
        assert stock.quantity == 10

    def test_status_change_reconciles_stock(self, db, stock, make_order):
        order = make_order(quantity=3)
        order = order_service.update_order(db, order, OrderUpdate(status="shipped"))
        assert order.status == OrderStatus.SHIPPED
        assert stock.quantity == 7
        messages = [n.message for n in order.notes]
        assert "Order status changed from pending to shipped" in messages

    def test_payment_fields(self, db, make_order):
        order = make_order()
        order = order_service.update_order(db, order, OrderUpdate(payment_status="completed", payment_method="bank_transfer"))
        assert order.payment_status == "completed"
        assert order.current_payment.paid_at is not None

    def test_agent_cannot_be_set_on_regular_order(self, db, agent, make_order):
        order = make_order()
        with pytest.raises(ValueError, match="regular order"):
            order_service.update_order(db, order, OrderUpdate(agent_id=agent.id))

    def test_reassign_agent(self, db, make_agent_order):
        order = make_agent_order()
        other = agent_service.create_agent(db, AgentCreate(name="Pustaka Maju", phone="0199"))
        order = order_service.update_order(db, order, OrderUpdate(agent_id=other.id))
        assert order.agent_id == other.id
        assert order.customer_name == "Pustaka Maju"


class TestNotes:
    def test_customer_note_is_visible(self, db, user, make_order):
        order = make_order()
        note = order_service.add_customer_note(db, order, "Your parcel is on the way", user_id=user.id)
        assert note.type == NoteType.CUSTOMER
        assert note.is_visible_to_customer is True

    def test_internal_note_is_hidden(self, db, make_order):
        order = make_order()
        note = order_service.add_internal_note(db, order, "Check address")
        assert note.is_visible_to_customer is False
