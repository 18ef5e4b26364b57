"""Plain-data payloads for order documents and the order-list CSV.

Renderers (PDF, print views) consume these dicts; no layout happens here.
"""

import csv
import io

from backoffice.models.order import Order, OrderAddress, enum_value
from backoffice.services.totals import money

DOCUMENT_KINDS = ("receipt", "invoice", "delivery-note")

ORDER_CSV_COLUMNS = [
    "order_number", "order_type", "order_date", "status", "payment_status",
    "customer_name", "customer_email", "customer_phone", "agent_code",
    "item_count", "subtotal", "shipping_cost", "tax_amount", "discount_amount",
    "total_amount", "currency",
]


def _amount(value) -> str:
    return str(money(value))


def _address(address: OrderAddress | None) -> dict | None:
    if address is None:
        return None
    return {
        "name": f"{address.first_name} {address.last_name}".strip(),
        "company": address.company,
        "email": address.email,
        "phone": address.phone,
        "lines": [line for line in (address.address_line_1, address.address_line_2) if line],
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def _party(order: Order) -> dict:
    party = {
        "name": order.display_customer_name,
        "email": order.customer_email,
        "phone": order.customer_phone,
    }
    if order.agent:
        party["agent_code"] = order.agent.agent_code
        party["address"] = order.agent.address
    return party


def _header(order: Order, title: str) -> dict:
    return {
        "document": title,
        "order_id": order.id,
        "order_number": order.order_number,
        "order_type": enum_value(order.order_type),
        "order_date": order.order_date.isoformat() if order.order_date else None,
        "status": enum_value(order.status),
        "customer": _party(order),
        "billing_address": _address(order.billing_address),
        "shipping_address": _address(order.shipping_address),
    }


def _priced_lines(order: Order) -> list[dict]:
    return [
        {
            "sku": item.sku,
            "product_name": item.product_name,
            "variant_name": item.variant_name,
            "warehouse": item.warehouse.name if item.warehouse else None,
            "quantity": item.quantity_ordered,
            "unit_price": _amount(item.unit_price),
            "total_price": _amount(item.total_price),
        }
        for item in order.items
    ]


def _totals(order: Order) -> dict:
    return {
        "currency": order.currency,
        "subtotal": _amount(order.subtotal),
        "shipping_cost": _amount(order.shipping_cost),
        "tax_rate": str(order.tax_rate),
        "tax_amount": _amount(order.tax_amount),
        "discount_amount": _amount(order.discount_amount),
        "total_amount": _amount(order.total_amount),
    }


def receipt_data(order: Order) -> dict:
    payment = order.current_payment
    data = _header(order, "receipt")
    data["items"] = _priced_lines(order)
    data["totals"] = _totals(order)
    data["payment"] = {
        "method": enum_value(payment.payment_method) if payment else None,
        "status": order.payment_status,
        "paid_at": payment.paid_at.isoformat() if payment and payment.paid_at else None,
    }
    return data


def invoice_data(order: Order) -> dict:
    data = _header(order, "invoice")
    data["items"] = _priced_lines(order)
    data["totals"] = _totals(order)
    data["payment_status"] = order.payment_status
    data["notes"] = order.customer_notes
    return data


def delivery_note_data(order: Order) -> dict:
    data = _header(order, "delivery-note")
    data["items"] = [
        {
            "sku": item.sku,
            "product_name": item.product_name,
            "variant_name": item.variant_name,
            "quantity": item.quantity_ordered,
        }
        for item in order.items
    ]
    data["total_quantity"] = sum(item.quantity_ordered for item in order.items)
    return data


def document_data(order: Order, kind: str) -> dict:
    if kind == "receipt":
        return receipt_data(order)
    if kind == "invoice":
        return invoice_data(order)
    if kind == "delivery-note":
        return delivery_note_data(order)
    raise ValueError(f"Unknown document '{kind}'. Expected one of: {', '.join(DOCUMENT_KINDS)}")


def orders_csv(orders: list[Order]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(ORDER_CSV_COLUMNS)
    for o in orders:
        writer.writerow([
            o.order_number,
            enum_value(o.order_type),
            o.order_date.strftime("%Y-%m-%d %H:%M") if o.order_date else "",
            enum_value(o.status),
            o.payment_status,
            o.display_customer_name,
            o.customer_email,
            o.customer_phone,
            o.agent.agent_code if o.agent else "",
            sum(i.quantity_ordered for i in o.items),
            _amount(o.subtotal),
            _amount(o.shipping_cost),
            _amount(o.tax_amount),
            _amount(o.discount_amount),
            _amount(o.total_amount),
            o.currency,
        ])
    return buf.getvalue()
