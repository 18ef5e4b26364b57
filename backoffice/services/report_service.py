import calendar
import csv
import io
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.models.agent import Agent, AgentType
from backoffice.models.order import Order, OrderItem, OrderStatus, OrderType, enum_value
from backoffice.services.totals import ZERO, money, to_decimal

COMPLETED_STATUSES = {OrderStatus.DELIVERED.value}
PENDING_STATUSES = {
    OrderStatus.PENDING.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
}
CANCELLED_STATUSES = {
    OrderStatus.CANCELLED.value,
    OrderStatus.REFUNDED.value,
    OrderStatus.RETURNED.value,
}
# Orders that never count towards revenue
NON_REVENUE_STATUSES = {
    OrderStatus.CANCELLED.value,
    OrderStatus.REFUNDED.value,
    OrderStatus.DRAFT.value,
}

AGENT_TYPES = [t.value for t in AgentType]


def _amount(value) -> float:
    return float(money(value))


def _year_range(year: int) -> tuple[datetime, datetime]:
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)


def _agent_orders_for_year(db: Session, year: int, agent_type: AgentType | None = None):
    start, end = _year_range(year)
    q = (
        db.query(Order, Agent)
        .join(Agent, Order.agent_id == Agent.id)
        .filter(Order.order_date >= start, Order.order_date < end)
    )
    if agent_type:
        q = q.filter(Agent.type == agent_type)
    return q.all()


def available_years(db: Session) -> list[int]:
    dates = db.query(Order.order_date).filter(Order.agent_id.isnot(None)).all()
    years = {d.year for (d,) in dates if d}
    return sorted(years, reverse=True)


def _empty_month(month: int) -> dict:
    return {
        "month": month,
        "month_name": calendar.month_name[month],
        "total_orders": 0,
        "completed_orders": 0,
        "pending_orders": 0,
        "cancelled_orders": 0,
        "total_revenue": ZERO,
        "avg_order_value": ZERO,
        "by_type": {t: {"orders": 0, "revenue": ZERO} for t in AGENT_TYPES},
    }


def agent_performance(db: Session, year: int, agent_type: AgentType | None = None, top: int = 10) -> dict:
    """Monthly agent order counts and revenue for one calendar year (by order date)."""
    months = {m: _empty_month(m) for m in range(1, 13)}
    agents: dict[int, dict] = {}

    rows = _agent_orders_for_year(db, year, agent_type)
    for order, agent in rows:
        status = enum_value(order.status)
        a_type = enum_value(agent.type)
        month = months[order.order_date.month]
        month["total_orders"] += 1
        if status in COMPLETED_STATUSES:
            month["completed_orders"] += 1
        elif status in PENDING_STATUSES:
            month["pending_orders"] += 1
        elif status in CANCELLED_STATUSES:
            month["cancelled_orders"] += 1

        if status in NON_REVENUE_STATUSES:
            continue
        total = to_decimal(order.total_amount)
        month["total_revenue"] += total
        month["by_type"][a_type]["orders"] += 1
        month["by_type"][a_type]["revenue"] += total

        stats = agents.setdefault(agent.id, {
            "id": agent.id,
            "name": agent.name,
            "agent_code": agent.agent_code,
            "type": a_type,
            "pricing_tier": enum_value(agent.pricing_tier),
            "total_orders": 0,
            "completed_orders": 0,
            "total_revenue": ZERO,
        })
        stats["total_orders"] += 1
        stats["total_revenue"] += total
        if status in COMPLETED_STATUSES:
            stats["completed_orders"] += 1

    for month in months.values():
        if month["total_orders"]:
            month["avg_order_value"] = month["total_revenue"] / month["total_orders"]

    total_orders = sum(m["total_orders"] for m in months.values())
    completed = sum(m["completed_orders"] for m in months.values())
    revenue = sum((m["total_revenue"] for m in months.values()), ZERO)
    summary = {
        "total_orders": total_orders,
        "completed_orders": completed,
        "pending_orders": sum(m["pending_orders"] for m in months.values()),
        "cancelled_orders": sum(m["cancelled_orders"] for m in months.values()),
        "total_revenue": _amount(revenue),
        "avg_order_value": _amount(revenue / total_orders) if total_orders else 0.0,
        "avg_monthly_revenue": _amount(revenue / 12),
        "completion_rate": round(completed / total_orders * 100, 2) if total_orders else 0.0,
    }

    type_breakdown = {t: {"orders": 0, "revenue": ZERO} for t in AGENT_TYPES}
    for month in months.values():
        for t, data in month["by_type"].items():
            type_breakdown[t]["orders"] += data["orders"]
            type_breakdown[t]["revenue"] += data["revenue"]

    max_revenue = max((a["total_revenue"] for a in agents.values()), default=ZERO)
    top_agents = sorted(agents.values(), key=lambda a: a["total_revenue"], reverse=True)[:top]
    for a in top_agents:
        a["avg_order_value"] = _amount(a["total_revenue"] / a["total_orders"])
        a["completion_rate"] = round(a["completed_orders"] / a["total_orders"] * 100, 2)
        a["revenue_percentage"] = round(float(a["total_revenue"] / max_revenue * 100), 2) if max_revenue else 0.0
        a["total_revenue"] = _amount(a["total_revenue"])

    month_list = []
    for month in months.values():
        month["total_revenue"] = _amount(month["total_revenue"])
        month["avg_order_value"] = _amount(month["avg_order_value"])
        for data in month["by_type"].values():
            data["revenue"] = _amount(data["revenue"])
        month_list.append(month)

    return {
        "year": year,
        "agent_type": enum_value(agent_type),
        "months": month_list,
        "summary": summary,
        "type_breakdown": {t: {"orders": d["orders"], "revenue": _amount(d["revenue"])} for t, d in type_breakdown.items()},
        "top_products": top_products(
            db, limit=top, start_date=_year_range(year)[0], end_date=_year_range(year)[1],
            order_type=OrderType.AGENT, agent_type=agent_type,
        ),
        "top_agents": top_agents,
    }


def agent_performance_csv(report: dict) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    header = ["Month", "Total Orders", "Completed", "Pending", "Cancelled", "Revenue", "Avg Order Value"]
    for t in AGENT_TYPES:
        label = t.capitalize()
        header += [f"{label} Orders", f"{label} Revenue"]
    writer.writerow(header)
    for m in report["months"]:
        row = [
            m["month_name"],
            m["total_orders"],
            m["completed_orders"],
            m["pending_orders"],
            m["cancelled_orders"],
            f"{m['total_revenue']:.2f}",
            f"{m['avg_order_value']:.2f}",
        ]
        for t in AGENT_TYPES:
            row += [m["by_type"][t]["orders"], f"{m['by_type'][t]['revenue']:.2f}"]
        writer.writerow(row)
    return buf.getvalue()


def order_summary(
    db: Session,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    order_type: OrderType | None = None,
) -> dict:
    q = db.query(Order)
    if start_date:
        q = q.filter(Order.order_date >= start_date)
    if end_date:
        q = q.filter(Order.order_date < end_date)
    if order_type:
        q = q.filter(Order.order_type == order_type)

    orders = q.all()
    by_status: dict[str, int] = {}
    by_payment_status: dict[str, int] = {}
    revenue = ZERO
    shipping = ZERO
    tax = ZERO

    for o in orders:
        status = enum_value(o.status)
        by_status[status] = by_status.get(status, 0) + 1
        by_payment_status[o.payment_status] = by_payment_status.get(o.payment_status, 0) + 1
        if status in NON_REVENUE_STATUSES:
            continue
        revenue += to_decimal(o.total_amount)
        shipping += to_decimal(o.shipping_cost)
        tax += to_decimal(o.tax_amount)

    return {
        "total_orders": len(orders),
        "orders_by_status": by_status,
        "orders_by_payment_status": by_payment_status,
        "total_revenue": _amount(revenue),
        "total_shipping_cost": _amount(shipping),
        "total_tax": _amount(tax),
        "date_range": {
            "start": start_date.isoformat() if start_date else None,
            "end": end_date.isoformat() if end_date else None,
        },
    }


def top_products(
    db: Session,
    limit: int = 10,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    order_type: OrderType | None = None,
    agent_type: AgentType | None = None,
) -> list[dict]:
    q = (
        db.query(
            OrderItem.product_id,
            OrderItem.sku,
            OrderItem.product_name,
            func.count(func.distinct(OrderItem.order_id)).label("order_count"),
            func.sum(OrderItem.quantity_ordered).label("total_sold"),
            func.sum(OrderItem.total_price).label("total_revenue"),
        )
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.status.notin_(list(NON_REVENUE_STATUSES)))
    )
    if start_date:
        q = q.filter(Order.order_date >= start_date)
    if end_date:
        q = q.filter(Order.order_date < end_date)
    if order_type:
        q = q.filter(Order.order_type == order_type)
    if agent_type:
        q = q.join(Agent, Order.agent_id == Agent.id).filter(Agent.type == agent_type)

    results = (
        q.group_by(OrderItem.product_id, OrderItem.sku, OrderItem.product_name)
        .order_by(func.sum(OrderItem.total_price).desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "product_id": r.product_id,
            "sku": r.sku,
            "name": r.product_name,
            "order_count": int(r.order_count),
            "total_sold": int(r.total_sold),
            "total_revenue": _amount(r.total_revenue),
        }
        for r in results
    ]
