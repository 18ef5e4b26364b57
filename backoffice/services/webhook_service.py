import logging

import httpx

from backoffice.config import settings
from backoffice.models.order import Order, enum_value

logger = logging.getLogger(__name__)


def webhook_urls() -> list[str]:
    if not settings.WEBHOOK_URLS:
        return []
    return [u.strip() for u in settings.WEBHOOK_URLS.split(",") if u.strip()]


def build_payload(order: Order, event: str = "order.updated") -> dict:
    return {
        "event": event,
        "order_id": order.id,
        "order_number": order.order_number,
        "order_type": enum_value(order.order_type),
        "status": enum_value(order.status),
        "payment_status": order.payment_status,
        "customer_name": order.display_customer_name,
        "customer_email": order.customer_email,
        "totals": {
            "currency": order.currency,
            "subtotal": str(order.subtotal),
            "shipping_cost": str(order.shipping_cost),
            "tax_amount": str(order.tax_amount),
            "discount_amount": str(order.discount_amount),
            "total_amount": str(order.total_amount),
        },
    }


def send_payload(payload: dict) -> list[dict]:
    """POST a prepared payload to every configured URL. Failures are logged, not raised."""
    urls = webhook_urls()
    if not urls:
        return []

    results = []
    with httpx.Client(timeout=10.0) as client:
        for url in urls:
            try:
                resp = client.post(url, json=payload)
                results.append({"url": url, "status": resp.status_code, "success": resp.is_success})
            except httpx.HTTPError as e:
                logger.error("Webhook failed for %s: %s", url, e)
                results.append({"url": url, "status": 0, "success": False, "error": str(e)})
    return results
