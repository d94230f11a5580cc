from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Iterable


def _order_day(created_at: Any) -> str:
    if isinstance(created_at, datetime):
        return created_at.date().isoformat()
    return str(created_at or "")[:10]


def _item_label(order: dict[str, Any]) -> str:
    return order.get("feteer_type") or order.get("sweet_type") or order.get("item_type") or "unknown"


def summarize(orders: Iterable[dict[str, Any]], start: date, end: date) -> dict[str, Any]:
    """
    Aggregate orders created between `start` and `end` (inclusive days).

    Daily stats cover every day in the window, zero-filled.
    """
    rows = list(orders)
    total_orders = len(rows)
    total_revenue = round(sum(float(o.get("price") or 0.0) for o in rows), 2)
    popular = Counter(_item_label(o) for o in rows)
    customers = Counter(o.get("customer_name") or "" for o in rows)
    statuses = Counter(o.get("status") or "" for o in rows)

    per_day: dict[str, dict[str, float]] = {}
    for o in rows:
        bucket = per_day.setdefault(_order_day(o.get("created_at")), {"orders": 0, "revenue": 0.0})
        bucket["orders"] += 1
        bucket["revenue"] += float(o.get("price") or 0.0)

    daily = []
    d = start
    while d <= end:
        key = d.isoformat()
        bucket = per_day.get(key, {"orders": 0, "revenue": 0.0})
        daily.append({"date": key, "orders": int(bucket["orders"]), "revenue": round(bucket["revenue"], 2)})
        d += timedelta(days=1)

    return {
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "average_order_value": round(total_revenue / total_orders, 2) if total_orders else 0.0,
        "popular_items": dict(popular.most_common()),
        "top_customers": dict(customers.most_common(10)),
        "status_breakdown": dict(statuses),
        "daily_stats": daily,
    }
