"""Dashboard numbers for the admin panel, computed in application code."""

from collections import Counter
from datetime import datetime
from typing import List

from order_status import TERMINAL_STATUSES
from storage import as_utc, public_user

RECENT_USERS = 5


def _same_day(value, now: datetime) -> bool:
    value = as_utc(value)
    return value is not None and value.date() == now.date()


def build_analytics(users: List[dict], orders: List[dict], now: datetime) -> dict:
    verified = sum(1 for u in users if u.get("is_verified"))
    recent = sorted(users, key=lambda u: as_utc(u.get("created_at")) or now, reverse=True)[:RECENT_USERS]

    terminal = {s.value for s in TERMINAL_STATUSES}
    todays_orders = [o for o in orders if _same_day(o.get("created_at"), now)]
    billable = [o for o in orders if o.get("status") != "cancelled"]
    revenue = round(sum(float(o.get("total") or 0) for o in billable), 2)
    revenue_today = round(
        sum(float(o.get("total") or 0) for o in todays_orders if o.get("status") != "cancelled"), 2
    )

    return {
        "users": {
            "total": len(users),
            "verified": verified,
            "unverified": len(users) - verified,
            "recent_users": [public_user(u) for u in recent],
        },
        "orders": {
            "total": len(orders),
            "active": sum(1 for o in orders if o.get("status") not in terminal),
            "today": len(todays_orders),
            "status_breakdown": dict(Counter(o.get("status") for o in orders)),
        },
        "revenue": {
            "total": revenue,
            "today": revenue_today,
            "average": round(revenue / len(billable), 2) if billable else 0.0,
        },
    }
