"""
Dashboard aggregator

Revenue, sales, new subscriptions and active users for a window and for the
window of equal length right before it, plus a gap-free daily series and the
latest orders. Read-only; the independent queries run concurrently.
"""

import asyncio
import calendar
import re
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from ..database import utcnow
from ..errors import InvalidInput
from .orders import attach_users

REVENUE_STATUSES = ["paid", "shipped", "delivered"]
DEFAULT_RANGE = "30d"
RANGE_PATTERN = re.compile(r"^([0-9]{1,3})([dwmy])$", re.IGNORECASE)
METRICS = ("totalRevenue", "subscriptions", "sales", "activeNow")


def shift_months(moment: datetime, months: int) -> datetime:
    """``moment`` moved back ``months`` calendar months, day clamped to the month's end."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_range(token: Optional[str], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Turn ``30d``/``12w``/``6m``/``1y`` into ``(start, now)``; anything unparseable means 30 days."""
    now = now or utcnow()
    match = RANGE_PATTERN.match((token or DEFAULT_RANGE).strip())
    if not match:
        return now - timedelta(days=30), now
    count, unit = int(match.group(1)), match.group(2).lower()
    if unit == "d":
        start = now - timedelta(days=count)
    elif unit == "w":
        start = now - timedelta(weeks=count)
    elif unit == "m":
        start = shift_months(now, count)
    else:
        start = shift_months(now, 12 * count)
    return start, now


def resolve_window(token: Optional[str], start: Optional[datetime], end: Optional[datetime],
                   now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """An explicit ``[start, end]`` wins over the shorthand token."""
    if start is None and end is None:
        return parse_range(token, now)
    now = now or utcnow()
    end = end or now
    start = start or end - timedelta(days=30)
    if start > end:
        raise InvalidInput("startDate must be before endDate")
    return start, end


def percent_change(current: float, previous: float) -> float:
    if previous == 0 and current == 0:
        return 0
    if previous == 0:
        return 100
    return (current - previous) / previous * 100


def daily_series(start: datetime, end: datetime, buckets: Dict[str, dict]) -> List[dict]:
    """One point per calendar day from start to end inclusive; missing days are zero."""
    series = []
    day: date = start.date()
    while day <= end.date():
        key = day.isoformat()
        bucket = buckets.get(key, {})
        series.append({"date": key, "revenue": bucket.get("revenue", 0) or 0, "orders": bucket.get("orders", 0) or 0})
        day += timedelta(days=1)
    return series


class DashboardAggregator:
    def __init__(self, db):
        self.db = db
        self.orders = db["orders"]
        self.users = db["users"]

    async def _revenue(self, created: dict) -> Tuple[float, int]:
        rows = await self.orders.aggregate(
            [
                {"$match": {"isActive": True, "status": {"$in": REVENUE_STATUSES}, "createdAt": created}},
                {"$group": {"_id": None, "totalRevenue": {"$sum": "$totalAmount"}, "salesCount": {"$sum": 1}}},
            ]
        ).to_list(length=None)
        if not rows:
            return 0, 0
        return rows[0].get("totalRevenue", 0) or 0, rows[0].get("salesCount", 0) or 0

    async def _user_counts(self, current: dict, previous: dict) -> Tuple[int, int, int, int]:
        active = {"status": "active", "isActive": True}
        return await asyncio.gather(
            self.users.count_documents({"createdAt": current}),
            self.users.count_documents({"createdAt": previous}),
            self.users.count_documents({**active, "updatedAt": current}),
            self.users.count_documents({**active, "updatedAt": previous}),
        )

    async def _overview(self, start: datetime, end: datetime) -> List[dict]:
        rows = await self.orders.aggregate(
            [
                {
                    "$match": {
                        "isActive": True,
                        "status": {"$in": REVENUE_STATUSES},
                        "createdAt": {"$gte": start, "$lte": end},
                    }
                },
                {
                    "$group": {
                        "_id": {
                            "y": {"$year": "$createdAt"},
                            "m": {"$month": "$createdAt"},
                            "d": {"$dayOfMonth": "$createdAt"},
                        },
                        "revenue": {"$sum": "$totalAmount"},
                        "orders": {"$sum": 1},
                    }
                },
            ]
        ).to_list(length=None)
        buckets = {
            f"{r['_id']['y']:04d}-{r['_id']['m']:02d}-{r['_id']['d']:02d}": r for r in rows
        }
        return daily_series(start, end, buckets)

    async def _recent_sales(self, limit: int) -> List[dict]:
        cursor = self.orders.find(
            {"isActive": True},
            {"orderCode": 1, "totalAmount": 1, "currency": 1, "status": 1, "createdAt": 1, "user": 1},
        )
        recent = await cursor.sort("createdAt", -1).limit(limit).to_list(length=None)
        return await attach_users(self.db, recent)

    async def dashboard(self, start: datetime, end: datetime, limit: int = 10) -> dict:
        limit = max(1, min(int(limit or 10), 100))
        prev_start = start - (end - start)
        current_window = {"$gte": start, "$lte": end}
        previous_window = {"$gte": prev_start, "$lt": start}

        (revenue, sales), (revenue_prev, sales_prev), counts, overview, recent = await asyncio.gather(
            self._revenue(current_window),
            self._revenue(previous_window),
            self._user_counts(current_window, previous_window),
            self._overview(start, end),
            self._recent_sales(limit),
        )
        subscriptions, subscriptions_prev, active_now, active_now_prev = counts

        current = {"totalRevenue": revenue, "subscriptions": subscriptions, "sales": sales, "activeNow": active_now}
        previous = {
            "totalRevenue": revenue_prev,
            "subscriptions": subscriptions_prev,
            "sales": sales_prev,
            "activeNow": active_now_prev,
        }
        return {
            "range": {"start": start, "end": end, "previousStart": prev_start, "previousEnd": start},
            "current": current,
            "previous": previous,
            "change": {m: percent_change(current[m], previous[m]) for m in METRICS},
            "overview": overview,
            "recentSales": recent,
        }
