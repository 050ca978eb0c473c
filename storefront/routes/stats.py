from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import authorize
from ..database import as_naive_utc, get_db, serialize_doc
from ..policy import Actor
from ..services.stats import DashboardAggregator, resolve_window

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/dashboard")
async def dashboard(
    range: Optional[str] = Query(None, max_length=8, description="Shorthand window such as 30d, 12w, 6m, 1y"),
    startDate: Optional[datetime] = None,
    endDate: Optional[datetime] = None,
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(authorize("stats", "read")),
    db=Depends(get_db),
):
    start, end = resolve_window(range, as_naive_utc(startDate), as_naive_utc(endDate))
    data = await DashboardAggregator(db).dashboard(start, end, limit)
    data["recentSales"] = [serialize_doc(o) for o in data["recentSales"]]
    return {"success": True, "range": data.pop("range"), "data": data}
