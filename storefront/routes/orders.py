from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import authorize, get_current_actor
from ..database import as_naive_utc, get_db, serialize_doc
from ..errors import InvalidInput
from ..policy import Actor, can_access
from ..schemas import BulkDelete, BulkStatusUpdate, GuestOrderCreate, OrderCreate, OrderStatus, StatusUpdate
from ..services import orders as order_service
from ..services.lifecycle import OrderLifecycle
from ..services.orders import OrderMaterializer
from ..settings_cache import SettingsCache, get_settings_cache

router = APIRouter(prefix="/orders", tags=["orders"])

OrderSortField = Literal["createdAt", "updatedAt", "totalAmount", "status", "orderCode"]


def get_materializer(db=Depends(get_db), settings: SettingsCache = Depends(get_settings_cache)) -> OrderMaterializer:
    return OrderMaterializer(db, settings)


def get_lifecycle(db=Depends(get_db)) -> OrderLifecycle:
    return OrderLifecycle(db)


@router.post("", status_code=201)
async def create_order(
    payload: OrderCreate,
    actor: Actor = Depends(get_current_actor),
    materializer: OrderMaterializer = Depends(get_materializer),
):
    order = await materializer.create(
        actor, payload.addressId, items=payload.items, notes=payload.notes, user_id=payload.userId
    )
    return {"success": True, "data": serialize_doc(order)}


@router.post("/guest", status_code=201)
async def create_guest_order(payload: GuestOrderCreate, materializer: OrderMaterializer = Depends(get_materializer)):
    order = await materializer.create_for_guest(payload)
    return {"success": True, "data": serialize_doc(order)}


@router.get("")
async def list_orders(
    status: Optional[OrderStatus] = None,
    minAmount: Optional[float] = Query(None, ge=0),
    maxAmount: Optional[float] = Query(None, ge=0),
    startDate: Optional[datetime] = None,
    endDate: Optional[datetime] = None,
    q: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sortBy: Optional[OrderSortField] = None,
    sortOrder: Optional[Literal["asc", "desc"]] = None,
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    if minAmount is not None and maxAmount is not None and minAmount > maxAmount:
        raise InvalidInput("minAmount must not exceed maxAmount")
    docs, pagination = await order_service.list_orders(
        db,
        actor,
        status=status,
        min_amount=minAmount,
        max_amount=maxAmount,
        start_date=as_naive_utc(startDate),
        end_date=as_naive_utc(endDate),
        q=q,
        page=page,
        limit=limit,
        sort_by=sortBy,
        sort_order=sortOrder,
    )
    return {"success": True, "count": len(docs), "pagination": pagination, "data": [serialize_doc(d) for d in docs]}


@router.patch("/status/bulk")
async def bulk_update_status(
    payload: BulkStatusUpdate,
    actor: Actor = Depends(authorize("order", "update_status")),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.bulk_update_status(actor, payload.orderIds, payload.status)
    result["data"] = [serialize_doc(o) for o in result["data"]]
    return {"success": True, **result}


@router.delete("/bulk")
async def bulk_delete(
    payload: BulkDelete,
    actor: Actor = Depends(authorize("order", "delete")),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.bulk_soft_delete(actor, payload.orderIds)
    result["data"] = [serialize_doc(o) for o in result["data"]]
    return {"success": True, **result}


@router.get("/{reference}")
async def get_order(
    reference: str,
    includeInactive: bool = False,
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    include_inactive = includeInactive and can_access(actor, "order", "read_inactive")
    order = await order_service.get_order(db, actor, reference, include_inactive=include_inactive)
    return {"success": True, "data": serialize_doc(order)}


@router.patch("/{reference}/status")
async def update_status(
    reference: str,
    payload: StatusUpdate,
    actor: Actor = Depends(authorize("order", "update_status")),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
    db=Depends(get_db),
):
    order = await lifecycle.update_status(actor, reference, payload.status)
    await order_service.attach_users(db, [order])
    return {"success": True, "data": serialize_doc(order)}


@router.post("/{reference}/cancel")
async def cancel_order(
    reference: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    order = await lifecycle.cancel(actor, reference)
    return {"success": True, "data": serialize_doc(order)}
