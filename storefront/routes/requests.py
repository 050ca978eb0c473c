import logging
import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import authorize, get_current_actor
from ..database import create_document, find_page, get_db, parse_object_id, serialize_doc, sort_spec, utcnow
from ..errors import Forbidden, InvalidState, NotFound
from ..policy import Actor, can_access, require
from ..schemas import RequestCreate, RequestStatus, RequestUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["requests"])

OWNER_FIELDS = {"name": 1, "email": 1, "role": 1}

request_creator = authorize("request", "create")


async def _attach_owners(db, tickets):
    ids = list({t["user"] for t in tickets})
    users = await db["users"].find({"_id": {"$in": ids}}, OWNER_FIELDS).to_list(length=None) if ids else []
    by_id = {u["_id"]: serialize_doc(u) for u in users}
    result = []
    for ticket in tickets:
        out = serialize_doc(ticket)
        out["user"] = by_id.get(ticket["user"], {"id": str(ticket["user"])})
        result.append(out)
    return result


async def _get_active(db, request_id: str) -> dict:
    ticket = await db["requests"].find_one({"_id": parse_object_id(request_id), "isActive": True})
    if not ticket:
        raise NotFound("Request not found")
    return ticket


@router.post("", status_code=201)
async def create_request(payload: RequestCreate, actor: Actor = Depends(request_creator), db=Depends(get_db)):
    doc = {
        "user": parse_object_id(actor.id),
        "title": payload.title,
        "description": payload.description,
        "priority": payload.priority,
        "status": "open",
        "isActive": True,
    }
    await create_document(db, "requests", doc)
    logger.info("Request %s opened by %s", doc["_id"], actor.id)
    return {"success": True, "data": serialize_doc(doc)}


@router.get("")
async def list_requests(
    status: Optional[RequestStatus] = None,
    search: Optional[str] = Query(None, max_length=100),
    sortBy: Optional[Literal["createdAt", "updatedAt", "priority", "status"]] = None,
    sortOrder: Optional[Literal["asc", "desc"]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    query = {"isActive": True}
    if not can_access(actor, "request", "list_all"):
        query["user"] = parse_object_id(actor.id)
    if status:
        query["status"] = status
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    docs, pagination = await find_page(db, "requests", query, sort_spec(sortBy, sortOrder, ("createdAt", -1)), page, limit)
    data = await _attach_owners(db, docs)
    return {"success": True, "count": len(data), "pagination": pagination, "data": data}


@router.get("/{request_id}")
async def get_request(request_id: str, actor: Actor = Depends(get_current_actor), db=Depends(get_db)):
    ticket = await _get_active(db, request_id)
    require(actor, "request", "read", ticket["user"])
    return {"success": True, "data": (await _attach_owners(db, [ticket]))[0]}


@router.put("/{request_id}")
async def update_request(
    request_id: str, payload: RequestUpdate, actor: Actor = Depends(get_current_actor), db=Depends(get_db)
):
    ticket = await _get_active(db, request_id)
    require(actor, "request", "update", ticket["user"])
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "status" in updates and not can_access(actor, "request", "set_status"):
        raise Forbidden("Only admin/manager can update status")
    updates["updatedAt"] = utcnow()
    await db["requests"].update_one({"_id": ticket["_id"]}, {"$set": updates})
    ticket.update(updates)
    if "status" in updates:
        logger.info("Request %s set to %s by %s", ticket["_id"], updates["status"], actor.id)
    return {"success": True, "data": (await _attach_owners(db, [ticket]))[0]}


@router.delete("/{request_id}")
async def delete_request(request_id: str, actor: Actor = Depends(get_current_actor), db=Depends(get_db)):
    ticket = await _get_active(db, request_id)
    require(actor, "request", "delete", ticket["user"])
    if not actor.is_elevated and ticket.get("status") != "open":
        raise InvalidState("Only open requests can be deleted by owner")
    await db["requests"].update_one({"_id": ticket["_id"]}, {"$set": {"isActive": False, "updatedAt": utcnow()}})
    return {"success": True, "message": "Request deleted successfully"}
