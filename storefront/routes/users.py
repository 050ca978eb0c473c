from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import authorize
from ..database import get_db, serialize_doc
from ..policy import Actor
from ..schemas import Role, UserUpdate
from ..services import accounts

router = APIRouter(prefix="/users", tags=["users"])

admin_only = authorize("user", "manage")


@router.get("")
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[Role] = None,
    isActive: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(admin_only),
    db=Depends(get_db),
):
    users, pagination = await accounts.list_users(db, search, role, isActive, page, limit)
    return {"success": True, "count": len(users), "pagination": pagination, "data": [serialize_doc(u) for u in users]}


@router.get("/{user_id}")
async def get_user(user_id: str, actor: Actor = Depends(admin_only), db=Depends(get_db)):
    user = await accounts.get_user(db, user_id)
    return {"success": True, "data": serialize_doc(user)}


@router.put("/{user_id}")
async def update_user(user_id: str, payload: UserUpdate, actor: Actor = Depends(admin_only), db=Depends(get_db)):
    user = await accounts.update_user(db, user_id, payload)
    return {"success": True, "data": serialize_doc(user)}


@router.delete("/{user_id}")
async def delete_user(user_id: str, actor: Actor = Depends(admin_only), db=Depends(get_db)):
    await accounts.deactivate_user(db, actor.id, user_id)
    return {"success": True, "message": "User deleted successfully"}
