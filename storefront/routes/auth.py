from fastapi import APIRouter, Depends

from ..auth import get_current_actor
from ..database import get_db, serialize_doc
from ..errors import NotFound, Unauthenticated
from ..policy import Actor
from ..schemas import LoginRequest, RefreshRequest, RegisterRequest
from ..security import create_access_token, create_refresh_token, decode_refresh_token
from ..services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


def _session(user: dict) -> dict:
    user_id = str(user["_id"])
    return {
        "success": True,
        "token": create_access_token(user_id, user["role"]),
        "refreshToken": create_refresh_token(user_id),
        "user": {
            "id": user_id,
            "name": user["name"],
            "email": user["email"],
            "role": user["role"],
            "avatar": user.get("avatar", ""),
        },
    }


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, db=Depends(get_db)):
    user = await accounts.register(db, payload)
    return _session(user)


@router.post("/login")
async def login(payload: LoginRequest, db=Depends(get_db)):
    user = await accounts.authenticate(db, payload.email, payload.password)
    return _session(user)


@router.get("/me")
async def me(actor: Actor = Depends(get_current_actor), db=Depends(get_db)):
    user = await accounts.get_active_user(db, actor.id)
    return {"success": True, "user": serialize_doc(user)}


@router.post("/refresh")
async def refresh(payload: RefreshRequest, db=Depends(get_db)):
    claims = decode_refresh_token(payload.refreshToken)
    try:
        user = await accounts.get_active_user(db, claims["id"])
    except NotFound:
        raise Unauthenticated("Invalid refresh token")
    return {"success": True, "token": create_access_token(str(user["_id"]), user["role"])}
