from typing import Optional

from bson import ObjectId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import get_db, is_object_id
from .errors import Unauthenticated
from .policy import Actor, require
from .security import decode_access_token

bearer = HTTPBearer(auto_error=False)


def actor_from_user(user: dict) -> Actor:
    return Actor(
        id=str(user["_id"]),
        role=user.get("role", "user"),
        name=user.get("name", ""),
        email=user.get("email", ""),
    )


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db=Depends(get_db),
) -> Actor:
    if credentials is None:
        raise Unauthenticated()
    payload = decode_access_token(credentials.credentials)
    if not is_object_id(payload["id"]):
        raise Unauthenticated("Invalid token")
    user = await db["users"].find_one({"_id": ObjectId(payload["id"])}, {"password": 0})
    if not user or not user.get("isActive", True):
        raise Unauthenticated("User not found or inactive")
    return actor_from_user(user)


def authorize(resource: str, action: str):
    """Dependency factory: authenticated actor allowed to do ``action`` on ``resource``."""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        require(actor, resource, action)
        return actor

    return dependency
