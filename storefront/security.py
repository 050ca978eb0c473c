import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from .config import get_config
from .errors import Unauthenticated

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def unusable_password() -> str:
    """Hash of a random secret nobody knows; used for provisioned guest accounts."""
    return hash_password(secrets.token_urlsafe(32))


def create_access_token(user_id: str, role: str) -> str:
    config = get_config()
    payload = {
        "id": user_id,
        "role": role,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=config.jwt_expire_minutes),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    config = get_config()
    payload = {
        "id": user_id,
        "type": "refresh",
        "exp": datetime.now(timezone.utc) + timedelta(days=config.jwt_refresh_expire_days),
    }
    return jwt.encode(payload, config.jwt_refresh_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, get_config().jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")
    if payload.get("type") != "access" or not payload.get("id"):
        raise Unauthenticated("Invalid token")
    return payload


def decode_refresh_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, get_config().jwt_refresh_secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid refresh token")
    if payload.get("type") != "refresh" or not payload.get("id"):
        raise Unauthenticated("Invalid refresh token")
    return payload
