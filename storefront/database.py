"""
Database access

One MongoDB client per process, connected lazily on first use and shared by
every request. Documents are plain dicts; `serialize_doc` turns them into JSON
friendly payloads (``_id`` -> ``id``, ObjectIds -> strings).
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from .errors import Internal, InvalidInput

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, the same shape the driver returns on reads."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value) and len(value) == 24


def parse_object_id(value: Any, field: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        if not is_object_id(value):
            raise InvalidId(value)
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidInput(
            f"Invalid {field}",
            details=[{"field": field, "message": f"'{value}' is not a valid identifier"}],
        )


def _clean(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_clean(v) for v in value]
    return value


def serialize_doc(doc: Optional[dict]):
    if not doc:
        return doc
    out = {}
    for key, value in dict(doc).items():
        if key == "_id":
            out["id"] = _clean(value)
        else:
            out[key] = _clean(value)
    return out


class ConnectionManager:
    """Lazily connects to MongoDB once and hands out the same database.

    States: ``disconnected`` -> ``connecting`` (a shared task) -> ``connected``.
    A failed attempt drops back to ``disconnected`` so the next caller retries.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"

    def __init__(
        self,
        url: str,
        database_name: str,
        client_factory: Optional[Callable[[str], Any]] = None,
        on_connect: Optional[Callable[[Any], Awaitable[None]]] = None,
    ):
        self.url = url
        self.database_name = database_name
        self._client_factory = client_factory or _motor_client
        self._on_connect = on_connect
        self._client = None
        self._connecting: Optional[asyncio.Future] = None

    @property
    def state(self) -> str:
        if self._client is not None:
            return self.CONNECTED
        if self._connecting is not None:
            return self.CONNECTING
        return self.DISCONNECTED

    async def _connect(self):
        client = self._client_factory(self.url)
        try:
            await client.admin.command("ping")
            if self._on_connect is not None:
                await self._on_connect(client[self.database_name])
        except Exception:
            client.close()
            raise
        logger.info("MongoDB connected: %s", self.database_name)
        return client

    async def get_database(self):
        if self._client is None:
            if self._connecting is None:
                self._connecting = asyncio.ensure_future(self._connect())
            connecting = self._connecting
            try:
                client = await asyncio.shield(connecting)
            except Exception as e:
                if self._connecting is connecting:
                    self._connecting = None
                logger.error("MongoDB connection error: %s", e)
                raise
            if self._client is None:
                self._client = client
            self._connecting = None
        return self._client[self.database_name]

    def close(self):
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._connecting = None


def _motor_client(url: str):
    return AsyncIOMotorClient(url, maxPoolSize=5, serverSelectionTimeoutMS=5000)


async def get_db(request: Request):
    """FastAPI dependency returning the shared database handle."""
    manager: ConnectionManager = request.app.state.db_manager
    try:
        return await manager.get_database()
    except PyMongoError:
        raise Internal("Database unavailable")


async def ensure_indexes(db) -> None:
    await db["users"].create_index("email", unique=True)
    await db["carts"].create_index("user", unique=True)
    await db["orders"].create_index("orderCode", unique=True, sparse=True)
    await db["orders"].create_index([("user", ASCENDING), ("createdAt", DESCENDING)])
    await db["orders"].create_index([("isActive", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)])
    await db["addresses"].create_index([("user", ASCENDING), ("isActive", ASCENDING)])
    await db["categories"].create_index("name", unique=True)
    await db["governorates"].create_index("name", unique=True)
    await db["governorates"].create_index("code", unique=True)
    await db["cities"].create_index([("name", ASCENDING), ("governorate", ASCENDING)], unique=True)
    await db["reviews"].create_index([("user", ASCENDING), ("product", ASCENDING)], unique=True)
    await db["wishlists"].create_index([("productId", ASCENDING), ("userId", ASCENDING)], unique=True)
    await db["requests"].create_index([("user", ASCENDING), ("isActive", ASCENDING)])


# Generic helpers

async def create_document(db, collection_name: str, data) -> str:
    """Insert a document, stamping createdAt/updatedAt, and return its id."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = utcnow()
    data.setdefault("_id", ObjectId())
    data.setdefault("createdAt", now)
    data.setdefault("updatedAt", now)
    result = await db[collection_name].insert_one(data)
    return str(result.inserted_id)


async def get_documents(
    db,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
    skip: int = 0,
    limit: int = 0,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return await cursor.to_list(length=None)


async def find_page(
    db,
    collection_name: str,
    filter_dict: dict,
    sort: List[Tuple[str, int]],
    page: int,
    limit: int,
) -> Tuple[List[dict], Dict[str, int]]:
    """Return one page of documents along with the pagination block."""
    docs, total = await asyncio.gather(
        get_documents(db, collection_name, filter_dict, sort=sort, skip=(page - 1) * limit, limit=limit),
        db[collection_name].count_documents(filter_dict),
    )
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
    return docs, pagination


def sort_spec(sort_by: Optional[str], sort_order: Optional[str], default: Tuple[str, int]) -> List[Tuple[str, int]]:
    if not sort_by:
        return [default]
    return [(sort_by, DESCENDING if sort_order == "desc" else ASCENDING)]
