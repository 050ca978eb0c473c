import logging

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..database import utcnow

logger = logging.getLogger(__name__)

ORDER_CODE = "orderCode"
ORDER_CODE_PREFIX = "ORD-"
SEQUENCE_BASE = 1000


class SequenceGenerator:
    """Named counters in the ``counters`` collection.

    ``next`` is one server-side ``$inc`` with the post-image returned, so two
    concurrent callers can never observe the same value. A missing counter is
    seeded on the first miss only.
    """

    def __init__(self, db, base: int = SEQUENCE_BASE):
        self.counters = db["counters"]
        self.base = base

    async def _seed(self, name: str) -> None:
        try:
            await self.counters.update_one(
                {"_id": name},
                {"$setOnInsert": {"seq": self.base, "updatedAt": utcnow()}},
                upsert=True,
            )
        except DuplicateKeyError:
            # another caller inserted it first
            pass

    async def _increment(self, name: str):
        return await self.counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}, "$set": {"updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    async def next(self, name: str) -> int:
        doc = await self._increment(name)
        if doc is None:
            await self._seed(name)
            doc = await self._increment(name)
        return int(doc["seq"])


def format_order_code(seq: int) -> str:
    return f"{ORDER_CODE_PREFIX}{seq}"


async def next_order_code(db) -> str:
    return format_order_code(await SequenceGenerator(db).next(ORDER_CODE))
