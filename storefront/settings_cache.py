import logging
import time
from typing import Callable, Optional

from fastapi import Request
from pymongo import ReturnDocument

from .database import utcnow
from .errors import InvalidInput

logger = logging.getLogger(__name__)

SETTINGS_ID = "global"


def normalize_currency(value) -> str:
    if not value or not isinstance(value, str):
        raise InvalidInput("currency must be a 3-letter string like USD, EUR")
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise InvalidInput("currency must be a 3-letter ISO code")
    return code


class SettingsCache:
    """Process-wide cache of the global settings document.

    Holds ``{value, loadedAt}`` and reloads from the store once ``ttl``
    seconds have passed. Writes go through :meth:`set_currency`, which
    refreshes the cached value immediately.
    """

    def __init__(self, ttl: float = 60.0, default_currency: str = "USD", clock: Optional[Callable[[], float]] = None):
        self.ttl = ttl
        self.default_currency = default_currency.upper()
        self._clock = clock or time.monotonic
        self.value: Optional[str] = None
        self.loaded_at: float = 0.0

    def _fresh(self) -> bool:
        return self.value is not None and self._clock() - self.loaded_at < self.ttl

    def invalidate(self) -> None:
        self.value = None
        self.loaded_at = 0.0

    async def get_currency(self, db) -> str:
        if self._fresh():
            return self.value
        doc = await db["settings"].find_one_and_update(
            {"_id": SETTINGS_ID},
            {"$setOnInsert": {"currency": self.default_currency, "createdAt": utcnow(), "updatedAt": utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        self.value = (doc.get("currency") or self.default_currency).upper()
        self.loaded_at = self._clock()
        return self.value

    async def set_currency(self, db, currency) -> str:
        code = normalize_currency(currency)
        doc = await db["settings"].find_one_and_update(
            {"_id": SETTINGS_ID},
            {"$set": {"currency": code, "updatedAt": utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        self.value = doc["currency"]
        self.loaded_at = self._clock()
        logger.info("Shop currency set to %s", self.value)
        return self.value


def get_settings_cache(request: Request) -> SettingsCache:
    """FastAPI dependency returning the process-wide cache."""
    return request.app.state.settings_cache
