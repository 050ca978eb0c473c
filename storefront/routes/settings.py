from fastapi import APIRouter, Depends

from ..auth import authorize
from ..database import get_db
from ..policy import Actor
from ..schemas import CurrencyUpdate
from ..settings_cache import SettingsCache, get_settings_cache

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
async def read_settings(settings: SettingsCache = Depends(get_settings_cache), db=Depends(get_db)):
    return {"success": True, "data": {"currency": await settings.get_currency(db)}}


@router.put("/currency")
async def update_currency(
    payload: CurrencyUpdate,
    actor: Actor = Depends(authorize("settings", "write")),
    settings: SettingsCache = Depends(get_settings_cache),
    db=Depends(get_db),
):
    currency = await settings.set_currency(db, payload.currency)
    return {"success": True, "data": {"currency": currency}}
