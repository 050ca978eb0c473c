from fastapi import APIRouter, Depends

from ..auth import authorize
from ..database import get_db, serialize_doc
from ..policy import Actor
from ..schemas import AddressCreate, AddressUpdate
from ..services import addresses

router = APIRouter(prefix="/addresses", tags=["addresses"])

address_user = authorize("address", "use")


@router.get("")
async def list_addresses(actor: Actor = Depends(address_user), db=Depends(get_db)):
    docs = await addresses.list_for_user(db, actor.id)
    return {"success": True, "count": len(docs), "data": [serialize_doc(d) for d in docs]}


@router.get("/{address_id}")
async def get_address(address_id: str, actor: Actor = Depends(address_user), db=Depends(get_db)):
    address = await addresses.get_for_user(db, actor.id, address_id)
    return {"success": True, "data": serialize_doc(address)}


@router.post("", status_code=201)
async def create_address(payload: AddressCreate, actor: Actor = Depends(address_user), db=Depends(get_db)):
    address = await addresses.create(db, actor.id, actor.name, payload)
    return {"success": True, "data": serialize_doc(address)}


@router.put("/{address_id}")
async def update_address(
    address_id: str, payload: AddressUpdate, actor: Actor = Depends(address_user), db=Depends(get_db)
):
    address = await addresses.update(db, actor.id, actor.name, address_id, payload)
    return {"success": True, "data": serialize_doc(address)}


@router.delete("/{address_id}")
async def delete_address(address_id: str, actor: Actor = Depends(address_user), db=Depends(get_db)):
    await addresses.soft_delete(db, actor.id, address_id)
    return {"success": True, "message": "Address deleted successfully"}


@router.post("/{address_id}/default")
async def set_default_address(address_id: str, actor: Actor = Depends(address_user), db=Depends(get_db)):
    address = await addresses.set_default(db, actor.id, address_id)
    return {"success": True, "data": serialize_doc(address)}
