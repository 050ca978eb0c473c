from fastapi import APIRouter, Depends

from ..auth import authorize, get_current_actor
from ..database import get_db, serialize_doc
from ..policy import Actor
from ..schemas import CartAdd, CartQuantity, CheckoutRequest
from ..services.cart import CartEngine
from ..services.orders import OrderMaterializer
from ..settings_cache import SettingsCache, get_settings_cache

router = APIRouter(prefix="/cart", tags=["cart"])


def get_cart_engine(db=Depends(get_db), settings: SettingsCache = Depends(get_settings_cache)) -> CartEngine:
    return CartEngine(db, settings)


@router.get("")
async def get_cart(actor: Actor = Depends(get_current_actor), carts: CartEngine = Depends(get_cart_engine)):
    cart = await carts.get_or_create(actor.id)
    return {"success": True, "data": serialize_doc(cart)}


@router.get("/all")
async def list_carts(
    actor: Actor = Depends(authorize("cart", "list_all")),
    carts: CartEngine = Depends(get_cart_engine),
):
    data = await carts.list_all()
    return {"success": True, "count": len(data), "data": [serialize_doc(c) for c in data]}


@router.post("/add", status_code=201)
async def add_to_cart(
    payload: CartAdd,
    actor: Actor = Depends(get_current_actor),
    carts: CartEngine = Depends(get_cart_engine),
):
    cart = await carts.add(actor.id, payload.productId, payload.quantity)
    return {"success": True, "data": serialize_doc(cart)}


@router.patch("/item/{product_id}")
async def set_item_quantity(
    product_id: str,
    payload: CartQuantity,
    actor: Actor = Depends(get_current_actor),
    carts: CartEngine = Depends(get_cart_engine),
):
    cart = await carts.set_quantity(actor.id, product_id, payload.quantity)
    return {"success": True, "data": serialize_doc(cart)}


@router.delete("/item/{product_id}")
async def remove_item(
    product_id: str,
    actor: Actor = Depends(get_current_actor),
    carts: CartEngine = Depends(get_cart_engine),
):
    cart = await carts.remove(actor.id, product_id)
    return {"success": True, "data": serialize_doc(cart)}


@router.delete("")
async def clear_cart(actor: Actor = Depends(get_current_actor), carts: CartEngine = Depends(get_cart_engine)):
    cart = await carts.clear(actor.id)
    return {"success": True, "data": serialize_doc(cart)}


@router.post("/checkout", status_code=201)
async def checkout(
    payload: CheckoutRequest,
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
    settings: SettingsCache = Depends(get_settings_cache),
):
    order = await OrderMaterializer(db, settings).checkout(
        actor, address_id=payload.addressId, notes=payload.notes, user_id=payload.userId
    )
    return {"success": True, "data": serialize_doc(order)}
