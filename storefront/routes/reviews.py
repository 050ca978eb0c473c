from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.errors import DuplicateKeyError

from ..auth import get_current_actor
from ..database import create_document, find_page, get_db, get_documents, parse_object_id, serialize_doc, utcnow
from ..errors import Conflict, NotFound
from ..policy import Actor, require
from ..schemas import ReviewCreate, ReviewUpdate
from ..services.catalog import find_active_by_id

router = APIRouter(prefix="/reviews", tags=["reviews"])

AUTHOR_FIELDS = {"name": 1, "avatar": 1}


async def _attach_authors(db, reviews):
    ids = list({r["user"] for r in reviews})
    users = await db["users"].find({"_id": {"$in": ids}}, AUTHOR_FIELDS).to_list(length=None) if ids else []
    by_id = {u["_id"]: {"id": str(u["_id"]), "name": u.get("name", ""), "avatar": u.get("avatar", "")} for u in users}
    result = []
    for review in reviews:
        out = serialize_doc(review)
        out["user"] = by_id.get(review["user"], {"id": str(review["user"])})
        result.append(out)
    return result


async def _get_active(db, review_id: str) -> dict:
    review = await db["reviews"].find_one({"_id": parse_object_id(review_id), "isActive": True})
    if not review:
        raise NotFound("Review not found")
    return review


def rating_summary(ratings) -> dict:
    distribution = {str(star): 0 for star in range(1, 6)}
    for rating in ratings:
        distribution[str(rating)] += 1
    total = len(ratings)
    average = round(sum(ratings) / total, 1) if total else 0
    return {"averageRating": average, "totalReviews": total, "ratingDistribution": distribution}


@router.get("")
async def list_reviews(
    product: Optional[str] = None,
    user: Optional[str] = None,
    rating: Optional[int] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
):
    query = {"isActive": True}
    if product:
        query["product"] = parse_object_id(product, "product")
    if user:
        query["user"] = parse_object_id(user, "user")
    if rating is not None:
        query["rating"] = rating
    docs, pagination = await find_page(db, "reviews", query, [("createdAt", -1)], page, limit)
    data = await _attach_authors(db, docs)
    return {"success": True, "count": len(data), "pagination": pagination, "data": data}


@router.get("/product/{product_id}")
async def product_reviews(
    product_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
):
    query = {"product": parse_object_id(product_id, "productId"), "isActive": True}
    docs, pagination = await find_page(db, "reviews", query, [("createdAt", -1)], page, limit)
    ratings = [r["rating"] for r in await get_documents(db, "reviews", query)]
    return {
        "success": True,
        "count": len(docs),
        "pagination": pagination,
        "stats": rating_summary(ratings),
        "data": await _attach_authors(db, docs),
    }


@router.get("/{review_id}")
async def get_review(review_id: str, db=Depends(get_db)):
    review = await _get_active(db, review_id)
    return {"success": True, "data": (await _attach_authors(db, [review]))[0]}


@router.post("", status_code=201)
async def create_review(payload: ReviewCreate, actor: Actor = Depends(get_current_actor), db=Depends(get_db)):
    require(actor, "review", "create")
    product = await find_active_by_id(db, payload.product)
    if not product:
        raise NotFound("Product not found")
    user_oid = parse_object_id(actor.id)
    if await db["reviews"].find_one({"user": user_oid, "product": product["id"]}, {"_id": 1}):
        raise Conflict("You have already reviewed this product")
    doc = {
        "user": user_oid,
        "product": product["id"],
        "rating": payload.rating,
        "comment": payload.comment,
        "isActive": True,
    }
    try:
        await create_document(db, "reviews", doc)
    except DuplicateKeyError:
        raise Conflict("You have already reviewed this product")
    return {"success": True, "data": serialize_doc(doc)}


@router.put("/{review_id}")
async def update_review(
    review_id: str, payload: ReviewUpdate, actor: Actor = Depends(get_current_actor), db=Depends(get_db)
):
    review = await _get_active(db, review_id)
    require(actor, "review", "update", review["user"])
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    updates["updatedAt"] = utcnow()
    await db["reviews"].update_one({"_id": review["_id"]}, {"$set": updates})
    review.update(updates)
    return {"success": True, "data": serialize_doc(review)}


@router.delete("/{review_id}")
async def delete_review(review_id: str, actor: Actor = Depends(get_current_actor), db=Depends(get_db)):
    review = await _get_active(db, review_id)
    require(actor, "review", "delete", review["user"])
    await db["reviews"].update_one({"_id": review["_id"]}, {"$set": {"isActive": False, "updatedAt": utcnow()}})
    return {"success": True, "message": "Review deleted successfully"}


@router.delete("/{review_id}/permanent")
async def purge_review(review_id: str, actor: Actor = Depends(get_current_actor), db=Depends(get_db)):
    require(actor, "review", "purge")
    result = await db["reviews"].delete_one({"_id": parse_object_id(review_id)})
    if result.deleted_count == 0:
        raise NotFound("Review not found")
    return {"success": True, "message": "Review permanently deleted"}
