"""
Public landing-page aggregate: store counts, newest and top-rated products,
categories and the latest customer reviews, in one round trip.
"""

import asyncio

from fastapi import APIRouter, Depends

from ..database import get_db, serialize_doc

router = APIRouter(prefix="/home", tags=["home"])

LATEST_LIMIT = 10
FEATURED_LIMIT = 6

PRODUCT_FIELDS = {
    "name": 1, "description": 1, "price": 1, "stock": 1, "images": 1,
    "primaryImage": 1, "category": 1, "createdAt": 1,
}

WHY_CHOOSE_US = [
    {"title": "Free Shipping", "description": "Free shipping on orders over $100", "icon": "truck"},
    {"title": "Secure Payment", "description": "100% secure payment methods", "icon": "shield"},
    {"title": "Easy Returns", "description": "30-day return policy", "icon": "refresh"},
    {"title": "Premium Quality", "description": "High-quality products guaranteed", "icon": "award"},
]


async def _store_stats(db) -> dict:
    users, products, orders, categories, ratings = await asyncio.gather(
        db["users"].count_documents({"isActive": True}),
        db["products"].count_documents({"isActive": True}),
        db["orders"].count_documents({}),
        db["categories"].count_documents({"isActive": True}),
        db["reviews"].aggregate(
            [
                {"$match": {"isActive": True}},
                {"$group": {"_id": None, "averageRating": {"$avg": "$rating"}, "totalReviews": {"$sum": 1}}},
            ]
        ).to_list(length=None),
    )
    return {
        "totalUsers": users,
        "totalProducts": products,
        "totalOrders": orders,
        "totalCategories": categories,
        "averageRating": round(ratings[0]["averageRating"], 1) if ratings else 0,
        "totalReviews": ratings[0]["totalReviews"] if ratings else 0,
    }


async def _with_category_names(db, products):
    ids = list({p["category"] for p in products if p.get("category")})
    categories = await db["categories"].find({"_id": {"$in": ids}}, {"name": 1}).to_list(length=None) if ids else []
    names = {c["_id"]: c["name"] for c in categories}
    result = []
    for product in products:
        out = serialize_doc(product)
        if product.get("category") in names:
            out["category"] = {"id": str(product["category"]), "name": names[product["category"]]}
        result.append(out)
    return result


async def _featured(db):
    ranked = await db["reviews"].aggregate(
        [
            {"$match": {"isActive": True}},
            {"$group": {"_id": "$product", "averageRating": {"$avg": "$rating"}, "totalReviews": {"$sum": 1}}},
            {"$sort": {"averageRating": -1, "totalReviews": -1}},
            {"$limit": FEATURED_LIMIT},
        ]
    ).to_list(length=None)
    ids = [r["_id"] for r in ranked]
    products = await db["products"].find({"_id": {"$in": ids}, "isActive": True}, PRODUCT_FIELDS).to_list(length=None)
    by_id = {p["_id"]: p for p in products}
    ordered = [by_id[r["_id"]] for r in ranked if r["_id"] in by_id]
    result = await _with_category_names(db, ordered)
    ratings = {str(r["_id"]): r for r in ranked}
    for product in result:
        info = ratings[product["id"]]
        product["averageRating"] = round(info["averageRating"], 1)
        product["totalReviews"] = info["totalReviews"]
    return result


async def _customer_reviews(db):
    reviews = await (
        db["reviews"]
        .find({"isActive": True}, {"rating": 1, "comment": 1, "createdAt": 1, "user": 1, "product": 1})
        .sort("createdAt", -1)
        .limit(LATEST_LIMIT)
        .to_list(length=None)
    )
    user_ids = list({r["user"] for r in reviews})
    product_ids = list({r["product"] for r in reviews})
    users, products = await asyncio.gather(
        db["users"].find({"_id": {"$in": user_ids}}, {"name": 1, "email": 1, "avatar": 1}).to_list(length=None),
        db["products"].find({"_id": {"$in": product_ids}}, {"name": 1, "primaryImage": 1}).to_list(length=None),
    )
    users_by_id = {u["_id"]: serialize_doc(u) for u in users}
    products_by_id = {p["_id"]: serialize_doc(p) for p in products}
    result = []
    for review in reviews:
        out = serialize_doc(review)
        out["user"] = users_by_id.get(review["user"], {"id": str(review["user"])})
        out["product"] = products_by_id.get(review["product"], {"id": str(review["product"])})
        result.append(out)
    return result


@router.get("")
async def home(db=Depends(get_db)):
    latest = await (
        db["products"].find({"isActive": True}, PRODUCT_FIELDS).sort("createdAt", -1).limit(LATEST_LIMIT).to_list(length=None)
    )
    categories = await (
        db["categories"].find({"isActive": True}, {"name": 1, "description": 1, "createdAt": 1}).sort("name", 1).to_list(length=None)
    )
    stats, featured, reviews = await asyncio.gather(_store_stats(db), _featured(db), _customer_reviews(db))
    return {
        "success": True,
        "data": {
            "stats": stats,
            "latestProducts": await _with_category_names(db, latest),
            "featuredProducts": featured,
            "categories": [serialize_doc(c) for c in categories],
            "customerReviews": reviews,
            "whyChooseUs": WHY_CHOOSE_US,
        },
    }
