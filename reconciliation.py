"""
Read side of carts and wishlists.

Stored entries only carry a product id. Every read joins them against the
live catalog and silently drops entries whose product no longer resolves;
stored order is preserved. Reads never write back: dangling entries stay in
the user document until the cart is next rewritten.
"""

import logging
from typing import Any, Dict, Iterable, List, Set

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import normalize_email
from errors import NotFound

logger = logging.getLogger(__name__)


def _refs(values: Iterable[Any]) -> List[ObjectId]:
    return [v for v in values if isinstance(v, ObjectId)]


def fetch_products(db: Database, refs: Iterable[Any]) -> Dict[ObjectId, Dict[str, Any]]:
    ids = _refs(refs)
    if not ids:
        return {}
    return {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}})}


def live_product_ids(db: Database, refs: Iterable[Any]) -> Set[ObjectId]:
    ids = _refs(refs)
    if not ids:
        return set()
    return {p["_id"] for p in db["product"].find({"_id": {"$in": ids}}, {"_id": 1})}


def resolve_cart(db: Database, items: List[Any]) -> List[Dict[str, Any]]:
    entries = [item for item in items if isinstance(item, dict) and isinstance(item.get("productId"), ObjectId)]
    products = fetch_products(db, (item["productId"] for item in entries))
    resolved = []
    for item in entries:
        product = products.get(item["productId"])
        if product is None:
            continue
        resolved.append({
            "_id": product["_id"],
            "name": product.get("name"),
            "price": product.get("price"),
            "rating": product.get("rating"),
            "quantity": item.get("quantity", 1),
        })
    return resolved


def resolve_wishlist(db: Database, refs: List[Any]) -> List[Dict[str, Any]]:
    products = fetch_products(db, refs)
    return [products[ref] for ref in refs if isinstance(ref, ObjectId) and ref in products]


def get_cart(db: Database, email: str) -> List[Dict[str, Any]]:
    """Denormalized cart for `email`.

    Never fails: unknown users, malformed entries and store faults all
    degrade to what can be resolved, down to an empty list.
    """
    try:
        user = db["user"].find_one({"email": normalize_email(email)}, {"cart": 1})
        if not user or not isinstance(user.get("cart"), list):
            return []
        return resolve_cart(db, user["cart"])
    except Exception:
        logger.exception("Cart read for %s failed, returning empty cart", email)
        return []


def get_wishlist(db: Database, email: str) -> List[Dict[str, Any]]:
    try:
        user = db["user"].find_one({"email": normalize_email(email)}, {"wishlist": 1})
        if not user:
            raise NotFound("User not found")
        return resolve_wishlist(db, list(user.get("wishlist") or []))
    except PyMongoError:
        logger.warning("Wishlist read for %s failed, returning empty wishlist", email, exc_info=True)
        return []
