"""
Identity store: signup/login and the write side of wishlists and carts.

Wishlist and cart entries are weak references to products. Nothing here
checks that a product still exists; reconciliation.py filters dangling
references when the collections are read.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, normalize_email, to_object_id
from errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationFailed
from reconciliation import live_product_ids, resolve_cart
from schemas import User

logger = logging.getLogger(__name__)

COLLECTION = "user"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_user_by_email(db: Database, email: str) -> Optional[Dict[str, Any]]:
    return db[COLLECTION].find_one({"email": normalize_email(email)})


def _require_user(db: Database, email: str) -> Dict[str, Any]:
    user = get_user_by_email(db, email)
    if not user:
        raise NotFound("User not found")
    return user


def _product_ref(product_id: str) -> ObjectId:
    obj_id = to_object_id(product_id)
    if obj_id is None:
        raise ValidationFailed("Invalid product id")
    return obj_id


# Auth

def signup(db: Database, name: str, email: str, password: str, confirm: str, role: str = "user") -> str:
    if password != confirm:
        raise ValidationFailed("Passwords do not match")
    email = normalize_email(email)
    if get_user_by_email(db, email):
        raise Conflict("Email already exists")
    user = User(name=name, email=email, passwordHash=hash_password(password), role=role)
    try:
        user_id = create_document(db, COLLECTION, user.model_dump())
    except DuplicateKeyError:
        # Lost a race with a concurrent signup for the same email.
        raise Conflict("Email already exists")
    logger.info("Registered %s as %s (%s)", email, role, user_id)
    return user.role


def login(db: Database, email: str, password: str, role: str) -> Tuple[str, bool]:
    """Check credentials and role; returns (role, is_new_user)."""
    user = _require_user(db, email)
    if not verify_password(password, user.get("passwordHash", "")):
        raise Unauthorized("Invalid password")
    if user.get("role") != role:
        raise Forbidden(f"Incorrect role. Registered as {user.get('role')}")
    is_new_user = bool(user.get("isFirstLogin"))
    if is_new_user:
        db[COLLECTION].update_one({"_id": user["_id"]}, {"$set": {"isFirstLogin": False}})
    return user["role"], is_new_user


# Wishlist

def add_to_wishlist(db: Database, email: str, product_id: str) -> None:
    ref = _product_ref(product_id)
    res = db[COLLECTION].update_one({"email": normalize_email(email)}, {"$addToSet": {"wishlist": ref}})
    if res.matched_count == 0:
        raise NotFound("User not found")


def remove_from_wishlist(db: Database, email: str, product_id: str) -> None:
    user = _require_user(db, email)
    ref = to_object_id(product_id)
    if ref is None:
        # Could never have been stored, so there is nothing to remove.
        return
    db[COLLECTION].update_one({"_id": user["_id"]}, {"$pull": {"wishlist": ref}})


# Cart

def add_to_cart(db: Database, email: str, product_id: str, quantity: Optional[int] = None) -> None:
    """Find-or-append: bump the quantity of an existing entry or add a new one.

    This is a plain read-modify-write of the embedded array. Two concurrent
    calls for the same user may lose one update.
    """
    ref = _product_ref(product_id)
    amount = quantity or 1
    if amount < 1:
        raise ValidationFailed("Quantity must be at least 1")
    user = _require_user(db, email)
    items = user.get("cart", [])
    for item in items:
        if isinstance(item, dict) and item.get("productId") == ref:
            item["quantity"] = int(item.get("quantity", 1)) + amount
            break
    else:
        items.append({"productId": ref, "quantity": amount})
    db[COLLECTION].update_one({"_id": user["_id"]}, {"$set": {"cart": items}})


def remove_from_cart(db: Database, email: str, product_id: str) -> List[Dict[str, Any]]:
    """Drop a product from the cart and return the reconciled cart.

    The cart is rewritten here anyway, so entries whose product has been
    deleted are pruned in the same write.
    """
    user = get_user_by_email(db, email)
    if not user:
        return []
    ref = to_object_id(product_id)
    items = user.get("cart") or []
    # Entries that are not {productId, quantity} documents are dropped like dangling ones.
    entries = [item for item in items if isinstance(item, dict)]
    live = live_product_ids(db, [item.get("productId") for item in entries])
    kept = [
        item for item in entries
        if isinstance(item.get("productId"), ObjectId) and item["productId"] in live and item["productId"] != ref
    ]
    if len(kept) != len(items):
        db[COLLECTION].update_one({"_id": user["_id"]}, {"$set": {"cart": kept}})
    return resolve_cart(db, kept)
