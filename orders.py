"""
Order store. Each order snapshots product name and price at creation time;
afterwards only `status` changes.
"""

import logging
from typing import Any, Dict, List

from bson import ObjectId
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, normalize_email, to_object_id
from errors import NotFound, ValidationFailed
from schemas import ORDER_STATUSES, Order

logger = logging.getLogger(__name__)

COLLECTION = "order"


def _snapshot_line(db: Database, line: Dict[str, Any]) -> Dict[str, Any]:
    product_id = line.get("productId")
    obj_id = to_object_id(product_id)
    product = db["product"].find_one({"_id": obj_id}) if obj_id else None
    if not product:
        raise NotFound(f"Product not found: {product_id}")
    return {
        "productId": str(product["_id"]),
        "productName": product["name"],
        "productPrice": product["price"],
        "quantity": line.get("quantity"),
    }


def create_order(db: Database, email: str, lines: List[Dict[str, Any]], total_amount: float) -> Dict[str, Any]:
    """Snapshot every line and store the order.

    All lines are resolved before anything is written, so a single missing
    product aborts the order with nothing persisted.
    """
    user = db["user"].find_one({"email": normalize_email(email)})
    if not user:
        raise NotFound("User not found")
    if not lines:
        raise ValidationFailed("Order must contain at least one item")
    snapshot = [_snapshot_line(db, line) for line in lines]
    try:
        order = Order(userId=str(user["_id"]), products=snapshot, totalAmount=total_amount)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid order: {e.errors()[0]['msg']}")

    doc = order.model_dump()
    doc["userId"] = user["_id"]
    for line in doc["products"]:
        line["productId"] = ObjectId(line["productId"])
    order_id = create_document(db, COLLECTION, doc)
    logger.info("Created order %s for %s (%d lines)", order_id, email, len(snapshot))
    return db[COLLECTION].find_one({"_id": ObjectId(order_id)})


def list_orders(db: Database) -> List[Dict[str, Any]]:
    """All orders newest first, each with `userId` expanded to {_id, email}."""
    orders = list(db[COLLECTION].find().sort([("createdAt", -1), ("_id", -1)]))
    owner_ids = {o.get("userId") for o in orders if o.get("userId") is not None}
    owners = {
        u["_id"]: {"_id": u["_id"], "email": u.get("email")}
        for u in db["user"].find({"_id": {"$in": list(owner_ids)}}, {"email": 1})
    } if owner_ids else {}
    for order in orders:
        order["userId"] = owners.get(order.get("userId"))
    return orders


def update_status(db: Database, order_id: str, status: str) -> Dict[str, Any]:
    # Any status may follow any other.
    if status not in ORDER_STATUSES:
        raise ValidationFailed(f"Invalid status: {status}")
    obj_id = to_object_id(order_id)
    order = db[COLLECTION].find_one_and_update(
        {"_id": obj_id},
        {"$set": {"status": status}},
        return_document=ReturnDocument.AFTER,
    ) if obj_id else None
    if not order:
        raise NotFound("Order not found")
    logger.info("Order %s is now %s", order_id, status)
    return order
