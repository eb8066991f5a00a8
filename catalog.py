"""
Catalog store: product records, the source of truth for name, price, image
and attributes referenced by carts, wishlists and orders.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, to_object_id
from errors import NotFound, ValidationFailed
from schemas import Product

logger = logging.getLogger(__name__)

COLLECTION = "product"


class ProductFilter(BaseModel):
    category: Optional[str] = None
    size: Optional[str] = None
    brand: Optional[str] = None
    color: Optional[str] = None
    rating: Optional[float] = None
    priceMin: Optional[float] = None
    priceMax: Optional[float] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.category:
            query["category"] = self.category
        if self.size:
            query["size"] = self.size
        if self.brand:
            query["brand"] = self.brand
        if self.color:
            query["color"] = {"$regex": f"^{re.escape(self.color)}$", "$options": "i"}
        if self.rating is not None:
            query["rating"] = {"$gte": float(self.rating)}
        price_filter: Dict[str, Any] = {}
        if self.priceMin is not None:
            price_filter["$gte"] = float(self.priceMin)
        if self.priceMax is not None:
            price_filter["$lte"] = float(self.priceMax)
        if price_filter:
            query["price"] = price_filter
        return query


def _validated(fields: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return Product(**fields).model_dump()
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationFailed(f"Invalid product {location}: {first['msg']}")


def create_product(db: Database, fields: Dict[str, Any]) -> Dict[str, Any]:
    if not fields.get("image"):
        raise ValidationFailed("Image required")
    doc = _validated(fields)
    product_id = create_document(db, COLLECTION, doc)
    logger.info("Created product %s (%s)", product_id, doc["name"])
    return db[COLLECTION].find_one({"_id": to_object_id(product_id)})


def get_product(db: Database, product_id: str) -> Dict[str, Any]:
    obj_id = to_object_id(product_id)
    product = db[COLLECTION].find_one({"_id": obj_id}) if obj_id else None
    if not product:
        raise NotFound("Product not found")
    return product


def list_products(db: Database, filters: Optional[ProductFilter] = None) -> List[Dict[str, Any]]:
    query = (filters or ProductFilter()).to_query()
    return get_documents(db, COLLECTION, query)


def update_product(db: Database, product_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Apply the provided fields to an existing product.

    Fields given as None are left untouched, except `rating`: it is nullable,
    so a `rating` key that is present (even as None) is written. An empty
    `image` keeps the current image.
    """
    current = get_product(db, product_id)
    changes = {k: v for k, v in fields.items() if v is not None or k == "rating"}
    if not changes.get("image"):
        changes.pop("image", None)
    merged = {k: v for k, v in current.items() if k in Product.model_fields}
    merged.update(changes)
    doc = _validated(merged)
    updated = db[COLLECTION].find_one_and_update(
        {"_id": current["_id"]},
        {"$set": doc},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Product not found")
    logger.info("Updated product %s", product_id)
    return updated


def delete_product(db: Database, product_id: str) -> None:
    # Carts and wishlists keep their references; reads drop them later.
    obj_id = to_object_id(product_id)
    res = db[COLLECTION].delete_one({"_id": obj_id}) if obj_id else None
    if res is None or res.deleted_count == 0:
        raise NotFound("Product not found")
    logger.info("Deleted product %s", product_id)
