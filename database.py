"""
Database handle

A single MongoClient is created from the environment. Nothing in the service
layer imports `db` directly: routes receive it through the `get_db`
dependency and pass it down, so tests can swap in an in-memory database.
"""

import os
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import MongoClient
from pymongo.database import Database

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")
DATABASE_TIMEOUT_MS = int(os.getenv("DATABASE_TIMEOUT_MS", "5000"))

# MongoClient connects lazily; an unreachable server shows up as a
# PyMongoError on the first operation.
client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=DATABASE_TIMEOUT_MS)
db = client[DATABASE_NAME]


def get_db() -> Database:
    return db


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a document stamped with createdAt and return its id as a string."""
    doc = dict(data)
    doc.setdefault("createdAt", datetime.now(timezone.utc))
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a product/user/order id, returning None when it is not an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_doc(doc: Any) -> Any:
    if doc is None:
        return doc
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, (datetime, date)):
        return doc.isoformat()
    if isinstance(doc, dict):
        return {k: serialize_doc(v) for k, v in doc.items()}
    if isinstance(doc, (list, tuple)):
        return [serialize_doc(v) for v in doc]
    return doc


def normalize_email(email: str) -> str:
    """Single form for every email-keyed lookup and write."""
    return email.strip().lower()


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["profile"].create_index("email", unique=True)
