"""
Profile store, keyed by email. The name is loosely synced with the user
record: copied in when a profile is first created and pushed back on update.
"""

import logging
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import normalize_email
from schemas import Profile

logger = logging.getLogger(__name__)

COLLECTION = "profile"


def get_profile(db: Database, email: str) -> Dict[str, Any]:
    """Return the profile for `email`, creating it on first read.

    The unique index on profile.email makes the upsert create at most one.
    """
    email = normalize_email(email)
    user = db["user"].find_one({"email": email}, {"name": 1})
    seed = Profile(name=(user or {}).get("name") or "New User", email=email)
    return db[COLLECTION].find_one_and_update(
        {"email": email},
        {"$setOnInsert": seed.model_dump(exclude={"email"})},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def upsert_profile(
    db: Database,
    email: str,
    name: Optional[str],
    phone: Optional[str],
    address: Optional[str],
) -> Dict[str, Any]:
    email = normalize_email(email)
    profile = db[COLLECTION].find_one_and_update(
        {"email": email},
        {"$set": {"name": name, "phone": phone, "address": address}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    try:
        db["user"].update_one({"email": email}, {"$set": {"name": name}})
    except PyMongoError:
        logger.warning("Profile for %s saved but name sync to user failed", email, exc_info=True)
    return profile
