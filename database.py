"""
Database Helper Functions

MongoDB connection bootstrap plus small helpers shared by the Mongo store.
`db` stays None when DATABASE_URL / DATABASE_NAME are not configured, which
lets the service run on the JSON file store instead.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson.objectid import ObjectId
from pymongo import MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.database_url and settings.database_name:
    _client = MongoClient(settings.database_url)
    db = _client[settings.database_name]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a stored document JSON friendly: ObjectId `_id` becomes its hex string."""
    if not doc:
        return None
    doc = dict(doc)
    if isinstance(doc.get("_id"), ObjectId):
        doc["_id"] = str(doc["_id"])
    return doc


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a copy of `data` and return the native id as a string."""
    data_dict = {k: v for k, v in data.items() if k != "_id"}
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None):
    """Find documents sorted by `order` ascending."""
    cursor = database[collection_name].find(filter_dict or {}).sort("order", 1)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(doc) for doc in cursor]


def ping(database: Optional[Database]) -> Dict[str, Any]:
    if database is None:
        return {"database": "Not configured", "collections": []}
    try:
        return {
            "database": "Connected",
            "collections": database.list_collection_names()[:10],
        }
    except Exception as e:
        logger.warning("Database ping failed: %s", e)
        return {"database": f"Connected but error: {str(e)[:80]}", "collections": []}
