"""
MongoDB access for the storefront.

One MongoClient per process, opened by ``connect()`` during application
startup. Route handlers receive the database through the ``get_db``
dependency so tests can swap in another handle.
"""
import os
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database

from errors import NotFoundError

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect() -> Database:
    global _client, db
    url = os.getenv("DATABASE_URL")
    name = os.getenv("DATABASE_NAME")
    if not url or not name:
        raise RuntimeError("Missing DATABASE_URL / DATABASE_NAME environment variables")
    _client = MongoClient(url)
    db = _client[name]
    logger.info("Connected to database %s", name)
    return db


def close():
    global _client, db
    if _client is not None:
        _client.close()
    _client = None
    db = None


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database not connected")
    return db


def ensure_indexes(database: Database):
    database["categories"].create_index("slug", unique=True)
    database["categories"].create_index("display_order")
    database["products"].create_index("slug", unique=True)
    database["products"].create_index([("is_active", ASCENDING), ("category_id", ASCENDING)])
    database["cart_items"].create_index([("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True)
    database["orders"].create_index("order_number", unique=True)
    database["orders"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["orders"].create_index([("user_id", ASCENDING), ("idempotency_key", ASCENDING)], unique=True,
                                    partialFilterExpression={"idempotency_key": {"$type": "string"}})
    database["order_items"].create_index("order_id")
    database["users"].create_index("email", unique=True)
    database["sessions"].create_index("jti", unique=True)
    database["sessions"].create_index("expires_at", expireAfterSeconds=0)


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert one record stamped with created_at/updated_at and return its id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = database[collection].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database: Database, collection: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = database[collection].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def object_id(value: str, what: str = "Record") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{what} not found")


def to_str_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d
