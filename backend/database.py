import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from errors import StoreUnavailable
from settings import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_db() -> AsyncIOMotorDatabase:
    """Return the process-wide database handle, connecting on first use."""
    global _client, _db
    if _db is None:
        logger.info("Connecting to MongoDB database %s", DATABASE_NAME)
        _client = AsyncIOMotorClient(DATABASE_URL)
        _db = _client[DATABASE_NAME]
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    _db = None


def _store_call(func):
    # Driver failures are reported once, never retried
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error("Store error in %s: %s", func.__name__, e)
            raise StoreUnavailable("Database unavailable", details=str(e)) from e
    return wrapper


def _object_id(doc_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def utc_now() -> datetime:
    # MongoDB keeps millisecond precision
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


@_store_call
async def list_documents(db: AsyncIOMotorDatabase, collection: str, sort_field: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = db[collection].find({}).sort(sort_field, -1)
    if limit:
        cursor = cursor.limit(limit)
    items = []
    async for doc in cursor:
        items.append(_normalize(doc))
    return items


@_store_call
async def count_documents(db: AsyncIOMotorDatabase, collection: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    return await db[collection].count_documents(filter_dict or {})


@_store_call
async def create_document(db: AsyncIOMotorDatabase, collection: str, data: Dict[str, Any], timestamp_field: str) -> Dict[str, Any]:
    doc = {**data, timestamp_field: utc_now()}
    res = await db[collection].insert_one(doc)
    doc["_id"] = res.inserted_id
    return _normalize(doc)


@_store_call
async def get_document(db: AsyncIOMotorDatabase, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    oid = _object_id(doc_id)
    if oid is None:
        return None
    doc = await db[collection].find_one({"_id": oid})
    return _normalize(doc) if doc else None


@_store_call
async def update_document(
    db: AsyncIOMotorDatabase,
    collection: str,
    doc_id: str,
    data: Dict[str, Any],
    preserve: tuple = (),
) -> Optional[Dict[str, Any]]:
    """Replace the stored body of ``doc_id``, keeping the ``preserve`` fields.

    Returns the updated document, or None when nothing matches.
    """
    oid = _object_id(doc_id)
    if oid is None:
        return None
    existing = await db[collection].find_one({"_id": oid})
    if not existing:
        return None
    body = {k: v for k, v in data.items() if k not in ("_id", "id")}
    for field in preserve:
        if field in existing:
            body[field] = existing[field]
    updated = await db[collection].find_one_and_replace(
        {"_id": oid}, body, return_document=ReturnDocument.AFTER
    )
    return _normalize(updated)


@_store_call
async def delete_document(db: AsyncIOMotorDatabase, collection: str, doc_id: str) -> bool:
    oid = _object_id(doc_id)
    if oid is None:
        return False
    res = await db[collection].delete_one({"_id": oid})
    return res.deleted_count > 0


def _normalize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return None
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            # the driver hands back naive UTC datetimes
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            d[k] = v.isoformat()
    return d
