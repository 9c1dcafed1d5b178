# Resource and class operations shared by the JSON API and the admin console
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from database import (
    count_documents,
    create_document,
    delete_document,
    get_document,
    list_documents,
    update_document,
)
from errors import MissingParameter, NotFound, ValidationError
from schemas import (
    CLASS_REQUIRED_FIELDS,
    RESOURCE_REQUIRED_FIELDS,
    RESOURCE_TYPES,
    validate_class,
    validate_resource,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityKind:
    label: str
    collection: str
    timestamp_field: str
    required_fields: Tuple[str, ...]
    validate: Callable[[Dict[str, Any]], Dict[str, Any]]


RESOURCES = EntityKind(
    label="Resource",
    collection="resources",
    timestamp_field="uploadedAt",
    required_fields=RESOURCE_REQUIRED_FIELDS,
    validate=validate_resource,
)

CLASSES = EntityKind(
    label="Class",
    collection="classes",
    timestamp_field="createdAt",
    required_fields=CLASS_REQUIRED_FIELDS,
    validate=validate_class,
)


def missing_fields(kind: EntityKind, data: Dict[str, Any]) -> List[str]:
    return [f for f in kind.required_fields if not data.get(f)]


def _writable(kind: EntityKind, data: Dict[str, Any]) -> Dict[str, Any]:
    # id and the server timestamp are immutable
    return {k: v for k, v in data.items() if k not in ("id", "_id", kind.timestamp_field)}


async def list_entities(db: AsyncIOMotorDatabase, kind: EntityKind, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    items = await list_documents(db, kind.collection, kind.timestamp_field, limit=limit)
    logger.info("Fetched %d %s documents", len(items), kind.collection)
    return items


async def create_entity(db: AsyncIOMotorDatabase, kind: EntityKind, data: Dict[str, Any]) -> Dict[str, Any]:
    missing = missing_fields(kind, data)
    if missing:
        logger.warning("%s create rejected, missing fields: %s", kind.label, missing)
        raise ValidationError(
            f"Missing required fields: {', '.join(kind.required_fields)}",
            details={"missing": missing},
        )
    doc = kind.validate(_writable(kind, data))
    created = await create_document(db, kind.collection, doc, kind.timestamp_field)
    logger.info("%s created: %s (%s)", kind.label, created["id"], created.get("name"))
    return created


async def update_entity(db: AsyncIOMotorDatabase, kind: EntityKind, doc_id: Optional[str], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Overwrite the stored document with the fields present in ``changes``.

    The merged document is validated as a whole, so switching a resource's
    university also drops the fields of the old variant.
    """
    if not doc_id:
        raise MissingParameter("ID required")
    existing = await get_document(db, kind.collection, doc_id)
    if existing is None:
        raise NotFound(f"{kind.label} not found")
    merged = {**_writable(kind, existing), **_writable(kind, changes)}
    doc = kind.validate(merged)
    updated = await update_document(db, kind.collection, doc_id, doc, preserve=(kind.timestamp_field,))
    if updated is None:
        raise NotFound(f"{kind.label} not found")
    logger.info("%s updated: %s", kind.label, doc_id)
    return updated


async def delete_entity(db: AsyncIOMotorDatabase, kind: EntityKind, doc_id: Optional[str]) -> None:
    if not doc_id:
        raise MissingParameter("ID required")
    if not await delete_document(db, kind.collection, doc_id):
        raise NotFound(f"{kind.label} not found")
    logger.info("%s deleted: %s", kind.label, doc_id)


async def collect_stats(db: AsyncIOMotorDatabase, recent: int = 5) -> Dict[str, Any]:
    by_type = {}
    for resource_type in RESOURCE_TYPES:
        by_type[resource_type] = await count_documents(db, RESOURCES.collection, {"type": resource_type})
    return {
        "resources": await count_documents(db, RESOURCES.collection),
        "classes": await count_documents(db, CLASSES.collection),
        "byType": by_type,
        "recent": await list_entities(db, RESOURCES, limit=recent),
    }
