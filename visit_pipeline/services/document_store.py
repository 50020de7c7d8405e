"""
Document Store - Thin async wrapper over a MongoDB database.

Documents go in and come out as plain camelCase dicts. The Mongo `_id`
is a string uuid and is exposed to callers as `id`.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from visit_pipeline.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _strip_none(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None so partial writes never blank fields."""
    return {key: value for key, value in data.items() if value is not None and key not in ("id", "_id")}


def _to_public(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    document = dict(document)
    document["id"] = str(document.pop("_id"))
    return document


class DocumentStore:
    """Generic get/create/update/delete/find over named collections."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.db = database

    async def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        document = await self.db[collection].find_one({"_id": document_id})
        return _to_public(document)

    async def create(self, collection: str, data: Dict[str, Any]) -> str:
        document_id = str(data.get("id") or uuid.uuid4().hex)
        document = _strip_none(data)
        document["_id"] = document_id
        await self.db[collection].insert_one(document)
        logger.debug(f"Created {collection}/{document_id}")
        return document_id

    async def update(
        self,
        collection: str,
        document_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
        unset: Sequence[str] = (),
        push: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Apply a partial update.

        Args:
            collection: Collection name
            document_id: Document identity
            changes: Fields to set (None values are ignored)
            expected: Field values that must still hold for the write to apply
            unset: Fields to clear (stored as null)
            push: Array fields to append one value each to

        Returns:
            True if a document matched the id and expectations
        """
        query: Dict[str, Any] = {"_id": document_id}
        if expected:
            query.update(expected)

        operation: Dict[str, Any] = {}
        to_set = _strip_none(changes)
        to_set.update({field: None for field in unset})
        if to_set:
            operation["$set"] = to_set
        if push:
            operation["$push"] = push
        if not operation:
            return await self.db[collection].count_documents(query, limit=1) > 0

        result = await self.db[collection].update_one(query, operation)
        return result.matched_count > 0

    async def delete(self, collection: str, document_id: str) -> bool:
        result = await self.db[collection].delete_one({"_id": document_id})
        return result.deleted_count > 0

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Equality and range ($gt/$gte/$lt/$lte/$in) queries."""
        cursor = self.db[collection].find(filters or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)

        results = []
        async for document in cursor:
            results.append(_to_public(document))
        return results


def create_document_store(client: AsyncIOMotorClient, settings: Optional[Settings] = None) -> DocumentStore:
    settings = settings or get_settings()
    return DocumentStore(client[settings.mongo_db_name])
