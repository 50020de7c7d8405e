"""
Shared fixtures: an in-memory document store and sample visit documents.
"""
import copy
import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

os.environ.setdefault("API_SECRET", "test-secret")

from visit_pipeline.core.business_rules import BusinessRules
from visit_pipeline.core.config import get_settings
from visit_pipeline.services.directories import CustomerDirectory, UserDirectory
from visit_pipeline.services.follow_up_service import FollowUpService
from visit_pipeline.services.quotation_assembler import QuotationAssembler
from visit_pipeline.services.quotation_service import QuotationService
from visit_pipeline.services.site_visit_service import SiteVisitService


def _matches(document: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, condition in filters.items():
        value = document.get(key)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$in" and value not in operand:
                    return False
                if value is None and op in ("$gt", "$gte", "$lt", "$lte"):
                    return False
                if op == "$gt" and not value > operand:
                    return False
                if op == "$gte" and not value >= operand:
                    return False
                if op == "$lt" and not value < operand:
                    return False
                if op == "$lte" and not value <= operand:
                    return False
        elif value != condition:
            return False
    return True


class InMemoryDocumentStore:
    """Same interface as DocumentStore, backed by dicts."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.failing_updates: set = set()
        self.deleted: List[Tuple[str, str]] = []

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    def seed(self, collection: str, document: Dict[str, Any]) -> str:
        document = copy.deepcopy(document)
        document_id = document.pop("id", None) or uuid.uuid4().hex
        self._collection(collection)[document_id] = document
        return document_id

    def raw(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        return self._collection(collection).get(document_id)

    async def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        document = self._collection(collection).get(document_id)
        if document is None:
            return None
        return {**copy.deepcopy(document), "id": document_id}

    async def create(self, collection: str, data: Dict[str, Any]) -> str:
        document_id = str(data.get("id") or uuid.uuid4().hex)
        document = {k: copy.deepcopy(v) for k, v in data.items() if v is not None and k != "id"}
        self._collection(collection)[document_id] = document
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
        if collection in self.failing_updates:
            raise RuntimeError(f"update on {collection} unavailable")

        document = self._collection(collection).get(document_id)
        if document is None:
            return False
        if expected and not _matches(document, expected):
            return False

        document.update({k: copy.deepcopy(v) for k, v in changes.items() if v is not None and k != "id"})
        for field in unset:
            document[field] = None
        for field, value in (push or {}).items():
            document.setdefault(field, []).append(copy.deepcopy(value))
        return True

    async def delete(self, collection: str, document_id: str) -> bool:
        self.deleted.append((collection, document_id))
        return self._collection(collection).pop(document_id, None) is not None

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        results = [
            {**copy.deepcopy(document), "id": document_id}
            for document_id, document in self._collection(collection).items()
            if _matches(document, filters or {})
        ]
        for key, direction in reversed(sort or []):
            results.sort(
                key=lambda d: (d.get(key) is not None, d.get(key)),
                reverse=direction < 0,
            )
        if limit:
            results = results[:limit]
        return results


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def rules():
    return BusinessRules()


@pytest.fixture
def assembler(store, settings, rules):
    return QuotationAssembler(
        customers=CustomerDirectory(store, settings),
        users=UserDirectory(store, settings),
        rules=rules,
        number_generator=lambda: "Q-1700000000000-ABC",
    )


@pytest.fixture
def site_visit_service(store, settings):
    return SiteVisitService(store, settings)


@pytest.fixture
def follow_up_service(store, settings):
    return FollowUpService(store, settings)


@pytest.fixture
def quotation_service(store, assembler, site_visit_service, settings):
    return QuotationService(store, assembler, site_visit_service, settings)


@pytest.fixture
def marketing_visit() -> Dict[str, Any]:
    """A completed marketing visit with a 5 kW on-grid system and no project value."""
    return {
        "id": "visit-1",
        "userId": "user-1",
        "department": "marketing",
        "visitPurpose": "Solar consultation",
        "siteInTime": datetime(2024, 5, 1, 9, 0),
        "siteInLocation": {"latitude": 11.0168, "longitude": 76.9558, "address": "Coimbatore"},
        "siteInPhotoUrl": "https://photos.example.com/in.jpg",
        "siteOutTime": datetime(2024, 5, 1, 10, 30),
        "siteOutPhotoUrl": "https://photos.example.com/out.jpg",
        "customer": {
            "name": "A",
            "mobile": "9999999999",
            "address": "X",
            "propertyType": "residential",
        },
        "marketingData": {
            "updateRequirements": True,
            "projectType": "on_grid",
            "onGridConfig": {"inverterKW": 5, "panelCount": 10, "projectValue": 0},
        },
        "sitePhotos": [{"url": "https://photos.example.com/roof.jpg", "caption": "Roof"}],
        "status": "completed",
        "visitOutcome": "on_process",
        "customerCurrentStatus": "on_process",
        "notes": "Customer wants net metering",
    }


@pytest.fixture
def bare_visit() -> Dict[str, Any]:
    """A technical visit with nothing useful recorded."""
    return {
        "id": "visit-bare",
        "department": "technical",
        "status": "in_progress",
        "customer": {},
    }
