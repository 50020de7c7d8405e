"""
Site Visit Service - Visit lookups, checkout and the mappable-visit listing.

Checkout is the first transition of the customer status ledger: the
operator's outcome is copied straight into `customerCurrentStatus`.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from visit_pipeline.core.config import Settings, get_settings
from visit_pipeline.core.errors import ReferenceNotFoundError
from visit_pipeline.models.quotation import CompletenessVerdict
from visit_pipeline.models.visit import FieldVisit, SitePhoto, VisitCheckout
from visit_pipeline.services import completeness_analyzer
from visit_pipeline.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


def _dump_photos(photos: List[SitePhoto]) -> list:
    return [photo.model_dump(by_alias=True, exclude_none=True) for photo in photos]


class SiteVisitService:
    """Reads and checks out field visits."""

    def __init__(self, store: DocumentStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        self.collection = settings.mongo_site_visits_collection

    async def get_visit(self, visit_id: str) -> FieldVisit:
        document = await self.store.get(self.collection, visit_id)
        if not document:
            raise ReferenceNotFoundError(self.collection, visit_id)
        return FieldVisit.model_validate(document)

    async def analyze(self, visit_id: str) -> CompletenessVerdict:
        visit = await self.get_visit(visit_id)
        return completeness_analyzer.analyze(visit)

    async def checkout(self, visit_id: str, checkout: VisitCheckout, actor_id: str) -> FieldVisit:
        """
        Close a visit and record the operator's outcome.

        The outcome becomes the customer's current status directly;
        this is the only place the initial visit sets it.
        """
        visit = await self.get_visit(visit_id)
        now = datetime.utcnow()

        changes = {
            "status": "completed",
            "siteOutTime": checkout.site_out_time or now,
            "siteOutLocation": (
                checkout.site_out_location.model_dump(by_alias=True, exclude_none=True)
                if checkout.site_out_location else None
            ),
            "siteOutPhotoUrl": checkout.site_out_photo_url,
            "visitOutcome": checkout.visit_outcome,
            "outcomeNotes": checkout.outcome_notes,
            "scheduledFollowUpDate": checkout.scheduled_follow_up_date,
            "outcomeSelectedAt": now,
            "outcomeSelectedBy": actor_id,
            "customerCurrentStatus": checkout.visit_outcome,
            "lastActivityType": "initial_visit",
            "lastActivityDate": now,
            "notes": checkout.notes,
            "updatedAt": now,
        }
        if checkout.site_out_photos:
            changes["siteOutPhotos"] = _dump_photos(checkout.site_out_photos)

        await self.store.update(self.collection, visit_id, changes)
        logger.info(
            f"Site visit {visit_id} checked out by {actor_id}: "
            f"customer status {visit.effective_customer_status} -> {checkout.visit_outcome}"
        )
        return await self.get_visit(visit_id)

    async def list_mappable(self, limit: int = 50) -> List[Tuple[FieldVisit, CompletenessVerdict]]:
        """Completed visits, newest first, each with its completeness verdict."""
        documents = await self.store.find(
            self.collection,
            {"status": "completed"},
            sort=[("siteOutTime", -1)],
            limit=limit,
        )
        results = []
        for document in documents:
            visit = FieldVisit.model_validate(document)
            results.append((visit, completeness_analyzer.analyze(visit)))
        return results
