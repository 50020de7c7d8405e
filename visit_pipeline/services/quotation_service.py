"""
Quotation Service - Persists drafts built from site visits and records
revisions against them.
"""
import logging
from datetime import datetime
from typing import Optional

from visit_pipeline.core.config import Settings, get_settings
from visit_pipeline.core.errors import ReferenceNotFoundError, StateConflictError
from visit_pipeline.models.quotation import MappingResult, QuotationDraft, QuotationUpdate, RevisionEntry
from visit_pipeline.services.quotation_assembler import QuotationAssembler
from visit_pipeline.services.document_store import DocumentStore
from visit_pipeline.services.site_visit_service import SiteVisitService

logger = logging.getLogger(__name__)


class QuotationService:
    """Quotation persistence on top of the assembler."""

    def __init__(
        self,
        store: DocumentStore,
        assembler: QuotationAssembler,
        site_visits: SiteVisitService,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.assembler = assembler
        self.site_visits = site_visits
        self.collection = settings.mongo_quotations_collection

    async def get_quotation(self, quotation_id: str) -> QuotationDraft:
        document = await self.store.get(self.collection, quotation_id)
        if not document:
            raise ReferenceNotFoundError(self.collection, quotation_id)
        return QuotationDraft.model_validate(document)

    async def preview_from_site_visit(self, visit_id: str, actor_id: str) -> MappingResult:
        """Map a visit without saving anything but a possibly new customer."""
        visit = await self.site_visits.get_visit(visit_id)
        return await self.assembler.map_to_quotation(visit, actor_id)

    async def create_from_site_visit(self, visit_id: str, actor_id: str) -> MappingResult:
        result = await self.preview_from_site_visit(visit_id, actor_id)

        now = datetime.utcnow()
        draft = result.quotation_data
        draft.created_at = now
        draft.updated_at = now
        draft.id = await self.store.create(
            self.collection, draft.model_dump(by_alias=True, exclude={"id"})
        )

        logger.info(f"Quotation {draft.quotation_number} ({draft.id}) saved from site visit {visit_id}")
        return result

    async def update_quotation(
        self,
        quotation_id: str,
        changes: QuotationUpdate,
        actor_id: str,
        change_note: Optional[str] = None,
    ) -> QuotationDraft:
        """
        Apply edits as a new document version.

        The revision entry records the version being replaced and is
        appended to the stored history. The write only applies while the
        stored version is still the one that was read. Edited line items
        are repriced and the totals recomputed whenever the projects change.

        Raises:
            ReferenceNotFoundError: no such quotation
            StateConflictError: the quotation was revised concurrently
        """
        current = await self.get_quotation(quotation_id)
        now = datetime.utcnow()

        revision = RevisionEntry(
            version=current.document_version,
            updated_at=now,
            updated_by=actor_id,
            change_note=change_note or f"Revision {current.document_version + 1}",
        )

        update = changes.model_dump(by_alias=True, exclude_none=True)
        if changes.projects is not None:
            mapper = self.assembler.mapper
            projects = [mapper.reprice(project) for project in changes.projects]
            update["projects"] = [project.model_dump(by_alias=True) for project in projects]
            update.update(mapper.calculate_pricing(projects).model_dump(by_alias=True))

        update["documentVersion"] = current.document_version + 1
        update["updatedAt"] = now

        applied = await self.store.update(
            self.collection,
            quotation_id,
            update,
            expected={"documentVersion": current.document_version},
            push={"revisionHistory": revision.model_dump(by_alias=True)},
        )
        if not applied:
            logger.warning(f"Quotation {quotation_id} changed while revising v{current.document_version}")
            raise StateConflictError(
                f"Quotation {quotation_id} was revised by someone else; reload and retry"
            )

        logger.info(
            f"Quotation {quotation_id} revised by {actor_id}: "
            f"v{current.document_version} -> v{current.document_version + 1}"
        )
        return await self.get_quotation(quotation_id)
