"""
Follow-Up Service - Customer status ledger across original visits and
their follow-ups.

Status transitions:
- Follow-up opened   -> original visit forced to "on_process"
- Follow-up completed -> outcome mapped to a customer status and copied
  back onto the original visit; the active pointer is cleared

An original visit has at most one active follow-up. The pointer is
claimed with a conditional write, so a concurrent second creation loses
and is rolled back.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from visit_pipeline.core.config import Settings, get_settings
from visit_pipeline.core.errors import (
    LedgerUpdateError,
    MissingCustomerStatusError,
    ReferenceNotFoundError,
    StateConflictError,
)
from visit_pipeline.models.visit import (
    FieldVisit,
    FollowUpCreate,
    FollowUpRecord,
    FollowUpUpdate,
)
from visit_pipeline.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

OUTCOME_TO_CUSTOMER_STATUS: Dict[str, str] = {
    "completed": "converted",
    "on_process": "on_process",
    "cancelled": "cancelled",
}


class FollowUpService:
    """Creates, completes and looks up follow-up visits."""

    def __init__(self, store: DocumentStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        self.collection = settings.mongo_follow_ups_collection
        self.site_visits_collection = settings.mongo_site_visits_collection

    async def _get_original(self, visit_id: str) -> FieldVisit:
        document = await self.store.get(self.site_visits_collection, visit_id)
        if not document:
            raise ReferenceNotFoundError(self.site_visits_collection, visit_id)
        return FieldVisit.model_validate(document)

    async def _rollback(self, follow_up_id: str) -> None:
        try:
            await self.store.delete(self.collection, follow_up_id)
            logger.info(f"Rolled back follow-up {follow_up_id}")
        except Exception as e:
            logger.error(f"Rollback of follow-up {follow_up_id} failed: {e}", exc_info=True)

    async def create_follow_up(self, data: FollowUpCreate) -> FollowUpRecord:
        """
        Open a follow-up against an original visit.

        Steps:
        1. Load the original and read its current customer status
        2. Refuse if it has no status or already has an active follow-up
        3. Insert the follow-up with a snapshot of that status
        4. Claim the original's active pointer and move it to "on_process"

        Raises:
            ReferenceNotFoundError: original visit does not exist
            MissingCustomerStatusError: original has no status yet
            StateConflictError: a follow-up is already active
            LedgerUpdateError: original could not be updated
        """
        original = await self._get_original(data.original_visit_id)

        current_status = original.effective_customer_status
        if not current_status:
            raise MissingCustomerStatusError(original.id)

        if original.active_follow_up_id:
            raise StateConflictError(
                f"Original visit {original.id} already has active follow-up "
                f"{original.active_follow_up_id}"
            )

        now = datetime.utcnow()
        record = FollowUpRecord(
            **data.model_dump(exclude={"customer"}),
            customer=data.customer or original.customer,
            status="in_progress",
            original_customer_status=current_status,
            affects_customer_status=True,
            created_at=now,
            updated_at=now,
        )
        follow_up_id = await self.store.create(
            self.collection, record.model_dump(by_alias=True, exclude={"id"})
        )
        record.id = follow_up_id

        try:
            claimed = await self.store.update(
                self.site_visits_collection,
                original.id,
                {
                    "followUpCount": original.follow_up_count + 1,
                    "hasFollowUps": True,
                    "customerCurrentStatus": "on_process",
                    "lastActivityType": "follow_up",
                    "lastActivityDate": now,
                    "activeFollowUpId": follow_up_id,
                    "updatedAt": now,
                },
                expected={"activeFollowUpId": None},
            )
        except Exception as e:
            logger.error(f"Failed to update original visit {original.id}: {e}", exc_info=True)
            await self._rollback(follow_up_id)
            raise LedgerUpdateError(original.id, e) from e

        if not claimed:
            await self._rollback(follow_up_id)
            raise StateConflictError(
                f"Original visit {original.id} gained an active follow-up concurrently"
            )

        logger.info(
            f"Follow-up {follow_up_id} opened for visit {original.id}: "
            f"customer status {current_status} -> on_process"
        )
        return record

    async def update_follow_up(self, follow_up_id: str, updates: FollowUpUpdate) -> FollowUpRecord:
        """
        Apply a partial update, propagating the outcome when the follow-up completes.

        Only the follow-up that is still active on its original visit may
        change that visit's status and release its pointer. Completing an
        already completed follow-up updates its own fields only. A missing
        original visit does not fail the update; the follow-up is flagged as
        orphaned instead.
        """
        current = await self.get_follow_up(follow_up_id)
        now = datetime.utcnow()

        changes = updates.model_dump(by_alias=True, exclude_none=True)
        changes["updatedAt"] = now

        if updates.completes_visit and current.status == "completed":
            logger.info(
                f"Follow-up {follow_up_id} is already completed; "
                f"visit {current.original_visit_id} left unchanged"
            )
        elif updates.completes_visit:
            new_status = OUTCOME_TO_CUSTOMER_STATUS[updates.visit_outcome]
            changes["newCustomerStatus"] = new_status

            try:
                original = await self.store.get(self.site_visits_collection, current.original_visit_id)
                if not original:
                    changes["orphaned"] = True
                    logger.warning(
                        f"Original visit {current.original_visit_id} not found while closing "
                        f"follow-up {follow_up_id}"
                    )
                elif await self.store.update(
                    self.site_visits_collection,
                    current.original_visit_id,
                    {
                        "customerCurrentStatus": new_status,
                        "lastActivityType": "follow_up",
                        "lastActivityDate": now,
                        "updatedAt": now,
                    },
                    expected={"activeFollowUpId": follow_up_id},
                    unset=("activeFollowUpId",),
                ):
                    logger.info(
                        f"Follow-up {follow_up_id} closed: visit {current.original_visit_id} "
                        f"customer status -> {new_status}"
                    )
                else:
                    logger.warning(
                        f"Follow-up {follow_up_id} is not the active follow-up of visit "
                        f"{current.original_visit_id}; visit status left unchanged"
                    )
            except Exception as e:
                logger.error(
                    f"Failed to propagate follow-up {follow_up_id} outcome to visit "
                    f"{current.original_visit_id}: {e}",
                    exc_info=True,
                )

        await self.store.update(self.collection, follow_up_id, changes)
        return await self.get_follow_up(follow_up_id)

    async def get_follow_up(self, follow_up_id: str) -> FollowUpRecord:
        document = await self.store.get(self.collection, follow_up_id)
        if not document:
            raise ReferenceNotFoundError(self.collection, follow_up_id)
        return FollowUpRecord.model_validate(document)

    async def list_for_visit(self, original_visit_id: str) -> List[FollowUpRecord]:
        documents = await self.store.find(
            self.collection,
            {"originalVisitId": original_visit_id},
            sort=[("createdAt", -1)],
        )
        return [FollowUpRecord.model_validate(document) for document in documents]

    async def list_for_user(
        self,
        user_id: str,
        department: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[FollowUpRecord]:
        filters = {"userId": user_id}
        if department:
            filters["department"] = department
        if status:
            filters["status"] = status

        documents = await self.store.find(
            self.collection, filters, sort=[("createdAt", -1)], limit=limit
        )
        return [FollowUpRecord.model_validate(document) for document in documents]
