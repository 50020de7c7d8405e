"""
Site Visit Router - Completeness checks, checkout and follow-up history
for individual field visits.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from visit_pipeline.core.errors import ReferenceNotFoundError
from visit_pipeline.models.quotation import CompletenessVerdict
from visit_pipeline.models.visit import FieldVisit, FollowUpRecord, VisitCheckout
from visit_pipeline.routers.deps import (
    get_actor_id,
    get_follow_up_service,
    get_site_visit_service,
    verify_api_key,
)
from visit_pipeline.services.follow_up_service import FollowUpService
from visit_pipeline.services.site_visit_service import SiteVisitService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/site-visits",
    tags=["site-visits"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/{visit_id}/completeness", response_model=CompletenessVerdict, response_model_by_alias=True)
async def get_completeness(
    visit_id: str,
    service: SiteVisitService = Depends(get_site_visit_service),
):
    """Score a visit's readiness for quotation."""
    try:
        return await service.analyze(visit_id)
    except ReferenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{visit_id}/checkout", response_model=FieldVisit, response_model_by_alias=True)
async def checkout_visit(
    visit_id: str,
    checkout: VisitCheckout,
    actor_id: str = Depends(get_actor_id),
    service: SiteVisitService = Depends(get_site_visit_service),
):
    """
    Close a visit with the operator's outcome.

    The outcome becomes the customer's current status.
    """
    try:
        return await service.checkout(visit_id, checkout, actor_id)
    except ReferenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Checkout failed for site visit {visit_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Checkout failed: {str(e)}"
        )


@router.get("/{visit_id}/follow-ups", response_model=List[FollowUpRecord], response_model_by_alias=True)
async def list_follow_ups(
    visit_id: str,
    service: FollowUpService = Depends(get_follow_up_service),
):
    return await service.list_for_visit(visit_id)
