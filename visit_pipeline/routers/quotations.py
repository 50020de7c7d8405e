"""
Quotation Router - Converts completed site visits into quotations and
records revisions.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from visit_pipeline.core.errors import (
    ProjectMappingError,
    ReferenceNotFoundError,
    StateConflictError,
    VisitValidationError,
)
from visit_pipeline.models.quotation import MappingResult, QuotationDraft, QuotationUpdate
from visit_pipeline.routers.deps import (
    get_actor_id,
    get_quotation_service,
    get_site_visit_service,
    verify_api_key,
)
from visit_pipeline.services.quotation_service import QuotationService
from visit_pipeline.services.site_visit_service import SiteVisitService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/quotations",
    tags=["quotations"],
    dependencies=[Depends(verify_api_key)],
)


def _mapping_error(e: Exception) -> HTTPException:
    """Translate assembler errors into actionable responses."""
    if isinstance(e, VisitValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": str(e),
                "completenessAnalysis": e.verdict.model_dump(by_alias=True),
            },
        )
    if isinstance(e, ProjectMappingError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(e),
                "recommendedAction": e.recommended_action,
                "missingData": e.missing_data,
            },
        )
    if isinstance(e, ReferenceNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    logger.error(f"Quotation mapping failed: {str(e)}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Quotation mapping failed: {str(e)}"
    )


@router.get("/site-visits/mappable")
async def list_mappable_site_visits(
    limit: int = 50,
    service: SiteVisitService = Depends(get_site_visit_service),
) -> List[Dict[str, Any]]:
    """Completed visits with their completeness verdicts, newest first."""
    results = await service.list_mappable(limit=limit)
    return [
        {
            "siteVisit": visit.model_dump(by_alias=True, mode="json"),
            "completenessAnalysis": verdict.model_dump(by_alias=True),
        }
        for visit, verdict in results
    ]


@router.get("/site-visits/{visit_id}/mapping-data", response_model=MappingResult, response_model_by_alias=True)
async def get_mapping_data(
    visit_id: str,
    actor_id: str = Depends(get_actor_id),
    service: QuotationService = Depends(get_quotation_service),
):
    """Preview the quotation a visit would produce, without saving it."""
    try:
        return await service.preview_from_site_visit(visit_id, actor_id)
    except Exception as e:
        raise _mapping_error(e)


@router.post(
    "/from-site-visit/{visit_id}",
    response_model=MappingResult,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_from_site_visit(
    visit_id: str,
    actor_id: str = Depends(get_actor_id),
    service: QuotationService = Depends(get_quotation_service),
):
    try:
        return await service.create_from_site_visit(visit_id, actor_id)
    except Exception as e:
        raise _mapping_error(e)


@router.patch("/{quotation_id}", response_model=QuotationDraft, response_model_by_alias=True)
async def update_quotation(
    quotation_id: str,
    changes: QuotationUpdate,
    change_note: Optional[str] = None,
    actor_id: str = Depends(get_actor_id),
    service: QuotationService = Depends(get_quotation_service),
):
    """Record a new revision. Totals are recomputed server-side."""
    try:
        return await service.update_quotation(quotation_id, changes, actor_id, change_note)
    except ReferenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StateConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
