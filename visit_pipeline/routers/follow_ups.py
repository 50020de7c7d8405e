"""
Follow-Up Router - Opens and closes follow-up visits.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from visit_pipeline.core.errors import (
    LedgerUpdateError,
    ReferenceNotFoundError,
    StateConflictError,
)
from visit_pipeline.models.visit import FollowUpCreate, FollowUpRecord, FollowUpUpdate
from visit_pipeline.routers.deps import get_follow_up_service, verify_api_key
from visit_pipeline.services.follow_up_service import FollowUpService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/follow-ups",
    tags=["follow-ups"],
    dependencies=[Depends(verify_api_key)],
)


@router.post(
    "",
    response_model=FollowUpRecord,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_follow_up(
    data: FollowUpCreate,
    service: FollowUpService = Depends(get_follow_up_service),
):
    """
    Open a follow-up visit.

    Moves the original visit's customer status to on_process. Fails with
    409 while another follow-up on the same visit is still active.
    """
    try:
        return await service.create_follow_up(data)
    except ReferenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StateConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except LedgerUpdateError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.patch("/{follow_up_id}", response_model=FollowUpRecord, response_model_by_alias=True)
async def update_follow_up(
    follow_up_id: str,
    updates: FollowUpUpdate,
    service: FollowUpService = Depends(get_follow_up_service),
):
    try:
        return await service.update_follow_up(follow_up_id, updates)
    except ReferenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{follow_up_id}", response_model=FollowUpRecord, response_model_by_alias=True)
async def get_follow_up(
    follow_up_id: str,
    service: FollowUpService = Depends(get_follow_up_service),
):
    try:
        return await service.get_follow_up(follow_up_id)
    except ReferenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
