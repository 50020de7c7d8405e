"""
Shared router dependencies: authentication, the document store and the
services built on it.
"""
from fastapi import Depends, Header, HTTPException, Request, status

from visit_pipeline.core.business_rules import get_business_rules
from visit_pipeline.core.config import Settings, get_settings
from visit_pipeline.services.directories import CustomerDirectory, UserDirectory
from visit_pipeline.services.document_store import DocumentStore, create_document_store
from visit_pipeline.services.follow_up_service import FollowUpService
from visit_pipeline.services.quotation_assembler import QuotationAssembler
from visit_pipeline.services.quotation_service import QuotationService
from visit_pipeline.services.site_visit_service import SiteVisitService


def verify_api_key(
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
) -> None:
    if x_api_key != settings.api_secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token"
        )


def get_actor_id(x_user_id: str = Header(...)) -> str:
    return x_user_id


def get_document_store(request: Request, settings: Settings = Depends(get_settings)) -> DocumentStore:
    """Store over the Mongo client opened by the application lifespan."""
    return create_document_store(request.app.state.mongo_client, settings)


def get_site_visit_service(
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
) -> SiteVisitService:
    return SiteVisitService(store, settings)


def get_follow_up_service(
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
) -> FollowUpService:
    return FollowUpService(store, settings)


def get_quotation_service(
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
) -> QuotationService:
    assembler = QuotationAssembler(
        customers=CustomerDirectory(store, settings),
        users=UserDirectory(store, settings),
        rules=get_business_rules(settings),
    )
    return QuotationService(store, assembler, SiteVisitService(store, settings), settings)
