"""Services module for the Visit Pipeline engine."""
from . import completeness_analyzer
from .document_store import DocumentStore
from .follow_up_service import FollowUpService
from .project_mapper import ProjectMapper
from .quotation_assembler import QuotationAssembler
from .quotation_service import QuotationService
from .site_visit_service import SiteVisitService

__all__ = [
    "completeness_analyzer",
    "DocumentStore",
    "FollowUpService",
    "ProjectMapper",
    "QuotationAssembler",
    "QuotationService",
    "SiteVisitService",
]
