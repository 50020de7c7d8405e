"""Data models for the Visit Pipeline engine."""
from .visit import (
    CustomerSnapshot,
    FieldVisit,
    FollowUpCreate,
    FollowUpRecord,
    FollowUpUpdate,
    MarketingData,
    VisitCheckout,
)
from .quotation import (
    CompletenessVerdict,
    DataTransformation,
    MappingResult,
    ProjectLineItem,
    QuotationDraft,
    QuotationUpdate,
    SiteVisitMapping,
)

__all__ = [
    "CustomerSnapshot",
    "FieldVisit",
    "FollowUpCreate",
    "FollowUpRecord",
    "FollowUpUpdate",
    "MarketingData",
    "VisitCheckout",
    "CompletenessVerdict",
    "DataTransformation",
    "MappingResult",
    "ProjectLineItem",
    "QuotationDraft",
    "QuotationUpdate",
    "SiteVisitMapping",
]
