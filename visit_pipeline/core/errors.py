"""
Error taxonomy for the conversion engine.

The completeness analyzer never raises; the quotation assembler and the
follow-up ledger raise these so route handlers can turn them into
actionable responses.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for all conversion engine errors."""


class VisitValidationError(PipelineError):
    """Visit is not eligible for quotation creation."""

    def __init__(self, verdict):
        self.verdict = verdict
        super().__init__(
            f"Site visit cannot be converted to quotation: {verdict.recommended_action}"
        )


class ProjectMappingError(PipelineError):
    """Visit is eligible but no product configuration could be mapped."""

    recommended_action = "update_marketing_data"
    missing_data = "project_configurations"

    def __init__(self, verdict=None, message: str = "No valid projects found in site visit marketing data"):
        self.verdict = verdict
        super().__init__(message)


class ReferenceNotFoundError(PipelineError):
    """A referenced document does not exist."""

    def __init__(self, collection: str, document_id: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"{collection} document {document_id} not found")


class StateConflictError(PipelineError):
    """Operation conflicts with the current state of a record."""


class MissingCustomerStatusError(StateConflictError):
    """Original visit has no customer status to follow up on."""

    def __init__(self, visit_id: str):
        self.visit_id = visit_id
        super().__init__(
            f"Original visit {visit_id} has no customer status - cannot create follow-up"
        )


class LedgerUpdateError(PipelineError):
    """Original visit could not be updated; the follow-up was rolled back."""

    def __init__(self, visit_id: str, cause: Optional[Exception] = None):
        self.visit_id = visit_id
        self.cause = cause
        super().__init__(
            f"Failed to update original visit {visit_id} status - follow-up creation aborted"
        )
