"""
Quotation Assembler - Turns an eligible field visit into a priced
multi-project quotation draft.

Sequence:
1. Score the visit; stop early if it is not eligible
2. Resolve the customer (explicit id, then mobile match, then create)
3. Map every filled product configuration to a line item
4. Aggregate totals and the advance/balance split
5. Attach provenance, photos and the audit notes

The draft is returned, not persisted. Persistence belongs to the caller.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from visit_pipeline.core.business_rules import BusinessRules
from visit_pipeline.core.errors import ProjectMappingError, VisitValidationError
from visit_pipeline.models.quotation import (
    DataTransformation,
    MappingResult,
    OriginalSiteVisitData,
    QuotationDraft,
    SiteVisitMapping,
    VisitInfo,
)
from visit_pipeline.models.visit import CustomerSnapshot, FieldVisit
from visit_pipeline.services import completeness_analyzer
from visit_pipeline.services.directories import (
    CustomerDirectory,
    UserDirectory,
    generate_quotation_number,
)
from visit_pipeline.services.project_mapper import ProjectMapper
from visit_pipeline.services.visit_notes import (
    build_internal_notes,
    extract_attachments,
    extract_customer_notes,
)

logger = logging.getLogger(__name__)

TERMS_TEMPLATES = {"residential", "commercial", "agri"}


def select_terms_template(property_type: Optional[str]) -> str:
    return property_type if property_type in TERMS_TEMPLATES else "standard"


class QuotationAssembler:
    """Builds quotation drafts from field visits."""

    def __init__(
        self,
        customers: CustomerDirectory,
        users: UserDirectory,
        rules: Optional[BusinessRules] = None,
        number_generator: Optional[Callable[[], str]] = None,
    ):
        self.customers = customers
        self.users = users
        self.rules = rules or BusinessRules()
        self.mapper = ProjectMapper(self.rules)
        self.number_generator = number_generator or generate_quotation_number

    async def ensure_customer(
        self,
        snapshot: CustomerSnapshot,
        transformations: List[DataTransformation],
    ) -> str:
        """Return the customer id for the visit, creating the customer if needed."""
        if snapshot.id:
            return snapshot.id

        existing = await self.customers.find_by_mobile(snapshot.mobile)
        if existing:
            transformations.append(DataTransformation(
                field="customer",
                original_value="site_visit_customer_data",
                transformed_value=existing["id"],
                reason=f"Existing customer matched by mobile number {snapshot.mobile}",
            ))
            return existing["id"]

        customer = await self.customers.create(
            snapshot.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
        )
        transformations.append(DataTransformation(
            field="customer",
            original_value="site_visit_customer_data",
            transformed_value="new_customer_created",
            reason="Customer did not exist, created from site visit data",
        ))
        return customer["id"]

    async def map_to_quotation(self, visit: FieldVisit, actor_id: str) -> MappingResult:
        """
        Map a field visit to a quotation draft.

        Args:
            visit: The source field visit
            actor_id: User performing the conversion

        Returns:
            MappingResult with the draft, verdict, warnings and transformations

        Raises:
            VisitValidationError: visit is not eligible for quotation
            ProjectMappingError: eligible, but no line item could be mapped
        """
        verdict = completeness_analyzer.analyze(visit)
        if not verdict.can_create_quotation:
            logger.info(
                f"Site visit {visit.id} rejected for quotation: {verdict.recommended_action} "
                f"(score {verdict.completeness_score})"
            )
            raise VisitValidationError(verdict)

        warnings: List[str] = []
        transformations: List[DataTransformation] = []

        customer_id = await self.ensure_customer(visit.customer, transformations)

        projects = self.mapper.map_projects(visit.marketing_data, warnings, transformations)
        if not projects:
            raise ProjectMappingError(verdict)

        totals = self.mapper.calculate_pricing(projects, warnings)
        mapped_at = datetime.utcnow()

        mapping_metadata = SiteVisitMapping(
            source_visit_id=visit.id,
            mapped_at=mapped_at,
            mapped_by=actor_id,
            completeness_score=verdict.completeness_score,
            missing_critical_fields=verdict.missing_critical_fields,
            missing_optional_fields=verdict.missing_optional_fields,
            data_quality_notes=(
                f"Auto-mapped from site visit {visit.id}. Quality Grade: {verdict.quality_grade}. "
                f"Important fields missing: {len(verdict.missing_important_fields)}. "
                + (f"Warnings: {'; '.join(warnings)}" if warnings else "No warnings.")
            ),
        )

        quotation = QuotationDraft(
            quotation_number=self.number_generator(),
            customer_id=customer_id,
            source="site_visit",
            site_visit_mapping=mapping_metadata,
            projects=projects,
            **totals.model_dump(),
            payment_terms=self.rules.payment_terms,
            delivery_timeframe=self.rules.delivery_timeframe,
            terms_template=select_terms_template(visit.customer.property_type),
            status="draft",
            communication_preference=self.rules.communication_preference,
            document_version=1,
            revision_history=[],
            prepared_by=await self.users.get_display_name(actor_id),
            created_by=actor_id,
            internal_notes=build_internal_notes(visit, mapped_at),
            customer_notes=extract_customer_notes(visit),
            attachments=extract_attachments(visit),
        )

        logger.info(
            f"Site visit {visit.id} mapped to quotation {quotation.quotation_number}: "
            f"{len(projects)} project(s), score {verdict.completeness_score}, "
            f"{len(warnings)} warning(s)"
        )

        return MappingResult(
            quotation_data=quotation,
            mapping_metadata=mapping_metadata,
            completeness_analysis=verdict,
            business_rule_warnings=warnings,
            data_transformations=transformations,
            original_site_visit_data=OriginalSiteVisitData(
                customer=visit.customer,
                visit_info=VisitInfo(
                    id=visit.id,
                    department=visit.department,
                    visit_purpose=visit.visit_purpose,
                    status=visit.status,
                ),
            ),
        )
