"""
Data Completeness Analyzer - Quotation readiness scoring for field visits.

Scores a visit against a fixed field-importance matrix and decides whether
it may enter the sales pipeline as a quotation. Pure and deterministic:
no I/O, never raises for incomplete data.
"""
import logging
from typing import Any, Dict, List, Mapping, Union

from pydantic import BaseModel

from visit_pipeline.core.business_rules import round_half_up
from visit_pipeline.models.quotation import CompletenessVerdict, FieldCoverage
from visit_pipeline.models.visit import PROJECT_TYPES

logger = logging.getLogger(__name__)


FIELD_IMPORTANCE_MATRIX: Dict[str, List[str]] = {
    # Must be present for quotation creation
    "critical": [
        "customer.name",
        "customer.mobile",
        "customer.address",
        "marketingData.projectType",
        "visitOutcome",
    ],
    # Significantly impact quotation quality
    "important": [
        "customer.propertyType",
        "customer.ebServiceNumber",
        "marketingData.onGridConfig.inverterKW",
        "marketingData.onGridConfig.panelCount",
        "marketingData.onGridConfig.projectValue",
        "marketingData.offGridConfig.inverterKW",
        "marketingData.offGridConfig.batteryCount",
        "marketingData.hybridConfig.inverterKW",
        "marketingData.waterHeaterConfig.litre",
        "marketingData.waterPumpConfig.hp",
        "technicalData.serviceTypes",
        "technicalData.workType",
        "adminData.bankProcess",
        "adminData.ebProcess",
    ],
    # Enhance quotation completeness
    "optional": [
        "customer.location",
        "marketingData.onGridConfig.solarPanelMake",
        "marketingData.onGridConfig.inverterMake",
        "marketingData.onGridConfig.structureType",
        "marketingData.onGridConfig.civilWorkScope",
        "marketingData.onGridConfig.netMeterScope",
        "technicalData.teamMembers",
        "technicalData.description",
        "technicalData.pendingRemarks",
        "adminData.purchase",
        "adminData.driving",
        "sitePhotos",
        "siteInLocation",
        "siteOutLocation",
        "notes",
        "outcomeNotes",
        "scheduledFollowUpDate",
    ],
}

TIER_WEIGHTS = {"critical": 0.6, "important": 0.3, "optional": 0.1}

GRADE_THRESHOLDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]


def get_nested_value(data: Any, path: str) -> Any:
    """Safely resolve a dotted path; any missing hop yields None."""
    current = data
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def is_present(value: Any) -> bool:
    """A value counts as present unless it is null, blank, zero or empty."""
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def _grade(score: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def _as_document(visit: Union[BaseModel, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(visit, BaseModel):
        return visit.model_dump(by_alias=True)
    return visit


def analyze(visit: Union[BaseModel, Mapping[str, Any]]) -> CompletenessVerdict:
    """
    Analyze field visit completeness against the field-importance matrix.

    A visit can become a quotation when ANY of these holds:
    1. Strict: all critical fields, outcome "converted", status "completed"
    2. Flexible: a known product type is selected and the customer has
       name, mobile and address
    3. Partial: marketing visit with at least a customer name or mobile

    Args:
        visit: FieldVisit model or its camelCase document

    Returns:
        CompletenessVerdict with score, missing fields and eligibility
    """
    document = _as_document(visit)

    missing = {
        tier: [path for path in paths if not is_present(get_nested_value(document, path))]
        for tier, paths in FIELD_IMPORTANCE_MATRIX.items()
    }

    coverage = {
        tier: round_half_up(
            (len(paths) - len(missing[tier])) / len(paths) * 100
        )
        for tier, paths in FIELD_IMPORTANCE_MATRIX.items()
    }

    weighted_score = sum(coverage[tier] * weight for tier, weight in TIER_WEIGHTS.items())

    customer = document.get("customer") or {}
    has_name = is_present(customer.get("name"))
    has_mobile = is_present(customer.get("mobile"))
    has_address = is_present(customer.get("address"))

    has_basic_customer_info = has_name and has_mobile and has_address
    has_any_customer_info = has_name or has_mobile
    has_project_type = get_nested_value(document, "marketingData.projectType") in PROJECT_TYPES

    strict_path = (
        not missing["critical"]
        and document.get("visitOutcome") == "converted"
        and document.get("status") == "completed"
    )
    flexible_path = has_project_type and has_basic_customer_info
    partial_path = has_any_customer_info and document.get("department") == "marketing"

    can_create_quotation = bool(strict_path or flexible_path or partial_path)

    if can_create_quotation:
        recommended_action = "ready_for_quotation"
    elif has_any_customer_info:
        recommended_action = "collect_missing_data"
    else:
        recommended_action = "invalid_for_quotation"

    score = round_half_up(weighted_score)
    logger.debug(
        f"Completeness for visit {document.get('id')}: score={score}, "
        f"eligible={can_create_quotation}"
    )

    return CompletenessVerdict(
        completeness_score=score,
        missing_critical_fields=missing["critical"],
        missing_important_fields=missing["important"],
        missing_optional_fields=missing["optional"],
        can_create_quotation=can_create_quotation,
        recommended_action=recommended_action,
        field_coverage=FieldCoverage(**coverage),
        quality_grade=_grade(weighted_score),
    )
