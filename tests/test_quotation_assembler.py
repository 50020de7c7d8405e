"""
Tests for assembling quotation drafts from field visits.
"""
import pytest

from visit_pipeline.core.errors import ProjectMappingError, VisitValidationError
from visit_pipeline.models.visit import FieldVisit
from visit_pipeline.services.quotation_assembler import select_terms_template


async def test_end_to_end_on_grid_quotation(assembler, store, marketing_visit):
    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")
    draft = result.quotation_data

    assert len(draft.projects) == 1
    project = draft.projects[0]
    assert project.project_type == "on_grid"
    assert project.project_value == 340000
    assert project.subsidy_amount == 130000
    assert project.customer_payment == 210000

    assert draft.quotation_number == "Q-1700000000000-ABC"
    assert draft.total_customer_payment == 210000
    assert draft.total_with_gst == 340000
    assert draft.advance_amount == 189000
    assert draft.balance_amount == 21000
    assert draft.status == "draft"
    assert draft.source == "site_visit"
    assert draft.document_version == 1
    assert draft.revision_history == []
    assert draft.terms_template == "residential"
    assert draft.payment_terms == "advance_90_balance_10"
    assert draft.delivery_timeframe == "2_3_weeks"
    assert draft.customer_notes == "Customer wants net metering"
    assert draft.attachments == [
        "https://photos.example.com/in.jpg",
        "https://photos.example.com/out.jpg",
        "https://photos.example.com/roof.jpg",
    ]
    assert "=== CUSTOMER INFORMATION ===" in draft.internal_notes
    assert "Visit Duration: 1h 30m" in draft.internal_notes

    assert result.mapping_metadata.source_visit_id == "visit-1"
    assert result.mapping_metadata.mapped_by == "user-1"
    assert "Quality Grade: D" in result.mapping_metadata.data_quality_notes
    assert result.completeness_analysis.can_create_quotation is True
    assert result.original_site_visit_data.visit_info.department == "marketing"


async def test_new_customer_is_created(assembler, store, marketing_visit):
    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")

    customers = store.collections["customers"]
    assert len(customers) == 1
    customer_id, customer = next(iter(customers.items()))
    assert result.quotation_data.customer_id == customer_id
    assert customer["mobile"] == "9999999999"
    assert customer["profileCompleteness"] == "full"
    assert customer["createdFrom"] == "site_visit"
    assert any(t.transformed_value == "new_customer_created" for t in result.data_transformations)


async def test_existing_customer_matched_by_mobile(assembler, store, marketing_visit):
    store.seed("customers", {"id": "cust-9", "name": "A", "mobile": "9999999999"})

    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")

    assert result.quotation_data.customer_id == "cust-9"
    assert len(store.collections["customers"]) == 1


async def test_explicit_customer_id_used_as_is(assembler, store, marketing_visit):
    marketing_visit["customer"]["id"] = "cust-explicit"

    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")

    assert result.quotation_data.customer_id == "cust-explicit"
    assert "customers" not in store.collections


async def test_prepared_by_uses_display_name(assembler, store, marketing_visit):
    store.seed("users", {"id": "user-1", "displayName": "Priya", "email": "priya@example.com"})

    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")

    assert result.quotation_data.prepared_by == "Priya"
    assert result.quotation_data.created_by == "user-1"


async def test_prepared_by_falls_back_to_id(assembler, marketing_visit):
    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")
    assert result.quotation_data.prepared_by == "user-1"


async def test_ineligible_visit_raises_with_verdict(assembler, store, bare_visit):
    with pytest.raises(VisitValidationError) as exc_info:
        await assembler.map_to_quotation(FieldVisit.model_validate(bare_visit), "user-1")

    assert exc_info.value.verdict.recommended_action == "invalid_for_quotation"
    # nothing written on rejection
    assert store.collections == {}


async def test_eligible_visit_without_projects_raises_mapping_error(assembler):
    visit = FieldVisit.model_validate({
        "id": "visit-2",
        "department": "marketing",
        "customer": {"name": "B", "mobile": "8888888888"},
    })

    with pytest.raises(ProjectMappingError) as exc_info:
        await assembler.map_to_quotation(visit, "user-1")

    assert exc_info.value.recommended_action == "update_marketing_data"
    assert exc_info.value.verdict.can_create_quotation is True


async def test_default_water_heater_when_block_empty(assembler, marketing_visit):
    marketing_visit["marketingData"] = {"projectType": "water_heater", "waterHeaterConfig": {}}

    result = await assembler.map_to_quotation(FieldVisit.model_validate(marketing_visit), "user-1")

    assert len(result.quotation_data.projects) == 1
    assert result.quotation_data.projects[0].litre == 100
    assert result.business_rule_warnings


def test_terms_template_selection():
    assert select_terms_template("commercial") == "commercial"
    assert select_terms_template("agri") == "agri"
    assert select_terms_template("industrial") == "standard"
    assert select_terms_template(None) == "standard"
