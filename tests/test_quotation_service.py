"""
Tests for quotation persistence and revisions.
"""
import pytest

from visit_pipeline.core.errors import ReferenceNotFoundError, StateConflictError
from visit_pipeline.models.quotation import QuotationUpdate


async def test_create_from_site_visit_persists_draft(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)

    result = await quotation_service.create_from_site_visit("visit-1", "user-1")

    quotation_id = result.quotation_data.id
    stored = store.raw("quotations", quotation_id)
    assert stored["quotationNumber"] == "Q-1700000000000-ABC"
    assert stored["projects"][0]["projectType"] == "on_grid"
    assert stored["projects"][0]["systemKW"] == 5
    assert stored["totalCustomerPayment"] == 210000

    loaded = await quotation_service.get_quotation(quotation_id)
    assert loaded.projects[0].project_value == 340000


async def test_preview_does_not_persist(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)

    await quotation_service.preview_from_site_visit("visit-1", "user-1")

    assert not store.collections.get("quotations")


async def test_missing_visit(quotation_service):
    with pytest.raises(ReferenceNotFoundError):
        await quotation_service.create_from_site_visit("nope", "user-1")


async def test_update_appends_revision(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)
    result = await quotation_service.create_from_site_visit("visit-1", "user-1")
    quotation_id = result.quotation_data.id

    first = await quotation_service.update_quotation(
        quotation_id, QuotationUpdate(status="sent"), "user-3"
    )
    second = await quotation_service.update_quotation(
        quotation_id, QuotationUpdate(customer_notes="Revised"), "user-4", "Customer feedback"
    )

    assert first.document_version == 2
    assert first.status == "sent"
    assert second.document_version == 3
    assert [r.version for r in second.revision_history] == [1, 2]
    assert second.revision_history[0].updated_by == "user-3"
    assert second.revision_history[0].change_note == "Revision 2"
    assert second.revision_history[1].change_note == "Customer feedback"
    # untouched totals survive
    assert second.total_customer_payment == 210000


async def test_update_projects_rederives_totals(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)
    result = await quotation_service.create_from_site_visit("visit-1", "user-1")
    mapper = quotation_service.assembler.mapper

    projects = [
        mapper.map_project_type("on_grid", {"inverterKW": 5}),
        mapper.map_project_type("water_pump", {"hp": "2"}),
    ]
    updated = await quotation_service.update_quotation(
        result.quotation_data.id, QuotationUpdate(projects=projects), "user-1"
    )

    assert [p.project_type for p in updated.projects] == ["on_grid", "water_pump"]
    assert updated.total_customer_payment == 340000 + 50000 - 130000
    assert updated.total_subsidy_amount == 130000
    assert updated.advance_amount == 234000
    assert updated.balance_amount == 26000
    assert updated.total_system_cost + updated.total_gst_amount == 390000
    assert updated.total_with_gst == 390000


async def test_update_projects_reprices_submitted_items(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)
    result = await quotation_service.create_from_site_visit("visit-1", "user-1")
    quotation_id = result.quotation_data.id

    changes = QuotationUpdate.model_validate({"projects": [{
        "projectType": "water_heater",
        "projectValue": 15000,
        "gstPercentage": 8.9,
        "basePrice": 1,
        "gstAmount": 1,
        "subsidyAmount": 9000,
        "customerPayment": 1,
    }]})
    await quotation_service.update_quotation(quotation_id, changes, "user-1")

    stored = store.raw("quotations", quotation_id)
    item = stored["projects"][0]
    assert (item["basePrice"], item["gstAmount"]) == (13774, 1226)
    assert item["subsidyAmount"] == 0
    assert item["customerPayment"] == 15000
    assert stored["totalSubsidyAmount"] == 0
    assert stored["totalCustomerPayment"] == 15000
    assert stored["totalWithGst"] == 15000


async def test_update_reprices_solar_from_capacity(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)
    result = await quotation_service.create_from_site_visit("visit-1", "user-1")
    edited = result.quotation_data.projects[0].model_copy(
        update={"system_kw": 3, "project_value": 0, "subsidy_amount": 1}
    )

    updated = await quotation_service.update_quotation(
        result.quotation_data.id, QuotationUpdate(projects=[edited]), "user-1"
    )

    item = updated.projects[0]
    assert item.project_value == 204000
    assert item.subsidy_amount == 78000
    assert item.customer_payment == 126000
    assert item.price_per_kw == round(item.base_price / 3)


async def test_update_appends_to_stored_history(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)
    result = await quotation_service.create_from_site_visit("visit-1", "user-1")
    quotation_id = result.quotation_data.id
    store.raw("quotations", quotation_id)["revisionHistory"].append({
        "version": 0,
        "updatedAt": "2024-01-01T00:00:00",
        "updatedBy": "importer",
        "source": "legacy",
    })

    await quotation_service.update_quotation(quotation_id, QuotationUpdate(status="sent"), "user-2")

    history = store.raw("quotations", quotation_id)["revisionHistory"]
    assert history[0]["source"] == "legacy"
    assert history[1]["version"] == 1
    assert history[1]["updatedBy"] == "user-2"


async def test_update_rejects_stale_version(quotation_service, store, marketing_visit):
    store.seed("siteVisits", marketing_visit)
    result = await quotation_service.create_from_site_visit("visit-1", "user-1")
    quotation_id = result.quotation_data.id
    read = store.get

    async def read_then_revise_elsewhere(collection, document_id):
        document = await read(collection, document_id)
        stored = store.raw(collection, document_id)
        stored["documentVersion"] += 1
        stored["revisionHistory"].append({"version": 1, "updatedAt": "2024-01-01T00:00:00", "updatedBy": "user-9"})
        return document

    store.get = read_then_revise_elsewhere
    with pytest.raises(StateConflictError):
        await quotation_service.update_quotation(quotation_id, QuotationUpdate(status="sent"), "user-2")

    stored = store.raw("quotations", quotation_id)
    assert stored["documentVersion"] == 2
    assert stored["status"] == "draft"
    assert [entry["updatedBy"] for entry in stored["revisionHistory"]] == ["user-9"]
