"""
Quotation models: completeness verdicts, priced project line items and
the quotation draft assembled from a field visit.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from visit_pipeline.models.visit import CamelModel, CustomerSnapshot


RecommendedAction = Literal["ready_for_quotation", "collect_missing_data", "invalid_for_quotation"]
QualityGrade = Literal["A", "B", "C", "D", "F"]
InverterPhase = Literal["single_phase", "three_phase"]


class FieldCoverage(CamelModel):
    critical: int = Field(..., ge=0, le=100)
    important: int = Field(..., ge=0, le=100)
    optional: int = Field(..., ge=0, le=100)


class CompletenessVerdict(CamelModel):
    """Scored, tiered assessment of a visit's readiness for quotation."""
    completeness_score: int = Field(..., ge=0, le=100)
    missing_critical_fields: List[str] = Field(default_factory=list)
    missing_important_fields: List[str] = Field(default_factory=list)
    missing_optional_fields: List[str] = Field(default_factory=list)
    can_create_quotation: bool
    recommended_action: RecommendedAction
    field_coverage: FieldCoverage
    quality_grade: QualityGrade


class DataTransformation(CamelModel):
    """Provenance note recorded whenever a value is derived or defaulted."""
    field: str
    original_value: Any = None
    transformed_value: Any = None
    reason: str


# ==================== PROJECT LINE ITEMS ====================

class PricedLineItem(CamelModel):
    """Pricing fields common to every product type."""
    project_value: int
    gst_percentage: float
    gst_amount: int
    base_price: int
    subsidy_amount: int = Field(default=0, ge=0)
    customer_payment: int
    installation_notes: Optional[str] = None
    warranty: Dict[str, str] = Field(default_factory=dict)


class SolarLineItem(PricedLineItem):
    system_kw: float = Field(..., gt=0, alias="systemKW")
    price_per_kw: int = Field(..., alias="pricePerKW")
    solar_panel_make: List[str] = Field(default_factory=list)
    panel_watts: str
    panel_type: str = "bifacial"
    dcr_panel_count: int = 0
    non_dcr_panel_count: int = 0
    panel_count: int
    inverter_make: List[str] = Field(default_factory=list)
    inverter_kw: float = Field(..., alias="inverterKW")
    inverter_qty: int = 1
    inverter_phase: str
    lightning_arrest: bool = False
    electrical_accessories: bool = False
    electrical_count: Optional[int] = None
    earth: str = "ac_dc"
    floor: Optional[str] = None
    structure_type: Optional[str] = None
    gp_structure: Optional[str] = None
    mono_rail: Optional[str] = None
    civil_work_scope: Optional[str] = None


class BatteryLineFields(CamelModel):
    inverter_kva: Optional[str] = Field(default=None, alias="inverterKVA")
    inverter_volt: Optional[str] = None
    battery_brand: str = "exide"
    battery_type: str = "lead_acid"
    battery_ah: str = Field(default="150", alias="batteryAH")
    voltage: float = 12
    battery_count: int = 4
    battery_stands: Optional[str] = None


class OnGridLineItem(SolarLineItem):
    project_type: Literal["on_grid"] = "on_grid"
    net_meter_scope: Optional[str] = None


class OffGridLineItem(SolarLineItem, BatteryLineFields):
    project_type: Literal["off_grid"] = "off_grid"
    amc_included: bool = False


class HybridLineItem(SolarLineItem, BatteryLineFields):
    project_type: Literal["hybrid"] = "hybrid"
    electrical_work_scope: Optional[str] = None
    net_meter_scope: Optional[str] = None


class WaterHeaterLineItem(PricedLineItem):
    project_type: Literal["water_heater"] = "water_heater"
    brand: str = "venus"
    litre: int = 100
    heating_coil: Optional[str] = None
    floor: Optional[str] = None
    plumbing_work_scope: Optional[str] = None
    civil_work_scope: Optional[str] = None
    qty: int = 1
    water_heater_model: str = "non_pressurized"
    labour_and_transport: bool = False


class WaterPumpLineItem(PricedLineItem):
    project_type: Literal["water_pump"] = "water_pump"
    drive_hp: str = Field(default="1", alias="driveHP")
    hp: str = "1"
    drive: str = "AC Drive"
    solar_panel: Optional[str] = None
    panel_watts: Optional[str] = None
    panel_type: Optional[str] = None
    panel_brand: List[str] = Field(default_factory=list)
    dcr_panel_count: int = 0
    non_dcr_panel_count: int = 0
    panel_count: int = 4
    structure_type: Optional[str] = None
    gp_structure: Optional[str] = None
    mono_rail: Optional[str] = None
    earth_work: Optional[str] = None
    plumbing_work_scope: Optional[str] = None
    civil_work_scope: Optional[str] = None
    lightning_arrest: bool = False
    electrical_accessories: bool = False
    electrical_count: Optional[int] = None
    earth: List[str] = Field(default_factory=list)
    labour_and_transport: bool = False
    inverter_phase: str
    qty: int = 1


ProjectLineItem = Annotated[
    Union[OnGridLineItem, OffGridLineItem, HybridLineItem, WaterHeaterLineItem, WaterPumpLineItem],
    Field(discriminator="project_type"),
]


# ==================== QUOTATION DRAFT ====================

class SiteVisitMapping(CamelModel):
    """Provenance of a quotation created from a field visit."""
    source_visit_id: Optional[str] = None
    mapped_at: datetime = Field(default_factory=datetime.utcnow)
    mapped_by: str
    completeness_score: int
    missing_critical_fields: List[str] = Field(default_factory=list)
    missing_optional_fields: List[str] = Field(default_factory=list)
    data_quality_notes: str = ""


class RevisionEntry(CamelModel):
    version: int
    updated_at: datetime
    updated_by: str
    change_note: Optional[str] = None


class PricingTotals(CamelModel):
    total_system_cost: int
    total_gst_amount: int
    total_with_gst: int
    total_subsidy_amount: int
    total_customer_payment: int
    advance_payment_percentage: int
    advance_amount: int
    balance_amount: int


class QuotationDraft(CamelModel):
    """Fully priced quotation, ready for persistence by the caller."""
    id: Optional[str] = None
    quotation_number: str
    customer_id: str
    source: Literal["site_visit", "manual"] = "site_visit"
    site_visit_mapping: Optional[SiteVisitMapping] = None
    projects: List[ProjectLineItem] = Field(..., min_length=1)

    total_system_cost: int
    total_gst_amount: int
    total_with_gst: int
    total_subsidy_amount: int
    total_customer_payment: int
    advance_payment_percentage: int
    advance_amount: int
    balance_amount: int

    payment_terms: str
    delivery_timeframe: str
    terms_template: Literal["residential", "commercial", "agri", "standard"] = "standard"
    status: Literal["draft", "sent", "approved", "rejected"] = "draft"
    communication_preference: str = "whatsapp"
    document_version: int = 1
    revision_history: List[RevisionEntry] = Field(default_factory=list)
    prepared_by: Optional[str] = None
    created_by: Optional[str] = None
    internal_notes: str = ""
    customer_notes: str = ""
    attachments: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuotationUpdate(CamelModel):
    """Editable quotation fields. Totals are always re-derived, never accepted."""
    projects: Optional[List[ProjectLineItem]] = Field(default=None, min_length=1)
    status: Optional[Literal["draft", "sent", "approved", "rejected"]] = None
    terms_template: Optional[Literal["residential", "commercial", "agri", "standard"]] = None
    delivery_timeframe: Optional[str] = None
    communication_preference: Optional[str] = None
    prepared_by: Optional[str] = None
    internal_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    attachments: Optional[List[str]] = None


class VisitInfo(CamelModel):
    id: Optional[str] = None
    department: Optional[str] = None
    visit_purpose: Optional[str] = None
    status: Optional[str] = None


class OriginalSiteVisitData(CamelModel):
    customer: CustomerSnapshot
    visit_info: VisitInfo


class MappingResult(CamelModel):
    quotation_data: QuotationDraft
    mapping_metadata: SiteVisitMapping
    completeness_analysis: CompletenessVerdict
    business_rule_warnings: List[str] = Field(default_factory=list)
    data_transformations: List[DataTransformation] = Field(default_factory=list)
    original_site_visit_data: Optional[OriginalSiteVisitData] = None
