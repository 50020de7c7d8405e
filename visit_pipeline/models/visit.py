"""
Field visit and follow-up visit models.

Field staff submit loosely structured payloads: numbers arrive as strings,
blank strings stand in for "not filled", and photo lists mix plain URLs
with photo objects. The validators here normalise those inputs once, at
the boundary, so services downstream work with clean types.
"""
from datetime import datetime
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Department = Literal["technical", "marketing", "admin"]
VisitStatus = Literal["in_progress", "completed", "cancelled", "auto_closed"]
CustomerStatus = Literal["converted", "on_process", "cancelled"]
FollowUpOutcome = Literal["completed", "on_process", "cancelled"]
FollowUpStatus = Literal["in_progress", "completed", "cancelled"]
ProjectType = Literal["on_grid", "off_grid", "hybrid", "water_heater", "water_pump"]
FollowUpReason = Literal[
    "additional_work_required",
    "issue_resolution",
    "status_check",
    "customer_request",
    "maintenance",
    "other",
]

PROJECT_TYPES = ("on_grid", "off_grid", "hybrid", "water_heater", "water_pump")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _to_text(value: Any) -> Any:
    value = _blank_to_none(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _to_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


LooseText = Annotated[Optional[str], BeforeValidator(_to_text)]
LooseFloat = Annotated[Optional[float], BeforeValidator(_blank_to_none)]
LooseInt = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
LooseBool = Annotated[Optional[bool], BeforeValidator(_blank_to_none)]
TextList = Annotated[List[str], BeforeValidator(_to_list)]


class CamelModel(BaseModel):
    """Stored documents use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    address: LooseText = None


class CustomerSnapshot(CamelModel):
    """Customer details as captured on the visit form."""
    id: LooseText = None
    name: LooseText = None
    mobile: LooseText = None
    email: LooseText = None
    address: LooseText = None
    property_type: LooseText = None
    eb_service_number: LooseText = None
    location: Optional[Location] = None


class SitePhoto(CamelModel):
    url: str
    caption: LooseText = None
    timestamp: Optional[datetime] = None


class TechnicalData(CamelModel):
    service_types: TextList = Field(default_factory=list)
    work_type: LooseText = None
    working_status: LooseText = None
    team_members: TextList = Field(default_factory=list)
    description: LooseText = None
    pending_remarks: LooseText = None


class SolarConfig(CamelModel):
    """Fields shared by the on-grid, off-grid and hybrid forms."""
    project_value: LooseFloat = None
    inverter_kw: LooseFloat = Field(default=None, alias="inverterKW")
    inverter_watts: LooseText = None
    solar_panel_make: TextList = Field(default_factory=list)
    inverter_make: TextList = Field(default_factory=list)
    panel_watts: LooseText = None
    panel_type: LooseText = None
    dcr_panel_count: LooseInt = None
    non_dcr_panel_count: LooseInt = None
    panel_count: LooseInt = None
    inverter_qty: LooseInt = None
    inverter_phase: LooseText = None
    lightning_arrest: LooseBool = None
    electrical_accessories: LooseBool = None
    electrical_count: LooseInt = None
    earth: LooseText = None
    floor: LooseText = None
    structure_type: LooseText = None
    gp_structure: LooseText = None
    mono_rail: LooseText = None
    civil_work_scope: LooseText = None
    others: LooseText = None

    # Fields whose presence means the block was actually filled in
    SIZING_FIELDS: ClassVar[Tuple[str, ...]] = (
        "inverter_kw",
        "inverter_watts",
        "solar_panel_make",
        "inverter_make",
        "panel_count",
        "project_value",
        "structure_type",
    )

    def is_filled(self) -> bool:
        return any(getattr(self, name) for name in self.SIZING_FIELDS)


class BatteryFields(CamelModel):
    inverter_kva: LooseText = Field(default=None, alias="inverterKVA")
    inverter_volt: LooseText = None
    battery_brand: LooseText = None
    battery_type: LooseText = None
    battery_ah: LooseText = Field(default=None, alias="batteryAH")
    voltage: LooseFloat = None
    battery_count: LooseInt = None
    battery_stands: LooseText = None


class OnGridConfig(SolarConfig):
    net_meter_scope: LooseText = None

    SIZING_FIELDS: ClassVar[Tuple[str, ...]] = SolarConfig.SIZING_FIELDS + ("civil_work_scope", "net_meter_scope")


class OffGridConfig(SolarConfig, BatteryFields):
    amc_included: LooseBool = None

    SIZING_FIELDS: ClassVar[Tuple[str, ...]] = SolarConfig.SIZING_FIELDS + ("battery_count",)


class HybridConfig(SolarConfig, BatteryFields):
    electrical_work_scope: LooseText = None
    net_meter_scope: LooseText = None

    SIZING_FIELDS: ClassVar[Tuple[str, ...]] = SolarConfig.SIZING_FIELDS + ("battery_count",)


class WaterHeaterConfig(CamelModel):
    brand: LooseText = None
    litre: LooseInt = None
    heating_coil: LooseText = None
    floor: LooseText = None
    plumbing_work_scope: LooseText = None
    civil_work_scope: LooseText = None
    qty: LooseInt = None
    water_heater_model: LooseText = None
    labour_and_transport: LooseBool = None
    project_value: LooseFloat = None
    others: LooseText = None

    def is_filled(self) -> bool:
        return bool(self.litre or self.project_value or self.qty)


class WaterPumpConfig(CamelModel):
    hp: LooseText = None
    drive_hp: LooseText = Field(default=None, alias="driveHP")
    drive: LooseText = None
    solar_panel: LooseText = None
    panel_watts: LooseText = None
    panel_type: LooseText = None
    panel_brand: TextList = Field(default_factory=list)
    dcr_panel_count: LooseInt = None
    non_dcr_panel_count: LooseInt = None
    panel_count: LooseInt = None
    structure_type: LooseText = None
    gp_structure: LooseText = None
    mono_rail: LooseText = None
    earth_work: LooseText = None
    plumbing_work_scope: LooseText = None
    civil_work_scope: LooseText = None
    lightning_arrest: LooseBool = None
    electrical_accessories: LooseBool = None
    electrical_count: LooseInt = None
    earth: TextList = Field(default_factory=list)
    labour_and_transport: LooseBool = None
    inverter_phase: LooseText = None
    qty: LooseInt = None
    project_value: LooseFloat = None
    others: LooseText = None

    def is_filled(self) -> bool:
        return bool(self.hp or self.drive_hp or self.project_value or self.panel_count or self.drive)


class MarketingData(CamelModel):
    update_requirements: LooseBool = None
    project_type: Annotated[Optional[ProjectType], BeforeValidator(_blank_to_none)] = None
    on_grid_config: Optional[OnGridConfig] = None
    off_grid_config: Optional[OffGridConfig] = None
    hybrid_config: Optional[HybridConfig] = None
    water_heater_config: Optional[WaterHeaterConfig] = None
    water_pump_config: Optional[WaterPumpConfig] = None


class BankProcess(CamelModel):
    step: LooseText = None
    description: LooseText = None


class EBProcess(CamelModel):
    type: LooseText = None
    description: LooseText = None


class AdminData(CamelModel):
    bank_process: Optional[BankProcess] = None
    eb_process: Optional[EBProcess] = None
    purchase: LooseText = None
    driving: LooseText = None
    official_cash_transactions: LooseText = None
    official_personal_work: LooseText = None
    others: LooseText = None


class FieldVisit(CamelModel):
    """One physical site visit, as stored in the site visits collection."""
    id: Optional[str] = None
    user_id: Optional[str] = None
    department: Optional[Department] = None
    visit_purpose: LooseText = None

    site_in_time: Optional[datetime] = None
    site_in_location: Optional[Location] = None
    site_in_photo_url: LooseText = None
    site_out_time: Optional[datetime] = None
    site_out_location: Optional[Location] = None
    site_out_photo_url: LooseText = None

    customer: CustomerSnapshot = Field(default_factory=CustomerSnapshot)
    technical_data: Optional[TechnicalData] = None
    marketing_data: Optional[MarketingData] = None
    admin_data: Optional[AdminData] = None

    site_photos: List[SitePhoto] = Field(default_factory=list, max_length=20)
    site_out_photos: List[SitePhoto] = Field(default_factory=list, max_length=20)

    status: VisitStatus = "in_progress"
    visit_outcome: Optional[CustomerStatus] = None
    outcome_notes: LooseText = None
    scheduled_follow_up_date: Optional[datetime] = None
    outcome_selected_at: Optional[datetime] = None
    outcome_selected_by: Optional[str] = None

    # Maintained by the status ledger only
    customer_current_status: Optional[CustomerStatus] = None
    last_activity_type: Literal["initial_visit", "follow_up"] = "initial_visit"
    last_activity_date: Optional[datetime] = None
    active_follow_up_id: Optional[str] = None
    has_follow_ups: bool = False
    follow_up_count: int = 0

    notes: LooseText = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("site_out_photos", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value

    @property
    def effective_customer_status(self) -> Optional[str]:
        """Explicit current status, falling back to the checkout outcome."""
        return self.customer_current_status or self.visit_outcome


class VisitCheckout(CamelModel):
    """Checkout form. The customer status is derived, never submitted."""
    visit_outcome: CustomerStatus
    outcome_notes: LooseText = None
    scheduled_follow_up_date: Optional[datetime] = None
    site_out_time: Optional[datetime] = None
    site_out_location: Optional[Location] = None
    site_out_photo_url: LooseText = None
    site_out_photos: List[SitePhoto] = Field(default_factory=list, max_length=20)
    notes: LooseText = None


def photo_urls(photos: List[Union[str, dict, SitePhoto]]) -> List[str]:
    """Flatten mixed photo entries into plain URL strings."""
    urls = []
    for photo in photos or []:
        if isinstance(photo, str):
            url = photo
        elif isinstance(photo, SitePhoto):
            url = photo.url
        elif isinstance(photo, dict):
            url = photo.get("url")
        else:
            url = None
        if url:
            urls.append(str(url))
    return urls


class FollowUpCreate(CamelModel):
    """Request to open a follow-up visit against an original visit."""
    original_visit_id: str = Field(..., min_length=1)
    user_id: str
    department: Department
    site_in_time: datetime = Field(default_factory=datetime.utcnow)
    site_in_location: Optional[Location] = None
    site_in_photo_url: LooseText = None
    follow_up_reason: FollowUpReason = "additional_work_required"
    description: str = Field(..., min_length=10)
    site_photos: List[str] = Field(default_factory=list, max_length=10)
    customer: Optional[CustomerSnapshot] = None
    notes: LooseText = None

    @field_validator("site_photos", mode="before")
    @classmethod
    def _flatten_photos(cls, value):
        return photo_urls(value)


class FollowUpUpdate(CamelModel):
    """Partial update applied to a follow-up, usually at checkout."""
    status: Optional[FollowUpStatus] = None
    visit_outcome: Optional[FollowUpOutcome] = None
    outcome_notes: LooseText = None
    scheduled_follow_up_date: Optional[datetime] = None
    outcome_selected_at: Optional[datetime] = None
    outcome_selected_by: Optional[str] = None
    site_out_time: Optional[datetime] = None
    site_out_location: Optional[Location] = None
    site_out_photo_url: LooseText = None
    site_out_photos: Optional[List[str]] = Field(default=None, max_length=10)
    notes: LooseText = None

    @field_validator("site_out_photos", mode="before")
    @classmethod
    def _flatten_photos(cls, value):
        if value is None:
            return None
        return photo_urls(value)

    @property
    def completes_visit(self) -> bool:
        return self.status == "completed" and self.visit_outcome is not None


class FollowUpRecord(CamelModel):
    """Stored follow-up visit."""
    id: Optional[str] = None
    original_visit_id: str
    user_id: Optional[str] = None
    department: Optional[Department] = None
    site_in_time: Optional[datetime] = None
    site_in_location: Optional[Location] = None
    site_in_photo_url: Optional[str] = None
    site_out_time: Optional[datetime] = None
    site_out_location: Optional[Location] = None
    site_out_photo_url: Optional[str] = None
    site_photos: List[str] = Field(default_factory=list)
    site_out_photos: List[str] = Field(default_factory=list)
    follow_up_reason: FollowUpReason = "additional_work_required"
    description: Optional[str] = None
    status: FollowUpStatus = "in_progress"
    customer: Optional[CustomerSnapshot] = None

    original_customer_status: Optional[CustomerStatus] = None
    affects_customer_status: bool = True
    new_customer_status: Optional[CustomerStatus] = None

    visit_outcome: Optional[FollowUpOutcome] = None
    outcome_notes: Optional[str] = None
    scheduled_follow_up_date: Optional[datetime] = None
    outcome_selected_at: Optional[datetime] = None
    outcome_selected_by: Optional[str] = None
    # Set when the original visit was gone at completion time
    orphaned: bool = False

    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("site_photos", "site_out_photos", mode="before")
    @classmethod
    def _flatten_photos(cls, value):
        return photo_urls(value)
