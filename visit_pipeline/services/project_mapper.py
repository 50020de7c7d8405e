"""
Project Mapping Engine - Converts field-collected product configurations
into priced quotation line items.

Each product type has its own mapper. Solar systems (on-grid, off-grid,
hybrid) are priced per kW from the capacity resolved through a fallback
chain; water heaters and pumps carry flat totals. Every price is GST
inclusive and the base price is back-calculated from it.
"""
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from visit_pipeline.core.business_rules import BusinessRules, round_half_up
from visit_pipeline.models.quotation import (
    DataTransformation,
    HybridLineItem,
    OffGridLineItem,
    OnGridLineItem,
    PricingTotals,
    WaterHeaterLineItem,
    WaterPumpLineItem,
)
from visit_pipeline.models.visit import (
    HybridConfig,
    MarketingData,
    OffGridConfig,
    OnGridConfig,
    SolarConfig,
    WaterHeaterConfig,
    WaterPumpConfig,
)

logger = logging.getLogger(__name__)

# "5kw", "Inverter 5 kW", "3.5k", "5000w", "5000"
CAPACITY_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(kw|k|w)?", re.IGNORECASE)

SOLAR_WARRANTY = {"panel": "25_years", "inverter": "5_years", "installation": "2_years"}
BATTERY_SOLAR_WARRANTY = dict(SOLAR_WARRANTY, battery="2_years")
WATER_HEATER_WARRANTY = {"heater": "5_years", "installation": "1_year"}
WATER_PUMP_WARRANTY = {"pump": "2_years", "panel": "25_years", "installation": "1_year"}


def parse_capacity_kw(text: Optional[str]) -> Optional[float]:
    """
    Read a kW capacity from a free-text wattage string.

    Uses the first number in the text. Followed by "w" it is taken as
    watts; anything else (kw, k, no unit) is taken as kW.
    """
    if not text:
        return None
    match = CAPACITY_PATTERN.search(str(text))
    if not match:
        return None
    value = float(match.group(1))
    unit = (match.group(2) or "").lower()
    if unit == "w":
        value = value / 1000
    return value if value > 0 else None


class ProjectMapper:
    """Maps marketing configurations to priced project line items."""

    def __init__(self, rules: Optional[BusinessRules] = None):
        self.rules = rules or BusinessRules()

    # ==================== PRICING ====================

    def split_gst(self, project_value: float) -> Tuple[int, int, int]:
        """Return (project_value, base_price, gst_amount) in whole units."""
        gross = round_half_up(project_value)
        base_price = round_half_up(gross / (1 + self.rules.gst_percentage / 100))
        return gross, base_price, gross - base_price

    def _price_fields(self, project_value: float, subsidy_amount: float = 0) -> Dict[str, Any]:
        gross, base_price, gst_amount = self.split_gst(project_value)
        subsidy = max(round_half_up(subsidy_amount), 0)
        return {
            "project_value": gross,
            "gst_percentage": self.rules.gst_percentage,
            "gst_amount": gst_amount,
            "base_price": base_price,
            "subsidy_amount": subsidy,
            "customer_payment": gross - subsidy,
        }

    # ==================== SOLAR SIZING ====================

    def resolve_capacity(
        self,
        config: SolarConfig,
        label: str,
        transformations: List[DataTransformation],
    ) -> float:
        """Explicit inverter kW, else parsed from inverter watts, else the default."""
        if config.inverter_kw and config.inverter_kw > 0:
            return config.inverter_kw

        parsed = parse_capacity_kw(config.inverter_watts)
        if parsed:
            transformations.append(DataTransformation(
                field=f"{label}.inverterKW",
                original_value=config.inverter_watts,
                transformed_value=parsed,
                reason=f"Extracted {parsed:g}kW from inverterWatts: {config.inverter_watts}",
            ))
            return parsed

        default_kw = self.rules.default_system_kw
        transformations.append(DataTransformation(
            field=f"{label}.inverterKW",
            original_value=config.inverter_kw,
            transformed_value=default_kw,
            reason=f"Default {default_kw:g}kW system applied due to missing inverter capacity",
        ))
        logger.warning(f"{label}: no inverter capacity recorded, defaulting to {default_kw:g}kW")
        return default_kw

    def select_phase(self, capacity: float) -> str:
        return "single_phase" if capacity < self.rules.phase_threshold_kw else "three_phase"

    def _panel_watts(self, config: SolarConfig) -> Tuple[str, float]:
        panel_watts = config.panel_watts or str(self.rules.default_panel_watts)
        try:
            watts = float(panel_watts)
        except ValueError:
            watts = 0
        return panel_watts, watts if watts > 0 else float(self.rules.default_panel_watts)

    def _solar_fields(
        self,
        config: SolarConfig,
        project_type: str,
        label: str,
        transformations: List[DataTransformation],
    ) -> Dict[str, Any]:
        capacity = self.resolve_capacity(config, label, transformations)
        rate = self.rules.rate_for(project_type)

        project_value = config.project_value
        if not project_value or project_value <= 0:
            project_value = capacity * rate
            transformations.append(DataTransformation(
                field=f"{label}.projectValue",
                original_value=config.project_value,
                transformed_value=round_half_up(project_value),
                reason=f"Calculated project value: {capacity:g}kW x Rs.{rate}/kW = Rs.{round_half_up(project_value)}",
            ))

        subsidy = capacity * self.rules.subsidy_rate_for(project_type)
        pricing = self._price_fields(project_value, subsidy)

        panel_watts, watts = self._panel_watts(config)
        panel_count = config.panel_count
        if not panel_count:
            panel_count = math.ceil(capacity * 1000 / watts)
            transformations.append(DataTransformation(
                field=f"{label}.panelCount",
                original_value=config.panel_count,
                transformed_value=panel_count,
                reason=f"Derived {panel_count} panels from {capacity:g}kW at {watts:g}W per panel",
            ))

        # Stored rate reflects what is actually charged, not the table value
        price_per_kw = round_half_up(pricing["base_price"] / capacity)

        return dict(
            pricing,
            system_kw=capacity,
            price_per_kw=price_per_kw,
            solar_panel_make=config.solar_panel_make,
            panel_watts=panel_watts,
            panel_type=config.panel_type or "bifacial",
            dcr_panel_count=config.dcr_panel_count or 0,
            non_dcr_panel_count=config.non_dcr_panel_count or 0,
            panel_count=panel_count,
            inverter_make=config.inverter_make,
            inverter_kw=capacity,
            inverter_qty=config.inverter_qty or 1,
            inverter_phase=config.inverter_phase or self.select_phase(capacity),
            lightning_arrest=bool(config.lightning_arrest),
            electrical_accessories=bool(config.electrical_accessories),
            electrical_count=config.electrical_count,
            earth=config.earth or "ac_dc",
            floor=config.floor,
            structure_type=config.structure_type,
            gp_structure=config.gp_structure,
            mono_rail=config.mono_rail,
            civil_work_scope=config.civil_work_scope,
            installation_notes=config.others,
        )

    @staticmethod
    def _battery_fields(config) -> Dict[str, Any]:
        return {
            "inverter_kva": config.inverter_kva,
            "inverter_volt": config.inverter_volt,
            "battery_brand": config.battery_brand or "exide",
            "battery_type": config.battery_type or "lead_acid",
            "battery_ah": config.battery_ah or "150",
            "voltage": config.voltage or 12,
            "battery_count": config.battery_count or 4,
            "battery_stands": config.battery_stands,
        }

    # ==================== PER-TYPE MAPPERS ====================

    def map_on_grid(self, config: OnGridConfig, transformations: List[DataTransformation]) -> OnGridLineItem:
        fields = self._solar_fields(config, "on_grid", "onGridConfig", transformations)
        return OnGridLineItem(
            **fields,
            net_meter_scope=config.net_meter_scope,
            warranty=dict(SOLAR_WARRANTY),
        )

    def map_off_grid(self, config: OffGridConfig, transformations: List[DataTransformation]) -> OffGridLineItem:
        fields = self._solar_fields(config, "off_grid", "offGridConfig", transformations)
        return OffGridLineItem(
            **fields,
            **self._battery_fields(config),
            amc_included=bool(config.amc_included),
            warranty=dict(BATTERY_SOLAR_WARRANTY),
        )

    def map_hybrid(self, config: HybridConfig, transformations: List[DataTransformation]) -> HybridLineItem:
        fields = self._solar_fields(config, "hybrid", "hybridConfig", transformations)
        return HybridLineItem(
            **fields,
            **self._battery_fields(config),
            electrical_work_scope=config.electrical_work_scope,
            net_meter_scope=config.net_meter_scope,
            warranty=dict(BATTERY_SOLAR_WARRANTY),
        )

    def map_water_heater(
        self, config: WaterHeaterConfig, transformations: List[DataTransformation]
    ) -> WaterHeaterLineItem:
        total = config.project_value
        if not total or total <= 0:
            total = self.rules.flat_price["water_heater"]
            transformations.append(DataTransformation(
                field="waterHeaterConfig.projectValue",
                original_value=config.project_value,
                transformed_value=total,
                reason=f"Standard water heater price Rs.{total} applied",
            ))

        return WaterHeaterLineItem(
            **self._price_fields(total),
            brand=config.brand or "venus",
            litre=config.litre or self.rules.default_water_heater_litre,
            heating_coil=config.heating_coil,
            floor=config.floor,
            plumbing_work_scope=config.plumbing_work_scope,
            civil_work_scope=config.civil_work_scope,
            qty=config.qty or 1,
            water_heater_model=config.water_heater_model or "non_pressurized",
            labour_and_transport=bool(config.labour_and_transport),
            installation_notes=config.others,
            warranty=dict(WATER_HEATER_WARRANTY),
        )

    def map_water_pump(
        self, config: WaterPumpConfig, transformations: List[DataTransformation]
    ) -> WaterPumpLineItem:
        total = config.project_value
        if not total or total <= 0:
            total = self.rules.flat_price["water_pump"]
            transformations.append(DataTransformation(
                field="waterPumpConfig.projectValue",
                original_value=config.project_value,
                transformed_value=total,
                reason=f"Standard water pump price Rs.{total} applied",
            ))

        drive_hp = config.drive_hp or config.hp or self.rules.default_water_pump_hp
        hp = config.hp or config.drive_hp or self.rules.default_water_pump_hp
        try:
            hp_value = float(drive_hp)
        except ValueError:
            hp_value = float(self.rules.default_water_pump_hp)

        return WaterPumpLineItem(
            **self._price_fields(total),
            drive_hp=drive_hp,
            hp=hp,
            drive=config.drive or "AC Drive",
            solar_panel=config.solar_panel,
            panel_watts=config.panel_watts,
            panel_type=config.panel_type,
            panel_brand=config.panel_brand,
            dcr_panel_count=config.dcr_panel_count or 0,
            non_dcr_panel_count=config.non_dcr_panel_count or 0,
            panel_count=config.panel_count or 4,
            structure_type=config.structure_type,
            gp_structure=config.gp_structure,
            mono_rail=config.mono_rail,
            earth_work=config.earth_work or config.plumbing_work_scope,
            plumbing_work_scope=config.plumbing_work_scope or config.earth_work,
            civil_work_scope=config.civil_work_scope,
            lightning_arrest=bool(config.lightning_arrest),
            electrical_accessories=bool(config.electrical_accessories),
            electrical_count=config.electrical_count,
            earth=config.earth,
            labour_and_transport=bool(config.labour_and_transport),
            inverter_phase=config.inverter_phase or self.select_phase(hp_value),
            qty=config.qty or 1,
            installation_notes=config.others,
            warranty=dict(WATER_PUMP_WARRANTY),
        )

    # ==================== MULTI-PROJECT MAPPING ====================

    def _registry(self) -> List[Tuple[str, str, Callable, Callable[[], Any]]]:
        """(project type, marketing attribute, mapper, empty-config factory)."""
        return [
            ("on_grid", "on_grid_config", self.map_on_grid, OnGridConfig),
            ("off_grid", "off_grid_config", self.map_off_grid, OffGridConfig),
            ("hybrid", "hybrid_config", self.map_hybrid, HybridConfig),
            ("water_heater", "water_heater_config", self.map_water_heater, WaterHeaterConfig),
            ("water_pump", "water_pump_config", self.map_water_pump, WaterPumpConfig),
        ]

    def map_project_type(
        self,
        project_type: str,
        config: Any = None,
        transformations: Optional[List[DataTransformation]] = None,
    ):
        """Map one configuration (or an empty one) for the given product type."""
        transformations = transformations if transformations is not None else []
        for registered_type, _, mapper, empty_config in self._registry():
            if registered_type == project_type:
                if config is None:
                    config = empty_config()
                elif isinstance(config, dict):
                    config = empty_config.model_validate(config)
                return mapper(config, transformations)
        raise ValueError(f"Unknown project type: {project_type}")

    def map_projects(
        self,
        marketing_data: Optional[MarketingData],
        warnings: List[str],
        transformations: List[DataTransformation],
    ) -> list:
        """
        Map every filled-in configuration block to a line item.

        A block only counts when one of its sizing fields has a value, so an
        empty object left behind by the form never becomes a line item. When
        nothing is filled but a project type was selected, a line item for
        that type is built from whatever its block holds, defaults filling
        the rest, instead of rejecting the visit.
        """
        projects = []

        if not marketing_data:
            warnings.append("No marketing data found")
            return projects

        registry = self._registry()
        for project_type, attribute, mapper, _ in registry:
            config = getattr(marketing_data, attribute)
            if config is None or not config.is_filled():
                continue
            projects.append(mapper(config, transformations))
            transformations.append(DataTransformation(
                field=f"projects.{project_type}",
                original_value="site_visit_marketing_data",
                transformed_value=f"{project_type}_project_config",
                reason=f"{project_type} configuration found and mapped from site visit data",
            ))

        selected = marketing_data.project_type
        if not projects and selected:
            warnings.append(
                f"Project type '{selected}' selected but detailed configuration missing. "
                "Creating default project."
            )
            for project_type, attribute, mapper, empty_config in registry:
                if project_type == selected:
                    config = getattr(marketing_data, attribute) or empty_config()
                    projects.append(mapper(config, transformations))
                    transformations.append(DataTransformation(
                        field=f"projects.{project_type}_default",
                        original_value="incomplete_marketing_data",
                        transformed_value=f"default_{project_type}_project",
                        reason=f"Default {project_type} project created due to incomplete marketing data",
                    ))
                    break

        if not projects:
            warnings.append("No valid project configurations found in marketing data")
        else:
            transformations.append(DataTransformation(
                field="projects.total",
                original_value=selected or "unknown",
                transformed_value=f"{len(projects)}_projects_mapped",
                reason=f"Multi-project quotation created with {len(projects)} project(s)",
            ))

        return projects

    # ==================== TOTALS ====================

    def reprice(self, project):
        """
        Re-derive the priced fields of an edited line item.

        Only the project value and, for solar types, the system capacity
        are taken from the item. GST split, subsidy, customer payment and
        price per kW are recomputed from them.
        """
        project_type = project.project_type
        if project_type in self.rules.flat_price:
            project_value = project.project_value or self.rules.flat_price[project_type]
            return project.model_copy(update=self._price_fields(project_value))

        capacity = project.system_kw
        project_value = project.project_value or capacity * self.rules.rate_for(project_type)
        pricing = self._price_fields(project_value, capacity * self.rules.subsidy_rate_for(project_type))
        return project.model_copy(update=dict(
            pricing,
            price_per_kw=round_half_up(pricing["base_price"] / capacity),
        ))

    def calculate_pricing(self, projects: list, warnings: Optional[List[str]] = None) -> PricingTotals:
        """Aggregate totals and the advance/balance split from line items."""
        total_system_cost = sum(project.base_price for project in projects)
        total_gst_amount = sum(project.gst_amount for project in projects)
        total_with_gst = sum(project.project_value for project in projects)
        total_subsidy_amount = sum(project.subsidy_amount for project in projects)
        total_customer_payment = total_with_gst - total_subsidy_amount

        advance_amount = round_half_up(
            total_customer_payment * self.rules.advance_payment_percentage / 100
        )
        balance_amount = total_customer_payment - advance_amount

        if total_system_cost == 0 and warnings is not None:
            warnings.append("Total system cost is zero - please verify project values")

        return PricingTotals(
            total_system_cost=total_system_cost,
            total_gst_amount=total_gst_amount,
            total_with_gst=total_with_gst,
            total_subsidy_amount=total_subsidy_amount,
            total_customer_payment=total_customer_payment,
            advance_payment_percentage=self.rules.advance_payment_percentage,
            advance_amount=advance_amount,
            balance_amount=balance_amount,
        )
