"""
Pricing, subsidy and payment constants used when turning field visits
into quotations.

The tables are carried by an immutable model so callers can pass a
custom rule set (tests, regional rates) instead of editing constants.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from visit_pipeline.core.config import Settings, get_settings


class BusinessRules(BaseModel):
    """Rate tables and defaults for the mapping engine."""

    model_config = ConfigDict(frozen=True)

    # Gross (GST inclusive) price per kW
    price_per_kw: Dict[str, int] = Field(
        default_factory=lambda: {"on_grid": 68000, "off_grid": 85000, "hybrid": 95000}
    )
    # Government subsidy per kW; product types missing here get none
    subsidy_per_kw: Dict[str, int] = Field(
        default_factory=lambda: {"on_grid": 26000, "hybrid": 26000}
    )
    # Flat totals for products that are not priced by capacity
    flat_price: Dict[str, int] = Field(
        default_factory=lambda: {"water_heater": 15000, "water_pump": 50000}
    )

    gst_percentage: float = 8.9
    advance_payment_percentage: int = 90

    default_system_kw: float = 3
    phase_threshold_kw: float = 6
    default_panel_watts: int = 530

    default_water_heater_litre: int = 100
    default_water_pump_hp: str = "1"

    payment_terms: str = "advance_90_balance_10"
    delivery_timeframe: str = "2_3_weeks"
    communication_preference: str = "whatsapp"

    @property
    def balance_payment_percentage(self) -> int:
        return 100 - self.advance_payment_percentage

    def rate_for(self, project_type: str) -> int:
        return self.price_per_kw.get(project_type, 0)

    def subsidy_rate_for(self, project_type: str) -> int:
        return self.subsidy_per_kw.get(project_type, 0)


def get_business_rules(settings: Optional[Settings] = None) -> BusinessRules:
    """Build the rule set, applying any overrides from settings."""
    settings = settings or get_settings()
    return BusinessRules(
        gst_percentage=settings.gst_percentage,
        advance_payment_percentage=settings.advance_payment_percentage,
        payment_terms=(
            f"advance_{settings.advance_payment_percentage}"
            f"_balance_{100 - settings.advance_payment_percentage}"
        ),
        default_system_kw=settings.default_system_kw,
        phase_threshold_kw=settings.phase_threshold_kw,
        default_panel_watts=settings.default_panel_watts,
    )


def round_half_up(value: float) -> int:
    """Round to the nearest whole currency unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
