"""
Tests for per-product pricing, capacity fallbacks and totals.
"""
import pytest

from visit_pipeline.core.business_rules import BusinessRules, round_half_up
from visit_pipeline.models.visit import MarketingData, OffGridConfig, OnGridConfig
from visit_pipeline.services.project_mapper import ProjectMapper, parse_capacity_kw


@pytest.fixture
def mapper(rules):
    return ProjectMapper(rules)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(312213.039) == 312213


@pytest.mark.parametrize("text,expected", [
    ("5kw", 5.0),
    ("5 KW", 5.0),
    ("3.5k", 3.5),
    ("5000w", 5.0),
    ("Inverter 5kw", 5.0),
    ("approx 4.5 KW", 4.5),
    ("7", 7.0),
    ("abc", None),
    ("", None),
    (None, None),
])
def test_parse_capacity_kw(text, expected):
    assert parse_capacity_kw(text) == expected


def test_gst_split_adds_back_to_project_value(mapper):
    gross, base, gst = mapper.split_gst(340000)
    assert (gross, base, gst) == (340000, 312213, 27787)
    assert base + gst == gross


def test_on_grid_priced_from_capacity_when_value_missing(mapper):
    transformations = []
    item = mapper.map_on_grid(
        OnGridConfig.model_validate({"inverterKW": 5, "panelCount": 10, "projectValue": 0}),
        transformations,
    )

    assert item.project_type == "on_grid"
    assert item.project_value == 340000
    assert item.subsidy_amount == 130000
    assert item.customer_payment == 210000
    assert item.base_price + item.gst_amount == item.project_value
    assert item.system_kw == 5
    assert item.price_per_kw == 62443
    assert item.inverter_phase == "single_phase"
    assert item.panel_count == 10
    assert any(t.field == "onGridConfig.projectValue" for t in transformations)


def test_explicit_project_value_is_kept(mapper):
    item = mapper.map_on_grid(
        OnGridConfig.model_validate({"inverterKW": "8", "projectValue": "500000"}), []
    )
    assert item.project_value == 500000
    assert item.subsidy_amount == 8 * 26000
    assert item.inverter_phase == "three_phase"
    # 8000W / 530W panels
    assert item.panel_count == 16


def test_capacity_from_inverter_watts(mapper):
    transformations = []
    item = mapper.map_off_grid(OffGridConfig.model_validate({"inverterWatts": "5000w"}), transformations)

    assert item.system_kw == 5
    assert item.project_value == 5 * 85000
    assert item.subsidy_amount == 0
    assert any("inverterWatts" in t.reason for t in transformations)


def test_capacity_defaults_to_three_kw(mapper):
    transformations = []
    item = mapper.map_project_type("hybrid", {}, transformations)

    assert item.system_kw == 3
    assert item.project_value == 3 * 95000
    assert item.subsidy_amount == 3 * 26000
    assert item.battery_brand == "exide"
    assert item.battery_count == 4
    assert any(t.transformed_value == 3 for t in transformations)


def test_water_heater_flat_price_and_defaults(mapper):
    item = mapper.map_project_type("water_heater")

    assert item.project_value == 15000
    assert item.base_price == 13774
    assert item.gst_amount == 1226
    assert item.subsidy_amount == 0
    assert item.litre == 100


def test_water_pump_flat_price_and_hp_fallback(mapper):
    item = mapper.map_project_type("water_pump", {"driveHP": "7.5"})

    assert item.project_value == 50000
    assert item.subsidy_amount == 0
    assert item.drive_hp == "7.5"
    assert item.hp == "7.5"
    assert item.inverter_phase == "three_phase"


def test_unknown_project_type(mapper):
    with pytest.raises(ValueError):
        mapper.map_project_type("wind_turbine")


def test_empty_blocks_are_not_mapped(mapper):
    marketing = MarketingData.model_validate({
        "onGridConfig": {"panelWatts": "540"},
        "waterHeaterConfig": {"brand": "venus"},
    })
    warnings = []
    assert mapper.map_projects(marketing, warnings, []) == []
    assert "No valid project configurations found in marketing data" in warnings


def test_selected_type_with_empty_block_gets_default_item(mapper):
    marketing = MarketingData.model_validate({"projectType": "water_heater", "waterHeaterConfig": {}})
    warnings = []
    projects = mapper.map_projects(marketing, warnings, [])

    assert len(projects) == 1
    assert projects[0].project_type == "water_heater"
    assert projects[0].litre == 100
    assert warnings


def test_partially_filled_pump_block_keeps_its_values(mapper):
    marketing = MarketingData.model_validate({
        "projectType": "water_pump",
        "waterPumpConfig": {"projectValue": 80000, "panelCount": 6, "drive": "DC Drive"},
    })
    projects = mapper.map_projects(marketing, [], [])

    assert len(projects) == 1
    assert projects[0].project_value == 80000
    assert projects[0].panel_count == 6
    assert projects[0].drive == "DC Drive"


def test_default_item_built_from_unsized_block(mapper):
    marketing = MarketingData.model_validate({
        "projectType": "water_pump",
        "waterPumpConfig": {"panelWatts": "540", "structureType": "GI"},
    })
    projects = mapper.map_projects(marketing, [], [])

    assert len(projects) == 1
    assert projects[0].panel_watts == "540"
    assert projects[0].structure_type == "GI"
    assert projects[0].project_value == 50000


def test_water_heater_block_with_only_value_is_mapped(mapper):
    marketing = MarketingData.model_validate({"waterHeaterConfig": {"projectValue": 18000}})
    projects = mapper.map_projects(marketing, [], [])

    assert [p.project_value for p in projects] == [18000]


def test_multiple_filled_blocks_all_mapped(mapper):
    marketing = MarketingData.model_validate({
        "projectType": "on_grid",
        "onGridConfig": {"inverterKW": 5},
        "waterHeaterConfig": {"litre": 200},
        "waterPumpConfig": {"hp": "3"},
    })
    projects = mapper.map_projects(marketing, [], [])

    assert [p.project_type for p in projects] == ["on_grid", "water_heater", "water_pump"]


def test_calculate_pricing_totals(mapper):
    projects = [
        mapper.map_project_type("on_grid", {"inverterKW": 5}),
        mapper.map_project_type("water_heater"),
    ]
    totals = mapper.calculate_pricing(projects)

    assert totals.total_with_gst == 355000
    assert totals.total_subsidy_amount == 130000
    assert totals.total_customer_payment == 225000
    assert totals.total_system_cost + totals.total_gst_amount == 355000
    assert totals.advance_amount == 202500
    assert totals.balance_amount == 22500
    assert totals.advance_payment_percentage == 90


def test_zero_total_warns(mapper):
    warnings = []
    mapper.calculate_pricing([], warnings)
    assert warnings == ["Total system cost is zero - please verify project values"]


def test_injected_rates():
    custom = BusinessRules(price_per_kw={"on_grid": 60000, "off_grid": 85000, "hybrid": 95000})
    item = ProjectMapper(custom).map_project_type("on_grid", {"inverterKW": 2})
    assert item.project_value == 120000
