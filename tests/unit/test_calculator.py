"""Tests for the installation cost and charging ROI calculators."""

import math
from decimal import Decimal

import pytest

from evpages.core.errors import InvalidRateError
from evpages.pipeline.calculator import (
    BASE_INSTALL_COST,
    CHARGES_PER_MONTH,
    MONTHS_PER_YEAR,
    ROIAssumptions,
    compute_install_cost,
    compute_roi,
    region_multiplier,
)
from evpages.pipeline.metadata import build_meta_description, build_meta_title
from tests.conftest import make_locality


class TestInstallCost:
    def test_high_cost_region(self):
        cost = compute_install_cost(make_locality())
        assert cost.avg_install_cost == 2340
        assert cost.multiplier == 1.3
        assert cost.base_cost == BASE_INSTALL_COST == 1800

    def test_unknown_region_uses_default_multiplier(self):
        cost = compute_install_cost(make_locality(slug="cheyenne-wy", region_code="WY"))
        assert cost.multiplier == 1.0
        assert cost.avg_install_cost == 1800

    def test_rounds_to_whole_dollars(self):
        # 1800 * 1.15 = 2070 exactly; 999 * 1.15 = 1148.85 → 1149
        assert compute_install_cost(make_locality(region_code="WA")).avg_install_cost == 2070
        assert compute_install_cost(make_locality(region_code="WA"), base_cost=999).avg_install_cost == 1149

    def test_lowercase_region_code(self):
        assert region_multiplier("ca") == 1.3

    def test_idempotent(self):
        loc = make_locality(region_code="TN")
        assert compute_install_cost(loc) == compute_install_cost(loc)


class TestComputeROI:
    def test_reference_example(self):
        roi = compute_roi(0.24)
        assert roi.energy_cost == Decimal("18.00")
        assert roi.fuel_baseline_cost == Decimal("52.50")
        assert roi.savings_per_charge == Decimal("34.50")
        assert roi.monthly_savings == Decimal("414.00")
        assert roi.annual_savings == Decimal("4968.00")

    @pytest.mark.parametrize("rate", [0.0973, 0.1234, 0.1626, 0.1849, 0.4321, 0.7, 0.80])
    def test_stored_figures_add_up(self, rate):
        roi = compute_roi(rate)
        assert roi.savings_per_charge == roi.fuel_baseline_cost - roi.energy_cost
        assert roi.monthly_savings == roi.savings_per_charge * CHARGES_PER_MONTH
        assert roi.annual_savings == roi.monthly_savings * MONTHS_PER_YEAR
        for value in (roi.energy_cost, roi.savings_per_charge, roi.monthly_savings, roi.annual_savings):
            assert value.as_tuple().exponent == -2

    def test_half_up_rounding(self):
        # 0.1234 * 75 = 9.255 → 9.26
        assert compute_roi(0.1234).energy_cost == Decimal("9.26")

    def test_savings_derived_from_rounded_costs(self):
        # 52.50 - 9.26, not 52.50 - 9.255
        roi = compute_roi(0.1234)
        assert roi.savings_per_charge == Decimal("43.24")
        assert roi.monthly_savings == Decimal("518.88")
        assert roi.annual_savings == Decimal("6226.56")

    def test_expensive_power_gives_negative_savings(self):
        roi = compute_roi(0.80)
        assert roi.savings_per_charge == Decimal("-7.50")
        assert roi.annual_savings == Decimal("-1080.00")

    @pytest.mark.parametrize("rate", [0, -0.1, None, math.inf, math.nan])
    def test_invalid_rate(self, rate):
        with pytest.raises(InvalidRateError):
            compute_roi(rate)

    def test_invalid_rate_is_value_error(self):
        with pytest.raises(ValueError):
            compute_roi(0)

    def test_custom_assumptions(self):
        roi = compute_roi(0.10, ROIAssumptions(battery_kwh=60, fuel_gallons=10, fuel_price=4.0))
        assert roi.energy_cost == Decimal("6.00")
        assert roi.fuel_baseline_cost == Decimal("40.00")
        assert roi.savings_per_charge == Decimal("34.00")

    def test_idempotent(self):
        assert compute_roi(0.1849) == compute_roi(0.1849)


class TestMetadata:
    def test_title(self):
        title = build_meta_title(make_locality(), year=2025)
        assert title == "EV Charger Installation Los Angeles, CA | Cost & Rebates 2025"

    def test_description_includes_cost(self):
        loc = make_locality()
        desc = build_meta_description(loc, compute_install_cost(loc))
        assert "Los Angeles, California" in desc
        assert "$2,340" in desc
