"""Deterministic installation-cost and charging ROI calculators.

Pure functions — no I/O. Money arithmetic runs in Decimal. The two priced
quantities (one full charge, one equivalent fill-up) are rounded half-up to
the cent; savings per charge, per month and per year are then derived from
them, so the stored figures add up exactly.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import mlflow
from mlflow.entities import SpanType

from evpages.core.errors import InvalidRateError
from evpages.core.types import CostProfile, Locality, ROIProfile

CENTS = Decimal("0.01")
WHOLE = Decimal("1")

# ---------------------------------------------------------------------------
# Installation cost
# ---------------------------------------------------------------------------

EQUIPMENT_COST = 800
STANDARD_LABOR_COST = 1000
BASE_INSTALL_COST = EQUIPMENT_COST + STANDARD_LABOR_COST

# Higher cost of living → higher electrician rates.
REGION_COST_MULTIPLIERS: dict[str, float] = {
    "CA": 1.3, "NY": 1.25, "MA": 1.2, "CT": 1.2, "NJ": 1.2,
    "HI": 1.4, "AK": 1.3, "WA": 1.15, "CO": 1.1, "OR": 1.1,
    "TX": 0.95, "FL": 0.95, "GA": 0.9, "NC": 0.9, "TN": 0.85,
}


def region_multiplier(region_code: str) -> float:
    """Cost multiplier for a region; 1.0 when the region is not in the table."""
    return REGION_COST_MULTIPLIERS.get((region_code or "").upper(), 1.0)


@mlflow.trace(name="compute_install_cost", span_type=SpanType.TOOL)
def compute_install_cost(locality: Locality, base_cost: int = BASE_INSTALL_COST) -> CostProfile:
    """Average Level 2 charger installation cost for a locality, whole dollars."""
    multiplier = region_multiplier(locality.region_code)
    # str() so 1800 * 1.15 is computed on the decimal literal, not its binary float
    raw = Decimal(base_cost) * Decimal(str(multiplier))
    return CostProfile(
        locality_slug=locality.slug,
        base_cost=base_cost,
        multiplier=multiplier,
        avg_install_cost=int(raw.quantize(WHOLE, rounding=ROUND_HALF_UP)),
    )


# ---------------------------------------------------------------------------
# Charging ROI
# ---------------------------------------------------------------------------

REFERENCE_BATTERY_KWH = 75  # Tesla Model Y
FUEL_GALLONS_EQUIVALENT = 15
FUEL_PRICE_PER_GALLON = 3.50
CHARGES_PER_MONTH = 12
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class ROIAssumptions:
    """Reference vehicle and fuel baseline used for the savings comparison."""

    battery_kwh: float = REFERENCE_BATTERY_KWH
    fuel_gallons: float = FUEL_GALLONS_EQUIVALENT
    fuel_price: float = FUEL_PRICE_PER_GALLON
    charges_per_month: int = CHARGES_PER_MONTH


DEFAULT_ASSUMPTIONS = ROIAssumptions()


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@mlflow.trace(name="compute_roi", span_type=SpanType.TOOL)
def compute_roi(electricity_rate: float, assumptions: ROIAssumptions = DEFAULT_ASSUMPTIONS) -> ROIProfile:
    """Compare one full home charge against the equivalent fuel fill-up.

    Raises:
        InvalidRateError: If the rate is not a positive finite number.
    """
    if electricity_rate is None or not math.isfinite(electricity_rate) or electricity_rate <= 0:
        raise InvalidRateError(f"Electricity rate must be > 0, got {electricity_rate!r}")

    rate = Decimal(str(electricity_rate))
    energy_cost = _money(rate * Decimal(str(assumptions.battery_kwh)))
    fuel_cost = _money(Decimal(str(assumptions.fuel_gallons)) * Decimal(str(assumptions.fuel_price)))
    # everything below is exact in cents
    per_charge = fuel_cost - energy_cost
    monthly = per_charge * assumptions.charges_per_month

    return ROIProfile(
        electricity_rate=electricity_rate,
        energy_cost=energy_cost,
        fuel_baseline_cost=fuel_cost,
        savings_per_charge=per_charge,
        monthly_savings=monthly,
        annual_savings=monthly * MONTHS_PER_YEAR,
    )
