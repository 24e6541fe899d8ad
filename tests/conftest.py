"""Shared test fixtures."""

import csv
import json

import mlflow
import pytest

from evpages.core.types import NATIONAL, REGIONAL, Datasets, IncentiveProgram, Locality, RegionRate


@pytest.fixture(autouse=True)
def _disable_mlflow_tracing():
    """Disable MLflow tracing during tests — no side effects, no mlruns/ writes."""
    mlflow.tracing.disable()
    yield
    mlflow.tracing.enable()


def make_locality(**kwargs) -> Locality:
    defaults = {
        "slug": "los-angeles-ca",
        "name": "Los Angeles",
        "region_code": "CA",
        "region_name": "California",
        "population": 3979576,
        "latitude": 34.05,
        "longitude": -118.24,
    }
    defaults.update(kwargs)
    return Locality(**defaults)


def make_program(**kwargs) -> IncentiveProgram:
    defaults = {
        "name": "Federal EV Charger Tax Credit",
        "description": "Up to $1,000 for residential chargers.",
        "scope": NATIONAL,
        "provider": "IRS",
        "amount": 1000,
        "kind": "federal",
    }
    defaults.update(kwargs)
    return IncentiveProgram(**defaults)


@pytest.fixture
def programs() -> list[IncentiveProgram]:
    return [
        make_program(),
        make_program(name="New York Charge Ready", scope=REGIONAL, region_code="NY", amount=500,
                     provider="NYSERDA", kind="state"),
        make_program(name="California EVSE Rebate", scope=REGIONAL, region_code="CA", amount=2000,
                     provider="CEC", kind="state"),
    ]


@pytest.fixture
def localities() -> list[Locality]:
    return [
        make_locality(),
        make_locality(slug="new-york-ny", name="New York", region_code="NY",
                      region_name="New York", population=8336817),
        make_locality(slug="chicago-il", name="Chicago", region_code="IL",
                      region_name="Illinois", population=2693976),
        make_locality(slug="cheyenne-wy", name="Cheyenne", region_code="WY",
                      region_name="Wyoming", population=65132),
    ]


@pytest.fixture
def datasets(localities, programs) -> Datasets:
    rates = {
        "CA": RegionRate("CA", "California", 0.24),
        "NY": RegionRate("NY", "New York", 0.18),
        "IL": RegionRate("IL", "Illinois", 0.13),
    }
    return Datasets(localities=localities, rates=rates, incentives=programs)


# ---------------------------------------------------------------------------
# On-disk datasets in the formats the collection scripts produce
# ---------------------------------------------------------------------------

CITY_ROWS = [
    {"city": "Los Angeles", "city_ascii": "Los Angeles", "state_id": "CA", "state_name": "California",
     "county_name": "Los Angeles", "lat": "34.1141", "lng": "-118.4068", "population": "3979576",
     "zips": "90001 90002"},
    {"city": "New York", "city_ascii": "New York", "state_id": "NY", "state_name": "New York",
     "county_name": "Queens", "lat": "40.6943", "lng": "-73.9249", "population": "8336817",
     "zips": "11229 11226"},
    {"city": "St. Louis", "city_ascii": "St. Louis", "state_id": "MO", "state_name": "Missouri",
     "county_name": "St. Louis", "lat": "38.6359", "lng": "-90.2451", "population": "301578",
     "zips": "63101"},
    {"city": "Tinyville", "city_ascii": "Tinyville", "state_id": "TX", "state_name": "Texas",
     "county_name": "Nowhere", "lat": "30.0", "lng": "-97.0", "population": "1200", "zips": ""},
]

RATE_ROWS = [
    {"stateAbbr": "CA", "stateName": "California", "rate": 24.0, "lastUpdated": "2025"},
    {"stateAbbr": "NY", "stateName": "New York", "rate": 18.49, "lastUpdated": "2025"},
    {"stateAbbr": "MO", "stateName": "Missouri", "rate": 11.15, "lastUpdated": "2025"},
    {"stateAbbr": "TX", "stateName": "Texas", "rate": 11.86, "lastUpdated": "2025"},
]

INCENTIVE_ROWS = [
    {"name": "Federal EV Charger Tax Credit", "description": "Up to $1,000.", "amount": 1000,
     "percentage": None, "type": "federal", "provider": "IRS", "eligibility": "Homeowners.",
     "applicationUrl": "https://www.irs.gov/forms-pubs/about-form-8911", "isNational": True, "state": None},
    {"name": "California EV Charger Rebate (CALeVIP)", "description": "Rebates.", "amount": 2500,
     "percentage": None, "type": "state", "provider": "California Energy Commission",
     "eligibility": "Varies.", "applicationUrl": "https://calevip.org/", "isNational": False,
     "state": "California"},
    {"name": "New York Charge Ready Program", "description": "Incentives.", "amount": 4000,
     "percentage": None, "type": "state", "provider": "NYSERDA", "eligibility": "Multi-family.",
     "applicationUrl": None, "isNational": False, "state": "NY"},
]


def write_data_dir(path, cities=CITY_ROWS, rates=RATE_ROWS, incentives=INCENTIVE_ROWS):
    path.mkdir(parents=True, exist_ok=True)
    with (path / "cities.csv").open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(CITY_ROWS[0].keys()))
        writer.writeheader()
        writer.writerows(cities)
    (path / "electricity-rates.json").write_text(json.dumps(rates))
    (path / "incentives.json").write_text(json.dumps(incentives))
    return path


@pytest.fixture
def data_dir(tmp_path):
    return write_data_dir(tmp_path / "data")
