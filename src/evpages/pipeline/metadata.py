"""Page title and description for a locality's landing page."""

from datetime import date

from evpages.core.types import CostProfile, Locality


def build_meta_title(locality: Locality, year: int | None = None) -> str:
    year = year or date.today().year
    return f"EV Charger Installation {locality.name}, {locality.region_code} | Cost & Rebates {year}"


def build_meta_description(locality: Locality, cost: CostProfile) -> str:
    return (
        f"Get your EV charger installed in {locality.name}, {locality.region_name}. "
        f"Average cost: ${cost.avg_install_cost:,}. "
        "Find local installers, rebates, and incentives."
    )
