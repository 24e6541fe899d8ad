"""Domain types for the evpages locality pipeline.

All shared dataclasses live here to prevent circular imports and keep a
single source of truth for the domain model. Every other module imports
from here.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


# ---------------------------------------------------------------------------
# Raw dataset types
# ---------------------------------------------------------------------------

NATIONAL = "national"
REGIONAL = "region"


@dataclass(frozen=True)
class Locality:
    """A city-equivalent place with its region and demographics."""

    slug: str
    name: str
    region_code: str
    region_name: str
    population: int
    latitude: float | None = None
    longitude: float | None = None
    county: str = ""
    zip_codes: tuple[str, ...] = ()
    cost_multiplier: float = 1.0


@dataclass(frozen=True)
class RegionRate:
    """Average residential electricity price for one region, in dollars per kWh."""

    region_code: str
    region_name: str
    rate: float
    last_updated: str = ""


@dataclass(frozen=True)
class IncentiveProgram:
    """A rebate or credit, either national or owned by one region.

    At most one of ``amount`` and ``percentage`` is set; both None means the
    value varies. ``region_code`` is set iff ``scope`` is regional.
    """

    name: str
    description: str
    scope: str
    provider: str
    eligibility: str = ""
    amount: int | None = None
    percentage: float | None = None
    region_code: str | None = None
    application_url: str | None = None
    kind: str = "state"

    @property
    def is_national(self) -> bool:
        return self.scope == NATIONAL


@dataclass
class Datasets:
    """Everything the DatasetLoader produces for one run."""

    localities: list[Locality]
    rates: dict[str, RegionRate]
    incentives: list[IncentiveProgram]


# ---------------------------------------------------------------------------
# Derived value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CostProfile:
    locality_slug: str
    base_cost: int
    multiplier: float
    avg_install_cost: int


@dataclass(frozen=True)
class ROIProfile:
    """Home charging vs. fuel comparison for one electricity rate.

    Money fields are Decimals rounded to the cent.
    """

    electricity_rate: float
    energy_cost: Decimal
    fuel_baseline_cost: Decimal
    savings_per_charge: Decimal
    monthly_savings: Decimal
    annual_savings: Decimal


@dataclass(frozen=True)
class ContentFacts:
    """The only data that reaches a generation prompt — all of it locality-derived."""

    locality_slug: str
    name: str
    region_name: str
    region_code: str
    population: int
    avg_install_cost: int
    electricity_rate: float
    incentives: tuple[str, ...] = ()


class ContentSource(str, Enum):
    GENERATED = "generated"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class FAQItem:
    question: str
    answer: str


@dataclass
class GeneratedContent:
    """Intro narrative and FAQ for one locality page."""

    locality_slug: str
    intro: str
    faq: list[FAQItem]
    source: ContentSource


# ---------------------------------------------------------------------------
# Persisted join
# ---------------------------------------------------------------------------

@dataclass
class LocalityRecord:
    """Everything a locality page needs, keyed by slug."""

    locality: Locality
    cost: CostProfile
    roi: ROIProfile
    incentives: list[IncentiveProgram]
    content: GeneratedContent
    total_rebates: int = 0
    meta_title: str = ""
    meta_description: str = ""

    @property
    def slug(self) -> str:
        return self.locality.slug

    @property
    def needs_content(self) -> bool:
        return self.content.source is not ContentSource.GENERATED


@dataclass(frozen=True)
class UpsertResult:
    record_id: int
    created: bool


@dataclass
class RunSummary:
    """Per-category counts for one orchestrator run."""

    total: int = 0
    succeeded: int = 0
    fallback_content: int = 0
    failed_persist: int = 0
    duplicates: int = 0
    created: int = 0
    updated: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed_persist
