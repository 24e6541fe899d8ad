"""Core domain types shared across all evpages modules."""

from evpages.core.errors import (
    DatasetUnavailable,
    EvPagesError,
    GenerationUnavailable,
    InvalidRateError,
    PersistenceWriteError,
)
from evpages.core.types import (
    ContentSource,
    CostProfile,
    Datasets,
    FAQItem,
    GeneratedContent,
    IncentiveProgram,
    Locality,
    LocalityRecord,
    RegionRate,
    ROIProfile,
    RunSummary,
)

__all__ = [
    "ContentSource",
    "CostProfile",
    "DatasetUnavailable",
    "Datasets",
    "EvPagesError",
    "FAQItem",
    "GenerationUnavailable",
    "GeneratedContent",
    "IncentiveProgram",
    "InvalidRateError",
    "Locality",
    "LocalityRecord",
    "PersistenceWriteError",
    "RegionRate",
    "ROIProfile",
    "RunSummary",
]
