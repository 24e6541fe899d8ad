"""Error taxonomy for the locality pipeline.

Only DatasetUnavailable is fatal. The others are contained at the locality
level and show up in the run summary and logs.
"""


class EvPagesError(Exception):
    """Base class for all evpages errors."""


class DatasetUnavailable(EvPagesError):
    """A required input file is missing or cannot be parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Dataset unavailable: {path} ({reason})")


class InvalidRateError(EvPagesError, ValueError):
    """An electricity rate <= 0 was passed to the ROI calculator."""


class GenerationUnavailable(EvPagesError):
    """The text generation service failed, timed out, or returned bad output."""


class PersistenceWriteError(EvPagesError):
    """A storage write failed for a single locality."""

    def __init__(self, locality_key: str, reason: str):
        self.locality_key = locality_key
        super().__init__(f"Failed to persist {locality_key}: {reason}")
