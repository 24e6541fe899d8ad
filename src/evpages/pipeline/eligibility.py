"""Incentive eligibility: which programs apply to a locality.

A program applies when it is national or owned by the locality's region.
The federal charger credit is an ordinary national program, so it reaches
every locality (and every rebate total) through the same path.
"""

from evpages.core.types import IncentiveProgram, Locality


def _sort_key(program: IncentiveProgram) -> tuple[int, str, str]:
    return (0 if program.is_national else 1, program.name.lower(), program.name)


def resolve_incentives(locality: Locality, programs: list[IncentiveProgram]) -> list[IncentiveProgram]:
    """Return the programs that apply to ``locality``, nationals first, then by name.

    An empty collection, or a region with no programs of its own, is not an
    error — the result is simply empty or national-only.
    """
    applicable = [
        p for p in programs
        if p.is_national or p.region_code == locality.region_code
    ]
    return sorted(applicable, key=_sort_key)


def total_rebates(programs: list[IncentiveProgram]) -> int:
    """Sum of fixed-amount programs; percentage and 'varies' programs add nothing."""
    return sum(p.amount for p in programs if p.amount is not None)


def incentive_names(programs: list[IncentiveProgram]) -> list[str]:
    return [p.name for p in programs]
