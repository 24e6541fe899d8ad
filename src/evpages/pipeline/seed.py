"""Pipeline stages: load → eligibility → cost/ROI → content → persist.

Each stage is a plain function over already-loaded Datasets, so the CLI and
the Prefect flows wire the same pieces together. Dataset loading happens
before any stage touches storage; a DatasetUnavailable there ends the run
with nothing written.
"""

import logging

from evpages.core.types import Datasets, RunSummary
from evpages.generation.synthesizer import ContentSynthesizer, PacingPolicy
from evpages.pipeline.calculator import compute_install_cost, compute_roi
from evpages.pipeline.eligibility import resolve_incentives, total_rebates
from evpages.pipeline.orchestrator import BatchOrchestrator, ProgressObserver
from evpages.storage.repository import RecordFilter, StorageCollaborator

logger = logging.getLogger(__name__)


def eligibility_report(datasets: Datasets) -> list[dict]:
    """Resolved incentive programs and rebate total per locality."""
    rows = []
    for loc in datasets.localities:
        programs = resolve_incentives(loc, datasets.incentives)
        rows.append({
            "slug": loc.slug,
            "region": loc.region_code,
            "national": sum(1 for p in programs if p.is_national),
            "regional": sum(1 for p in programs if not p.is_national),
            "programs": [p.name for p in programs],
            "total_rebates": total_rebates(programs),
        })
    return rows


def cost_report(datasets: Datasets, default_rate: float) -> list[dict]:
    """Installation cost and charging savings per locality."""
    rows = []
    for loc in datasets.localities:
        region = datasets.rates.get(loc.region_code)
        rate = region.rate if region else default_rate
        cost = compute_install_cost(loc)
        roi = compute_roi(rate)
        rows.append({
            "slug": loc.slug,
            "region": loc.region_code,
            "rate": rate,
            "rate_is_default": region is None,
            "avg_install_cost": cost.avg_install_cost,
            "savings_per_charge": roi.savings_per_charge,
            "monthly_savings": roi.monthly_savings,
            "annual_savings": roi.annual_savings,
        })
    return rows


async def seed_all(
    datasets: Datasets,
    store: StorageCollaborator,
    synthesizer: ContentSynthesizer | None = None,
    on_progress: ProgressObserver | None = None,
    skip_generated: bool = False,
) -> RunSummary:
    """Build and upsert a record for every loaded locality.

    With ``skip_generated``, localities whose stored content is already
    generated are filtered out before the run.
    """
    await store.prepare(datasets.incentives)

    localities = datasets.localities
    if skip_generated:
        done = {r.slug for r in await store.find_many(RecordFilter(needs_content=False))}
        localities = [loc for loc in localities if loc.slug not in done]
        logger.info("Skipping %d localities with generated content", len(datasets.localities) - len(localities))

    orchestrator = BatchOrchestrator(
        store, datasets, synthesizer or ContentSynthesizer(), on_progress=on_progress,
    )
    return await orchestrator.run(localities)


async def regenerate_content(
    datasets: Datasets,
    store: StorageCollaborator,
    synthesizer: ContentSynthesizer | None = None,
    on_progress: ProgressObserver | None = None,
) -> RunSummary:
    """Re-run localities whose stored content is missing or template-only."""
    await store.prepare(datasets.incentives)
    pending = await store.find_many(RecordFilter(needs_content=True))
    logger.info("Found %d localities needing content", len(pending))

    orchestrator = BatchOrchestrator(
        store, datasets, synthesizer or ContentSynthesizer(), on_progress=on_progress,
    )
    return await orchestrator.run([r.locality for r in pending])


def make_synthesizer(pacing: bool = True) -> ContentSynthesizer:
    return ContentSynthesizer(pacing=PacingPolicy() if pacing else PacingPolicy.disabled())
