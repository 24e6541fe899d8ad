"""Batch orchestrator: join cost, ROI, incentives and content per locality, then persist.

Localities are processed in fixed-size chunks no larger than the storage
collaborator's connection ceiling. Items within a chunk run concurrently;
the next chunk starts only once every item of the current one has settled.
A failure is contained to its locality — logged, counted, and skipped —
so one bad row never aborts the run.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

import mlflow

from evpages.config import settings
from evpages.core.errors import PersistenceWriteError
from evpages.core.types import (
    ContentFacts,
    ContentSource,
    Datasets,
    Locality,
    LocalityRecord,
    RunSummary,
)
from evpages.generation.synthesizer import ContentSynthesizer
from evpages.observability.logging import run_context
from evpages.pipeline.calculator import compute_install_cost, compute_roi
from evpages.pipeline.eligibility import incentive_names, resolve_incentives, total_rebates
from evpages.pipeline.metadata import build_meta_description, build_meta_title
from evpages.storage.repository import StorageCollaborator

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[int, int], None]


def chunked(items: Sequence, size: int) -> list[Sequence]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class BatchOrchestrator:
    """Runs the per-locality join and persist under a bounded-concurrency ceiling."""

    def __init__(
        self,
        store: StorageCollaborator,
        datasets: Datasets,
        synthesizer: ContentSynthesizer,
        batch_size: int | None = None,
        on_progress: ProgressObserver | None = None,
        default_rate: float | None = None,
    ):
        ceiling = store.max_concurrent_connections
        if ceiling < 1:
            raise ValueError(f"max_concurrent_connections must be >= 1, got {ceiling}")
        if batch_size is not None and batch_size > ceiling:
            logger.warning("Batch size %d exceeds connection ceiling %d — clamping", batch_size, ceiling)
        self.batch_size = max(1, min(batch_size or ceiling, ceiling))

        self.store = store
        self.datasets = datasets
        self.synthesizer = synthesizer
        self.on_progress = on_progress
        self.default_rate = settings.default_electricity_rate if default_rate is None else default_rate

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    def electricity_rate(self, locality: Locality) -> float:
        region = self.datasets.rates.get(locality.region_code)
        if region is None:
            logger.warning(
                "No electricity rate for region %s, using default $%.2f/kWh",
                locality.region_code, self.default_rate,
                extra={"locality": locality.slug, "region": locality.region_code},
            )
            return self.default_rate
        return region.rate

    async def build_record(self, locality: Locality) -> LocalityRecord:
        """Compute everything for one locality; the content call is the only await."""
        rate = self.electricity_rate(locality)
        cost = compute_install_cost(locality)
        roi = compute_roi(rate)
        programs = resolve_incentives(locality, self.datasets.incentives)

        facts = ContentFacts(
            locality_slug=locality.slug,
            name=locality.name,
            region_name=locality.region_name,
            region_code=locality.region_code,
            population=locality.population,
            avg_install_cost=cost.avg_install_cost,
            electricity_rate=rate,
            incentives=tuple(incentive_names(programs)),
        )
        content = await self.synthesizer.synthesize(facts)

        return LocalityRecord(
            locality=locality,
            cost=cost,
            roi=roi,
            incentives=programs,
            content=content,
            total_rebates=total_rebates(programs),
            meta_title=build_meta_title(locality),
            meta_description=build_meta_description(locality, cost),
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _report(self, summary: RunSummary) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(summary.completed, summary.total)
        except Exception:
            logger.exception("Progress observer failed")

    async def _process(self, locality: Locality, summary: RunSummary) -> None:
        started = time.monotonic()
        try:
            record = await self.build_record(locality)
            result = await self.store.upsert(locality.slug, record)
        except PersistenceWriteError as e:
            summary.failed_persist += 1
            summary.failures[locality.slug] = str(e)
            logger.error("Persist failed for %s: %s", locality.slug, e, extra={"locality": locality.slug})
        except Exception as e:
            summary.failed_persist += 1
            summary.failures[locality.slug] = f"{type(e).__name__}: {e}"
            logger.exception("Processing failed for %s", locality.slug, extra={"locality": locality.slug})
        else:
            summary.succeeded += 1
            if record.content.source is ContentSource.FALLBACK:
                summary.fallback_content += 1
            if result.created:
                summary.created += 1
            else:
                summary.updated += 1
            logger.debug(
                "Stored %s (id=%d, %s)", locality.slug, result.record_id,
                "created" if result.created else "updated",
                extra={
                    "locality": locality.slug,
                    "step": "persist",
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
        finally:
            self._report(summary)

    async def run(self, localities: Sequence[Locality]) -> RunSummary:
        """Process every locality exactly once and return the run summary.

        ``total`` counts unique slugs; repeats after the first are skipped
        and counted in ``duplicates``, so the two sum to the input length.
        """
        with run_context() as rid:
            unique: dict[str, Locality] = {}
            duplicates = 0
            for loc in localities:
                if loc.slug in unique:
                    logger.warning("Duplicate locality %s in input, processing once", loc.slug)
                    duplicates += 1
                    continue
                unique[loc.slug] = loc
            items = list(unique.values())

            summary = RunSummary(total=len(items), duplicates=duplicates)
            chunks = chunked(items, self.batch_size)
            logger.info(
                "Run %s: processing %d localities in %d chunks of up to %d",
                rid, len(items), len(chunks), self.batch_size,
            )

            for i, chunk in enumerate(chunks):
                with mlflow.start_span(name=f"chunk_{i}") as span:
                    span.set_inputs({"size": len(chunk)})
                    await asyncio.gather(*(self._process(loc, summary) for loc in chunk))
                    span.set_outputs({"completed": summary.completed})
                logger.info("Progress: %d / %d localities", summary.completed, summary.total)

            logger.info(
                "Run complete: %d succeeded (%d fallback content), %d failed, %d total, %d duplicates skipped",
                summary.succeeded, summary.fallback_content, summary.failed_persist, summary.total,
                summary.duplicates,
            )
            return summary
