"""Prefect flows — for scheduled/observable pipeline runs.

Thin wrappers over evpages.pipeline.seed. Dataset loading is its own task
with no retries: a missing file is fatal and should fail the flow before
the seeding task ever starts.
"""

import logging
from pathlib import Path

from prefect import flow, task

from evpages.core.types import Datasets, RunSummary
from evpages.ingestion.loader import load_datasets
from evpages.pipeline.seed import make_synthesizer, regenerate_content, seed_all
from evpages.storage.repository import SqlAlchemyStore

logger = logging.getLogger(__name__)


@task(name="load-datasets")
def load_datasets_task(data_dir: str | None = None) -> Datasets:
    datasets = load_datasets(Path(data_dir) if data_dir else None)
    logger.info(
        "Loaded %d localities, %d rates, %d incentives",
        len(datasets.localities), len(datasets.rates), len(datasets.incentives),
    )
    return datasets


@task(name="seed-localities")
async def seed_localities_task(datasets: Datasets, skip_generated: bool = False) -> RunSummary:
    return await seed_all(datasets, SqlAlchemyStore(), make_synthesizer(), skip_generated=skip_generated)


@task(name="regenerate-content")
async def regenerate_content_task(datasets: Datasets) -> RunSummary:
    return await regenerate_content(datasets, SqlAlchemyStore(), make_synthesizer())


@flow(name="seed-localities", log_prints=True)
async def seed_flow(data_dir: str | None = None, skip_generated: bool = False) -> dict:
    """Prefect flow: load all datasets and upsert every locality record."""
    datasets = load_datasets_task(data_dir)
    summary = await seed_localities_task(datasets, skip_generated)
    return {
        "total": summary.total,
        "succeeded": summary.succeeded,
        "fallback_content": summary.fallback_content,
        "failed_persist": summary.failed_persist,
        "duplicates": summary.duplicates,
    }


@flow(name="regenerate-content", log_prints=True)
async def content_flow(data_dir: str | None = None) -> dict:
    """Prefect flow: regenerate content for stored localities that only have fallback text."""
    datasets = load_datasets_task(data_dir)
    summary = await regenerate_content_task(datasets)
    return {
        "total": summary.total,
        "succeeded": summary.succeeded,
        "fallback_content": summary.fallback_content,
        "failed_persist": summary.failed_persist,
        "duplicates": summary.duplicates,
    }
