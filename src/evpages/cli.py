"""evpages CLI — one command per pipeline stage.

    evpages-load     load datasets and report incentive eligibility
    evpages-costs    installation cost and charging ROI per locality
    evpages-content  (re)generate content for localities that need it
    evpages-seed     build and upsert every locality record

Every command exits 1 when a dataset is missing or unparseable and 0
otherwise, even if individual localities failed.
"""

import argparse
import asyncio
import contextlib
from pathlib import Path

import mlflow

from evpages.config import settings
from evpages.core.errors import DatasetUnavailable
from evpages.core.types import Datasets, RunSummary
from evpages.ingestion.loader import load_datasets, summarize_localities
from evpages.observability.logging import setup_logging


def _init_mlflow() -> None:
    """Initialize MLflow tracking for the current process."""
    mlflow.set_tracking_uri(settings.mlflow_tracking_uri)
    mlflow.set_experiment(settings.mlflow_experiment_name)


def _parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the datasets")
    parser.add_argument("--limit", type=int, default=None, help="Max localities (largest first)")
    parser.add_argument("--min-population", type=int, default=None)
    return parser


def _load(args) -> Datasets | None:
    setup_logging(json_format=settings.log_json, level=settings.log_level)
    try:
        datasets = load_datasets(args.data_dir, min_population=args.min_population, limit=args.limit)
    except DatasetUnavailable as e:
        print(f"Error: {e}")
        return None
    print(f"Loaded {len(datasets.localities)} localities")
    print(f"  - {len(datasets.rates)} electricity rates")
    print(f"  - {len(datasets.incentives)} incentive programs\n")
    return datasets


def _print_progress(done: int, total: int) -> None:
    print(f"  Progress: {done} / {total} localities")


def _print_summary(summary: RunSummary) -> None:
    print("\nSummary:")
    print(f"  - Succeeded:        {summary.succeeded}")
    print(f"  - Fallback content: {summary.fallback_content}")
    print(f"  - Failed:           {summary.failed_persist}")
    print(f"  - Total:            {summary.total}")
    if summary.duplicates:
        print(f"  - Duplicates:       {summary.duplicates} skipped")
    print(f"  ({summary.created} created, {summary.updated} updated)")
    for slug, reason in sorted(summary.failures.items())[:10]:
        print(f"    {slug}: {reason}")


@contextlib.contextmanager
def _tracked_run(enabled: bool, run_name: str):
    """MLflow run around a write stage, or nothing when tracking is off."""
    if not enabled:
        yield
        return
    from evpages.generation.prompts import log_prompts_to_run

    _init_mlflow()
    with mlflow.start_run(run_name=run_name):
        log_prompts_to_run()
        yield


def _log_summary_metrics(enabled: bool, summary: RunSummary) -> None:
    if enabled:
        mlflow.log_metrics({
            "total": summary.total,
            "succeeded": summary.succeeded,
            "fallback_content": summary.fallback_content,
            "failed_persist": summary.failed_persist,
            "duplicates": summary.duplicates,
        })


def _add_write_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store instead of the database")
    parser.add_argument("--no-pacing", action="store_true", help="Disable the generation rate-limit pause")
    parser.add_argument("--no-tracking", action="store_true", help="Skip MLflow run tracking")


def _make_store(dry_run: bool):
    if dry_run:
        from evpages.storage.memory import InMemoryStore

        return InMemoryStore(max_concurrent_connections=settings.max_concurrent_connections)
    from evpages.storage.repository import SqlAlchemyStore

    return SqlAlchemyStore()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def load_main(argv: list[str] | None = None) -> int:
    """Load datasets and print incentive eligibility: evpages-load [--data-dir DIR]"""
    from evpages.pipeline.seed import eligibility_report

    args = _parser("evpages-load", "Load datasets and resolve incentive eligibility").parse_args(argv)
    datasets = _load(args)
    if datasets is None:
        return 1

    summary = summarize_localities(datasets.localities, top=10)
    print("Localities by region:")
    for region, count in summary["by_region"].items():
        print(f"  {region}: {count}")

    print("\nIncentive eligibility:")
    for row in eligibility_report(datasets):
        print(
            f"  {row['slug']:<35} {row['national']} national, {row['regional']} regional, "
            f"${row['total_rebates']:,} fixed rebates"
        )
    return 0


def costs_main(argv: list[str] | None = None) -> int:
    """Print installation cost and ROI per locality: evpages-costs [--data-dir DIR]"""
    from evpages.pipeline.seed import cost_report

    args = _parser("evpages-costs", "Installation cost and charging ROI per locality").parse_args(argv)
    datasets = _load(args)
    if datasets is None:
        return 1

    rows = cost_report(datasets, settings.default_electricity_rate)
    for row in rows:
        note = " (default rate)" if row["rate_is_default"] else ""
        print(
            f"  {row['slug']:<35} ${row['avg_install_cost']:>6,} install  "
            f"${row['rate']:.4f}/kWh{note}  ${row['annual_savings']:,}/yr saved"
        )
    defaulted = sum(1 for r in rows if r["rate_is_default"])
    print(f"\nTotal: {len(rows)} localities ({defaulted} using the default rate)")
    return 0


def content_main(argv: list[str] | None = None) -> int:
    """Regenerate content for stored localities that need it: evpages-content [--dry-run]"""
    from evpages.generation.synthesizer import estimate_api_cost
    from evpages.pipeline.seed import make_synthesizer, regenerate_content, seed_all

    parser = _parser("evpages-content", "Generate locality content")
    _add_write_options(parser)
    args = parser.parse_args(argv)
    datasets = _load(args)
    if datasets is None:
        return 1

    store = _make_store(args.dry_run)
    synthesizer = make_synthesizer(pacing=not args.no_pacing)
    if not synthesizer.client.available:
        print("No generation API key set — all content will use templates.\n")
    else:
        cost = estimate_api_cost(len(datasets.localities))
        print(f"Estimated generation cost: up to ${cost['total']:.2f}\n")

    tracking = not args.no_tracking
    with _tracked_run(tracking, "content"):
        if args.dry_run:
            # Nothing is stored yet in a fresh in-memory store; synthesize everything.
            summary = asyncio.run(seed_all(datasets, store, synthesizer, _print_progress))
        else:
            summary = asyncio.run(regenerate_content(datasets, store, synthesizer, _print_progress))
        _log_summary_metrics(tracking, summary)

    _print_summary(summary)
    return 0


def seed_main(argv: list[str] | None = None) -> int:
    """Build and persist every locality record: evpages-seed [--dry-run] [--skip-generated]"""
    from evpages.pipeline.seed import make_synthesizer, seed_all

    parser = _parser("evpages-seed", "Build and upsert locality records")
    _add_write_options(parser)
    parser.add_argument("--skip-generated", action="store_true", help="Skip localities that already have generated content")
    args = parser.parse_args(argv)
    datasets = _load(args)
    if datasets is None:
        return 1

    store = _make_store(args.dry_run)
    synthesizer = make_synthesizer(pacing=not args.no_pacing)
    tracking = not args.no_tracking

    with _tracked_run(tracking, "seed"):
        summary = asyncio.run(
            seed_all(datasets, store, synthesizer, _print_progress, skip_generated=args.skip_generated)
        )
        _log_summary_metrics(tracking, summary)

    _print_summary(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(seed_main())
