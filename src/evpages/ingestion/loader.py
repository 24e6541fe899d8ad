"""Dataset loading: localities (CSV/JSON), electricity rates, incentive programs.

Reads the three raw inputs produced by the collection scripts and turns them
into typed, immutable collections. Any file that is missing or cannot be
parsed at all raises DatasetUnavailable, which aborts the run before a single
record is written. Individual bad rows are skipped with a warning.
"""

import csv
import json
import logging
import re
from collections import Counter
from pathlib import Path

from evpages.config import settings
from evpages.core.errors import DatasetUnavailable
from evpages.core.types import NATIONAL, REGIONAL, Datasets, IncentiveProgram, Locality, RegionRate
from evpages.pipeline.calculator import region_multiplier

logger = logging.getLogger(__name__)

LOCALITY_FILES = ("cities.csv", "cities.json")
RATES_FILE = "electricity-rates.json"
INCENTIVES_FILE = "incentives.json"


def slugify(name: str, region_code: str) -> str:
    """'St. Louis', 'MO' → 'st-louis-mo'."""
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"{base}-{region_code.lower()}"


# ---------------------------------------------------------------------------
# Raw file readers
# ---------------------------------------------------------------------------

def _read_json_list(path: Path) -> list[dict]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise DatasetUnavailable(path, "file not found") from None
    except (OSError, json.JSONDecodeError) as e:
        raise DatasetUnavailable(path, f"unparseable JSON: {e}") from e
    if not isinstance(data, list):
        raise DatasetUnavailable(path, f"expected a JSON list, got {type(data).__name__}")
    return data


def _read_csv_rows(path: Path) -> list[dict]:
    try:
        with path.open(newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            rows = list(reader)
            fields = reader.fieldnames or []
    except FileNotFoundError:
        raise DatasetUnavailable(path, "file not found") from None
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise DatasetUnavailable(path, f"unparseable CSV: {e}") from e

    missing = {"city", "state_id", "state_name", "population"} - set(fields)
    if missing:
        raise DatasetUnavailable(path, f"missing columns: {sorted(missing)}")
    return rows


def _safe_float(value) -> float | None:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Localities
# ---------------------------------------------------------------------------

def _locality_from_csv(row: dict) -> Locality:
    code = row["state_id"].strip().upper()
    name = row["city"].strip()
    ascii_name = (row.get("city_ascii") or name).strip()
    zips = row.get("zips") or ""
    return Locality(
        slug=(row.get("slug") or "").strip() or slugify(ascii_name, code),
        name=name,
        region_code=code,
        region_name=row["state_name"].strip(),
        population=int(float(row.get("population") or 0)),
        latitude=_safe_float(row.get("lat")),
        longitude=_safe_float(row.get("lng")),
        county=(row.get("county_name") or "").strip(),
        zip_codes=tuple(zips.split()),
        cost_multiplier=region_multiplier(code),
    )


def _locality_from_json(item: dict) -> Locality:
    code = item["stateAbbr"].strip().upper()
    name = item["name"].strip()
    return Locality(
        slug=(item.get("slug") or "").strip() or slugify(name, code),
        name=name,
        region_code=code,
        region_name=item["state"].strip(),
        population=int(item.get("population") or 0),
        latitude=_safe_float(item.get("latitude")),
        longitude=_safe_float(item.get("longitude")),
        county=item.get("county") or "",
        zip_codes=tuple(item.get("zipCodes") or ()),
        cost_multiplier=region_multiplier(code),
    )


def load_localities(
    path: Path,
    min_population: int | None = None,
    limit: int | None = None,
) -> list[Locality]:
    """Parse the locality dataset, largest population first.

    Accepts the SimpleMaps CSV export or the processed ``cities.json``.
    Rows below ``min_population`` are dropped and the result is truncated to
    ``limit`` entries. Duplicate slugs keep the first occurrence.
    """
    min_population = settings.min_population if min_population is None else min_population
    limit = settings.locality_limit if limit is None else limit

    path = Path(path)
    if path.suffix.lower() == ".csv":
        rows, parse = _read_csv_rows(path), _locality_from_csv
    else:
        rows, parse = _read_json_list(path), _locality_from_json

    localities: list[Locality] = []
    seen: set[str] = set()
    skipped = 0
    for i, row in enumerate(rows):
        try:
            locality = parse(row)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            skipped += 1
            logger.warning("Skipping locality row %d in %s: %s", i, path.name, e)
            continue
        if locality.population < 0:
            skipped += 1
            logger.warning("Skipping %s: negative population", locality.slug)
            continue
        if locality.population < min_population:
            continue
        if locality.slug in seen:
            logger.warning("Duplicate locality slug %s — keeping first", locality.slug)
            continue
        seen.add(locality.slug)
        localities.append(locality)

    if rows and not localities and skipped == len(rows):
        raise DatasetUnavailable(path, "no parseable locality rows")

    localities.sort(key=lambda loc: loc.population, reverse=True)
    if limit:
        localities = localities[:limit]

    logger.info(
        "Loaded %d localities from %s (min population %d, %d rows skipped)",
        len(localities), path.name, min_population, skipped,
    )
    return localities


def summarize_localities(localities: list[Locality], top: int = 50) -> dict:
    """Counts by region plus the most populous localities."""
    by_region = Counter(loc.region_code for loc in localities)
    ranked = sorted(localities, key=lambda loc: loc.population, reverse=True)
    return {
        "total": len(localities),
        "by_region": dict(sorted(by_region.items())),
        "top": [
            {"name": loc.name, "region": loc.region_code, "population": loc.population}
            for loc in ranked[:top]
        ],
    }


# ---------------------------------------------------------------------------
# Electricity rates
# ---------------------------------------------------------------------------

def load_region_rates(path: Path, in_cents: bool | None = None) -> dict[str, RegionRate]:
    """Parse the region → electricity rate table.

    The EIA-derived file stores cents per kWh; with ``in_cents`` the values
    are converted to dollars.
    """
    in_cents = settings.rates_in_cents if in_cents is None else in_cents
    path = Path(path)
    rates: dict[str, RegionRate] = {}

    for item in _read_json_list(path):
        try:
            code = item["stateAbbr"].strip().upper()
            raw = float(item["rate"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DatasetUnavailable(path, f"bad rate entry {item!r}: {e}") from e
        if raw <= 0:
            raise DatasetUnavailable(path, f"non-positive rate for {code}: {raw}")
        if code in rates:
            logger.warning("Duplicate rate for %s — keeping first", code)
            continue
        rates[code] = RegionRate(
            region_code=code,
            region_name=item.get("stateName") or code,
            rate=raw / 100 if in_cents else raw,
            last_updated=str(item.get("lastUpdated") or ""),
        )

    logger.info("Loaded electricity rates for %d regions", len(rates))
    return rates


# ---------------------------------------------------------------------------
# Incentive programs
# ---------------------------------------------------------------------------

def _normalize_region(value: str, name_to_code: dict[str, str]) -> str:
    value = value.strip()
    if value.upper() in name_to_code.values():
        return value.upper()
    return name_to_code.get(value.lower(), value.upper())


def _incentive_from_json(item: dict, name_to_code: dict[str, str]) -> IncentiveProgram:
    is_national = bool(item.get("isNational"))
    raw_region = item.get("state")

    if is_national and raw_region:
        raise ValueError("national program must not name an owning region")
    if not is_national and not (raw_region or "").strip():
        raise ValueError("region-scoped program needs an owning region")

    amount = item.get("amount")
    percentage = item.get("percentage")
    if amount is not None and percentage is not None:
        logger.warning(
            "Incentive %r sets both amount and percentage — keeping amount", item.get("name"),
        )
        percentage = None

    return IncentiveProgram(
        name=item["name"],
        description=item.get("description") or "",
        scope=NATIONAL if is_national else REGIONAL,
        provider=item.get("provider") or "",
        eligibility=item.get("eligibility") or "",
        amount=int(amount) if amount is not None else None,
        percentage=float(percentage) if percentage is not None else None,
        region_code=None if is_national else _normalize_region(raw_region, name_to_code),
        application_url=item.get("applicationUrl") or None,
        kind=item.get("type") or ("federal" if is_national else "state"),
    )


def load_incentives(path: Path, rates: dict[str, RegionRate] | None = None) -> list[IncentiveProgram]:
    """Parse incentive program definitions.

    Owning regions may be given as a full name ("California") or a code
    ("CA"); names are mapped to codes through the rate table.
    """
    path = Path(path)
    name_to_code = {r.region_name.lower(): code for code, r in (rates or {}).items()}

    programs: list[IncentiveProgram] = []
    for item in _read_json_list(path):
        try:
            programs.append(_incentive_from_json(item, name_to_code))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DatasetUnavailable(path, f"invalid program {item.get('name')!r}: {e}") from e

    national = sum(1 for p in programs if p.is_national)
    logger.info(
        "Loaded %d incentive programs (%d national, %d regional)",
        len(programs), national, len(programs) - national,
    )
    return programs


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------

def _locality_path(data_dir: Path) -> Path:
    for name in LOCALITY_FILES:
        candidate = data_dir / name
        if candidate.exists():
            return candidate
    raise DatasetUnavailable(data_dir / LOCALITY_FILES[0], f"none of {LOCALITY_FILES} found")


def load_datasets(
    data_dir: Path | None = None,
    min_population: int | None = None,
    limit: int | None = None,
) -> Datasets:
    """Load all three datasets from ``data_dir``.

    Raises:
        DatasetUnavailable: If any file is missing or unparseable.
    """
    data_dir = Path(data_dir or settings.data_dir)
    if not data_dir.is_dir():
        raise DatasetUnavailable(data_dir, "data directory not found")

    rates = load_region_rates(data_dir / RATES_FILE)
    incentives = load_incentives(data_dir / INCENTIVES_FILE, rates)
    localities = load_localities(_locality_path(data_dir), min_population, limit)
    return Datasets(localities=localities, rates=rates, incentives=incentives)
