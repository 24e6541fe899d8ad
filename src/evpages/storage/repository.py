"""Storage collaborator: upsert and query locality records by slug.

The orchestrator only sees the StorageCollaborator protocol. SqlAlchemyStore
is the PostgreSQL implementation; InMemoryStore (storage.memory) is the
dict-backed one used for dry runs and tests.

Upserts are keyed by slug, so re-running a batch updates rows in place and
never duplicates them. Generated content is never downgraded: when a row
already holds generated content and the incoming record only has fallback
content, the stored intro and FAQ are kept.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import and_, case, delete, insert, literal_column, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from evpages.config import settings
from evpages.core.errors import PersistenceWriteError
from evpages.core.types import (
    NATIONAL,
    REGIONAL,
    ContentSource,
    CostProfile,
    FAQItem,
    GeneratedContent,
    IncentiveProgram,
    Locality,
    LocalityRecord,
    ROIProfile,
    UpsertResult,
)
from evpages.storage.db import get_session, init_db
from evpages.storage.models import IncentiveRow, LocalityRow, locality_incentives

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordFilter:
    """Predicate for find_many. ``None`` fields do not filter."""

    needs_content: bool | None = None
    region_code: str | None = None
    slugs: frozenset[str] | None = None

    def matches(self, record: LocalityRecord) -> bool:
        if self.needs_content is not None and record.needs_content != self.needs_content:
            return False
        if self.region_code is not None and record.locality.region_code != self.region_code:
            return False
        if self.slugs is not None and record.slug not in self.slugs:
            return False
        return True


class StorageCollaborator(Protocol):
    max_concurrent_connections: int

    async def prepare(self, incentives: list[IncentiveProgram]) -> None: ...

    async def upsert(self, locality_key: str, record: LocalityRecord) -> UpsertResult: ...

    async def find_many(self, predicate: RecordFilter) -> list[LocalityRecord]: ...


# ---------------------------------------------------------------------------
# Row <-> record conversion
# ---------------------------------------------------------------------------

def record_to_values(record: LocalityRecord) -> dict:
    loc, cost, roi, content = record.locality, record.cost, record.roi, record.content
    generated = content.source is ContentSource.GENERATED
    return {
        "slug": loc.slug,
        "name": loc.name,
        "region_code": loc.region_code,
        "region_name": loc.region_name,
        "county": loc.county,
        "zip_codes": list(loc.zip_codes),
        "population": loc.population,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
        "electricity_rate": roi.electricity_rate,
        "base_cost": cost.base_cost,
        "cost_multiplier": cost.multiplier,
        "avg_install_cost": cost.avg_install_cost,
        "energy_cost": roi.energy_cost,
        "fuel_baseline_cost": roi.fuel_baseline_cost,
        "savings_per_charge": roi.savings_per_charge,
        "monthly_savings": roi.monthly_savings,
        "annual_savings": roi.annual_savings,
        "total_rebates": record.total_rebates,
        "meta_title": record.meta_title,
        "meta_description": record.meta_description,
        "intro": content.intro,
        "faq": [{"question": f.question, "answer": f.answer} for f in content.faq],
        "content_source": content.source.value,
        "content_generated": generated,
        "published": True,
    }


def _program_from_row(row: IncentiveRow) -> IncentiveProgram:
    return IncentiveProgram(
        name=row.name,
        description=row.description or "",
        scope=NATIONAL if row.is_national else REGIONAL,
        provider=row.provider or "",
        eligibility=row.eligibility or "",
        amount=row.amount,
        percentage=row.percentage,
        region_code=row.region_code,
        application_url=row.application_url,
        kind=row.kind,
    )


def row_to_record(row: LocalityRow) -> LocalityRecord:
    locality = Locality(
        slug=row.slug,
        name=row.name,
        region_code=row.region_code,
        region_name=row.region_name,
        population=row.population,
        latitude=row.latitude,
        longitude=row.longitude,
        county=row.county or "",
        zip_codes=tuple(row.zip_codes or ()),
        cost_multiplier=row.cost_multiplier,
    )
    programs = sorted(
        (_program_from_row(i) for i in row.incentives),
        key=lambda p: (0 if p.is_national else 1, p.name.lower(), p.name),
    )
    return LocalityRecord(
        locality=locality,
        cost=CostProfile(
            locality_slug=row.slug,
            base_cost=row.base_cost,
            multiplier=row.cost_multiplier,
            avg_install_cost=row.avg_install_cost,
        ),
        roi=ROIProfile(
            electricity_rate=row.electricity_rate,
            energy_cost=row.energy_cost,
            fuel_baseline_cost=row.fuel_baseline_cost,
            savings_per_charge=row.savings_per_charge,
            monthly_savings=row.monthly_savings,
            annual_savings=row.annual_savings,
        ),
        incentives=programs,
        content=GeneratedContent(
            locality_slug=row.slug,
            intro=row.intro or "",
            faq=[FAQItem(question=f["question"], answer=f["answer"]) for f in (row.faq or [])],
            source=ContentSource(row.content_source),
        ),
        total_rebates=row.total_rebates or 0,
        meta_title=row.meta_title or "",
        meta_description=row.meta_description or "",
    )


# ---------------------------------------------------------------------------
# PostgreSQL implementation
# ---------------------------------------------------------------------------

class SqlAlchemyStore:
    """PostgreSQL-backed storage through the shared async engine."""

    def __init__(self, max_concurrent_connections: int | None = None, session_factory=get_session):
        self.max_concurrent_connections = (
            max_concurrent_connections or settings.max_concurrent_connections
        )
        self._session_factory = session_factory
        self._incentive_ids: dict[str, int] = {}

    async def prepare(self, incentives: list[IncentiveProgram]) -> None:
        """Create tables and upsert incentive programs by name."""
        await init_db()
        session: AsyncSession = await self._session_factory()
        try:
            if incentives:
                stmt = pg_insert(IncentiveRow).values([
                    {
                        "name": p.name,
                        "description": p.description,
                        "amount": p.amount,
                        "percentage": p.percentage,
                        "kind": p.kind,
                        "provider": p.provider,
                        "eligibility": p.eligibility,
                        "application_url": p.application_url,
                        "is_national": p.is_national,
                        "region_code": p.region_code,
                    }
                    for p in incentives
                ])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[IncentiveRow.name],
                    set_={
                        col: stmt.excluded[col]
                        for col in ("description", "amount", "percentage", "kind", "provider",
                                    "eligibility", "application_url", "is_national", "region_code")
                    },
                )
                await session.execute(stmt)
            rows = await session.execute(select(IncentiveRow.name, IncentiveRow.id))
            self._incentive_ids = {name: id_ for name, id_ in rows.all()}
            await session.commit()
            logger.info("Synced %d incentive programs", len(incentives))
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def upsert(self, locality_key: str, record: LocalityRecord) -> UpsertResult:
        values = record_to_values(record)
        stmt = pg_insert(LocalityRow).values(**values)
        keep_generated = and_(LocalityRow.content_generated, ~stmt.excluded.content_generated)
        update_cols = {k: stmt.excluded[k] for k in values if k != "slug"}
        for col in ("intro", "faq", "content_source", "content_generated"):
            update_cols[col] = case((keep_generated, getattr(LocalityRow, col)), else_=stmt.excluded[col])
        stmt = stmt.on_conflict_do_update(
            index_elements=[LocalityRow.slug], set_=update_cols,
        ).returning(LocalityRow.id, literal_column("(xmax = 0)").label("inserted"))

        session: AsyncSession = await self._session_factory()
        try:
            row = (await session.execute(stmt)).one()
            record_id, created = row.id, bool(row.inserted)

            await session.execute(
                delete(locality_incentives).where(locality_incentives.c.locality_id == record_id)
            )
            links = [
                {"locality_id": record_id, "incentive_id": self._incentive_ids[p.name]}
                for p in record.incentives
                if p.name in self._incentive_ids
            ]
            if links:
                await session.execute(insert(locality_incentives), links)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceWriteError(locality_key, str(e)) from e
        finally:
            await session.close()

        return UpsertResult(record_id=record_id, created=created)

    async def find_many(self, predicate: RecordFilter) -> list[LocalityRecord]:
        query = select(LocalityRow).order_by(LocalityRow.population.desc())
        if predicate.needs_content is not None:
            query = query.where(LocalityRow.content_generated.is_(not predicate.needs_content))
        if predicate.region_code is not None:
            query = query.where(LocalityRow.region_code == predicate.region_code)
        if predicate.slugs is not None:
            query = query.where(LocalityRow.slug.in_(predicate.slugs))

        session: AsyncSession = await self._session_factory()
        try:
            rows = (await session.execute(query)).scalars().all()
            return [row_to_record(r) for r in rows]
        finally:
            await session.close()
