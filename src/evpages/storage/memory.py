"""Dict-backed storage collaborator for dry runs and tests.

Same contract as SqlAlchemyStore: upsert by slug, generated content is
never replaced by fallback content, find_many applies a RecordFilter.
"""

import asyncio
from dataclasses import replace

from evpages.core.errors import PersistenceWriteError
from evpages.core.types import IncentiveProgram, LocalityRecord, UpsertResult
from evpages.storage.repository import RecordFilter


class InMemoryStore:
    def __init__(self, max_concurrent_connections: int = 10, fail_keys: set[str] | None = None):
        self.max_concurrent_connections = max_concurrent_connections
        self.records: dict[str, LocalityRecord] = {}
        self.incentives: dict[str, IncentiveProgram] = {}
        self.fail_keys = set(fail_keys or ())
        self.write_count = 0
        self._ids: dict[str, int] = {}
        self._in_flight = 0
        self.peak_in_flight = 0

    async def prepare(self, incentives: list[IncentiveProgram]) -> None:
        self.incentives.update({p.name: p for p in incentives})

    async def upsert(self, locality_key: str, record: LocalityRecord) -> UpsertResult:
        self._in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        try:
            # yield so concurrent writers in a chunk actually overlap
            await asyncio.sleep(0)
            if locality_key in self.fail_keys:
                raise PersistenceWriteError(locality_key, "simulated write failure")

            existing = self.records.get(locality_key)
            if existing is not None and not existing.needs_content and record.needs_content:
                record = replace(record, content=existing.content)

            created = locality_key not in self._ids
            if created:
                self._ids[locality_key] = len(self._ids) + 1
            self.records[locality_key] = record
            self.write_count += 1
            return UpsertResult(record_id=self._ids[locality_key], created=created)
        finally:
            self._in_flight -= 1

    async def find_many(self, predicate: RecordFilter) -> list[LocalityRecord]:
        matched = [r for r in self.records.values() if predicate.matches(r)]
        return sorted(matched, key=lambda r: r.locality.population, reverse=True)
