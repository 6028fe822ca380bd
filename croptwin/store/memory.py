"""Process-local twin store, used by tests and single-process tooling."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from croptwin.errors import ConcurrencyConflict, PersistenceFailure, TwinNotFound
from croptwin.schemas.twin import FarmTwinRead, HistoricalRecord, ParameterChange, TwinPatch
from croptwin.store.base import TwinStore


class InMemoryTwinStore(TwinStore):
	def __init__(self) -> None:
		self._twins: dict[str, FarmTwinRead] = {}
		self._history: defaultdict[str, list[HistoricalRecord]] = defaultdict(list)
		self._changes: defaultdict[str, list[ParameterChange]] = defaultdict(list)

	async def get(self, twin_id: str) -> FarmTwinRead | None:
		return self._twins.get(twin_id)

	async def create(self, twin: FarmTwinRead) -> FarmTwinRead:
		if twin.twin_id in self._twins:
			raise PersistenceFailure(f"Farm twin {twin.twin_id} already exists")
		stored = twin.model_copy(update={"version": 1})
		self._twins[twin.twin_id] = stored
		return stored

	async def update(self, twin_id: str, patch: TwinPatch, expected_version: int) -> FarmTwinRead:
		current = self._twins.get(twin_id)
		if current is None:
			raise TwinNotFound(twin_id)
		if current.version != expected_version:
			raise ConcurrencyConflict(twin_id, expected_version, current.version)

		updates: dict[str, object] = {name: getattr(patch, name) for name in patch.changed_fields()}
		updates["last_updated"] = patch.last_updated
		updates["version"] = current.version + 1
		updated = current.model_copy(update=updates)
		self._twins[twin_id] = updated
		return updated

	async def append(self, twin_id: str, entry: HistoricalRecord | ParameterChange) -> None:
		if twin_id not in self._twins:
			raise TwinNotFound(twin_id)
		if isinstance(entry, HistoricalRecord):
			self._history[twin_id].append(entry)
		else:
			self._changes[twin_id].append(entry)

	async def list_history(self, twin_id: str, since: datetime | None = None) -> list[HistoricalRecord]:
		records = sorted(self._history.get(twin_id, []), key=lambda record: record.timestamp)
		if since is None:
			return records
		return [record for record in records if record.timestamp >= since]

	async def list_changes(self, twin_id: str, since: datetime | None = None) -> list[ParameterChange]:
		changes = sorted(self._changes.get(twin_id, []), key=lambda change: change.timestamp)
		if since is None:
			return changes
		return [change for change in changes if change.timestamp >= since]
