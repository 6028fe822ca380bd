"""Storage contract for twins and their append-only logs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from croptwin.schemas.twin import FarmTwinRead, HistoricalRecord, ParameterChange, TwinPatch


class TwinStore(ABC):
	"""Persistence boundary used by the twin state coordinator.

	``update`` must be atomic with respect to ``expected_version``: when the
	stored version differs it raises ``ConcurrencyConflict`` and leaves the
	twin untouched.  A successful update returns the twin with its version
	incremented by one.
	"""

	@abstractmethod
	async def get(self, twin_id: str) -> FarmTwinRead | None: ...

	@abstractmethod
	async def create(self, twin: FarmTwinRead) -> FarmTwinRead: ...

	@abstractmethod
	async def update(self, twin_id: str, patch: TwinPatch, expected_version: int) -> FarmTwinRead: ...

	@abstractmethod
	async def append(self, twin_id: str, entry: HistoricalRecord | ParameterChange) -> None: ...

	@abstractmethod
	async def list_history(self, twin_id: str, since: datetime | None = None) -> list[HistoricalRecord]:
		"""History entries at or after ``since``, oldest first."""

	@abstractmethod
	async def list_changes(self, twin_id: str, since: datetime | None = None) -> list[ParameterChange]:
		"""Parameter changes at or after ``since``, oldest first."""
