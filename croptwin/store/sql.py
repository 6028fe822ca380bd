"""PostgreSQL twin store on an async SQLAlchemy session.

The store only flushes; committing is left to whoever owns the session.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from croptwin.errors import ConcurrencyConflict, PersistenceFailure, TwinNotFound
from croptwin.models.twin import FarmTwin, TwinHistoryEntry, TwinParameterChange
from croptwin.schemas.twin import (
	FarmConfiguration,
	FarmState,
	FarmTwinRead,
	HistoricalRecord,
	Location,
	ParameterChange,
	TwinMetadata,
	TwinPatch,
)
from croptwin.store.base import TwinStore


class SqlAlchemyTwinStore(TwinStore):
	def __init__(self, session: AsyncSession):
		self.session = session

	async def get(self, twin_id: str) -> FarmTwinRead | None:
		try:
			row = await self._load(twin_id)
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to load farm twin {twin_id}") from exc
		if row is None:
			return None
		return self._to_read(row)

	async def create(self, twin: FarmTwinRead) -> FarmTwinRead:
		row = FarmTwin(
			id=twin.twin_id,
			farmer_id=twin.farmer_id,
			crop_type=twin.farm_configuration.crop_type,
			location=twin.location.model_dump(mode="json"),
			farm_configuration=twin.farm_configuration.model_dump(mode="json"),
			current_state=twin.current_state.model_dump(mode="json"),
			metadata_=twin.metadata.model_dump(mode="json"),
			is_active=twin.is_active,
			created_at=twin.created_at,
			updated_at=twin.last_updated,
		)
		self.session.add(row)
		try:
			await self.session.flush()
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to create farm twin {twin.twin_id}") from exc
		return self._to_read(row)

	async def update(self, twin_id: str, patch: TwinPatch, expected_version: int) -> FarmTwinRead:
		try:
			row = await self._load(twin_id)
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to load farm twin {twin_id}") from exc
		if row is None:
			raise TwinNotFound(twin_id)
		if row.version != expected_version:
			raise ConcurrencyConflict(twin_id, expected_version, row.version)

		if patch.farm_configuration is not None:
			row.farm_configuration = patch.farm_configuration.model_dump(mode="json")
			row.crop_type = patch.farm_configuration.crop_type
		if patch.current_state is not None:
			row.current_state = patch.current_state.model_dump(mode="json")
		if patch.metadata is not None:
			row.metadata_ = patch.metadata.model_dump(mode="json")
		row.updated_at = patch.last_updated

		try:
			await self.session.flush()
		except StaleDataError as exc:
			raise ConcurrencyConflict(twin_id, expected_version) from exc
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to update farm twin {twin_id}") from exc
		return self._to_read(row)

	async def append(self, twin_id: str, entry: HistoricalRecord | ParameterChange) -> None:
		if isinstance(entry, HistoricalRecord):
			row: TwinHistoryEntry | TwinParameterChange = TwinHistoryEntry(
				twin_id=twin_id,
				timestamp=entry.timestamp,
				farm_state=entry.farm_state.model_dump(mode="json"),
				data_source=entry.data_source,
				change_reason=entry.change_reason,
			)
		else:
			dumped = entry.model_dump(mode="json")
			row = TwinParameterChange(
				twin_id=twin_id,
				parameter=entry.parameter,
				old_value=dumped["old_value"],
				new_value=dumped["new_value"],
				timestamp=entry.timestamp,
				impact=entry.impact,
				affected_predictions=list(entry.affected_predictions),
			)
		try:
			# Savepoint: a failed append must not poison the outer transaction.
			async with self.session.begin_nested():
				self.session.add(row)
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to append to farm twin {twin_id} log") from exc

	async def list_history(self, twin_id: str, since: datetime | None = None) -> list[HistoricalRecord]:
		stmt = select(TwinHistoryEntry).where(TwinHistoryEntry.twin_id == twin_id)
		if since is not None:
			stmt = stmt.where(TwinHistoryEntry.timestamp >= since)
		stmt = stmt.order_by(TwinHistoryEntry.timestamp.asc(), TwinHistoryEntry.id.asc())
		try:
			rows = (await self.session.execute(stmt)).scalars().all()
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to list history for farm twin {twin_id}") from exc
		return [
			HistoricalRecord(
				timestamp=row.timestamp,
				farm_state=FarmState.model_validate(row.farm_state),
				data_source=row.data_source,
				change_reason=row.change_reason,
			)
			for row in rows
		]

	async def list_changes(self, twin_id: str, since: datetime | None = None) -> list[ParameterChange]:
		stmt = select(TwinParameterChange).where(TwinParameterChange.twin_id == twin_id)
		if since is not None:
			stmt = stmt.where(TwinParameterChange.timestamp >= since)
		stmt = stmt.order_by(TwinParameterChange.timestamp.asc(), TwinParameterChange.id.asc())
		try:
			rows = (await self.session.execute(stmt)).scalars().all()
		except SQLAlchemyError as exc:
			raise PersistenceFailure(f"Failed to list changes for farm twin {twin_id}") from exc
		return [
			ParameterChange(
				parameter=row.parameter,
				old_value=row.old_value,
				new_value=row.new_value,
				timestamp=row.timestamp,
				impact=row.impact,
				affected_predictions=list(row.affected_predictions or []),
			)
			for row in rows
		]

	async def _load(self, twin_id: str) -> FarmTwin | None:
		row = await self.session.execute(select(FarmTwin).where(FarmTwin.id == twin_id))
		return row.scalar_one_or_none()

	@staticmethod
	def _to_read(row: FarmTwin) -> FarmTwinRead:
		return FarmTwinRead(
			twin_id=row.id,
			farmer_id=row.farmer_id,
			location=Location.model_validate(row.location),
			farm_configuration=FarmConfiguration.model_validate(row.farm_configuration),
			current_state=FarmState.model_validate(row.current_state),
			metadata=TwinMetadata.model_validate(row.metadata_),
			is_active=row.is_active,
			created_at=row.created_at,
			last_updated=row.updated_at,
			version=row.version,
		)
