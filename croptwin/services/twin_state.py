"""Twin lifecycle and state transitions.

``TwinStateCoordinator`` is the only component that reads or writes the twin
store.  Every write goes through ``TwinStore.update`` with the version the
twin was loaded at, so concurrent writers cannot silently overwrite each
other.  Log appends run after the versioned write succeeds; history appends
and change-log cache writes are best-effort.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

import structlog

from croptwin.config import Settings, get_settings
from croptwin.errors import PersistenceFailure, TwinNotFound, ValidationFailed
from croptwin.log_config import bind_twin_context
from croptwin.models.enums import (
	CalibrationStatusEnum,
	DataSourceEnum,
	ImpactLevelEnum,
	escalate_impact,
)
from croptwin.schemas.decisions import (
	BatchUpdateResult,
	HistoricalTrends,
	RollbackSnapshot,
	StateUpdateResult,
	StressTrends,
	TrendPoint,
)
from croptwin.schemas.environment import (
	FarmerObservation,
	SatelliteSnapshot,
	SimulationResult,
	SoilSnapshot,
	WeatherSnapshot,
)
from croptwin.schemas.prediction import GrowthPrediction
from croptwin.schemas.twin import (
	CONFIGURATION_FIELDS,
	FarmConfiguration,
	FarmState,
	FarmStateView,
	FarmTwinRead,
	HistoricalRecord,
	Location,
	ParameterChange,
	StressIndicators,
	TwinMetadata,
	TwinPatch,
)
from croptwin.services.change_log_cache import ChangeLogCache
from croptwin.services.crop_parameters import estimate_initial_yield, require_parameters
from croptwin.services.data_quality import DEFAULT_DATA_QUALITY, refresh_data_quality
from croptwin.services.engine import CropTwinEngine
from croptwin.store.base import TwinStore

logger = structlog.get_logger("croptwin.twin_state")

INITIAL_CONFIDENCE = 0.5
INITIAL_STRESS = {
	"water_stress": 0.3,
	"heat_stress": 0.2,
	"nutrient_stress": 0.25,
	"pest_risk": 0.1,
	"disease_risk": 0.15,
}
SCHEDULED_UPDATE_REASON = "Scheduled state update"


class TwinStateCoordinator:
	def __init__(
		self,
		store: TwinStore,
		engine: CropTwinEngine,
		change_log_cache: ChangeLogCache | None = None,
		settings: Settings | None = None,
		clock: Callable[[], datetime] | None = None,
	):
		self.store = store
		self.engine = engine
		self.change_log_cache = change_log_cache or ChangeLogCache(None)
		self.settings = settings or get_settings()
		self.clock = clock or engine.clock

	# ── Lifecycle ───────────────────────────────────────────────────────────

	async def create_twin(
		self,
		farmer_id: str,
		location: Location,
		configuration: FarmConfiguration,
	) -> FarmTwinRead:
		"""Validate a complete configuration and persist a twin with default state."""
		validation = self.engine.classifier.validate_configuration(configuration)
		if not validation.is_valid:
			raise ValidationFailed(validation.errors, validation.warnings)

		params = require_parameters(self.engine.crop_parameters, configuration.crop_type)
		now = self.clock()
		twin_id = f"twin_{uuid.uuid4()}"
		bind_twin_context(twin_id, "create_twin")

		days_after_planting = max(0, (now - configuration.planting_date).days)
		mid_optimal = (params.optimal_temperature_min + params.optimal_temperature_max) / 2
		stage = self.engine.resolve_stage(configuration, mid_optimal, days_after_planting).stage

		twin = FarmTwinRead(
			twin_id=twin_id,
			farmer_id=farmer_id,
			location=location,
			farm_configuration=configuration,
			current_state=FarmState(
				crop_stage=stage,
				days_after_planting=days_after_planting,
				stress_indicators=StressIndicators(**INITIAL_STRESS, last_updated=now),
				predicted_yield=estimate_initial_yield(configuration.crop_type, configuration.farm_size),
				confidence_level=INITIAL_CONFIDENCE,
				data_quality=DEFAULT_DATA_QUALITY,
				last_updated=now,
			),
			metadata=TwinMetadata(
				data_sources_used=["farmer_input"],
				tags=[str(configuration.crop_type), location.district],
			),
			created_at=now,
			last_updated=now,
		)
		created = await self.store.create(twin)
		logger.info(
			"twin_created",
			farmer_id=farmer_id,
			crop_type=str(configuration.crop_type),
			crop_stage=str(stage),
		)
		return created

	async def get_twin(self, twin_id: str) -> FarmTwinRead:
		twin = await self.store.get(twin_id)
		if twin is None:
			raise TwinNotFound(twin_id)
		return twin

	async def get_farm_state(
		self,
		twin_id: str,
		include_history: bool = False,
		history_days: int | None = None,
	) -> FarmStateView:
		"""Current state, optionally with history from the last ``history_days`` days, newest first."""
		twin = await self.get_twin(twin_id)
		historical_data = None
		if include_history:
			days = history_days if history_days is not None else self.settings.default_history_days
			records = await self.store.list_history(twin_id, since=self.clock() - timedelta(days=days))
			historical_data = sorted(records, key=lambda record: record.timestamp, reverse=True)

		return FarmStateView(
			twin_id=twin.twin_id,
			farmer_id=twin.farmer_id,
			location=twin.location,
			farm_configuration=twin.farm_configuration,
			current_state=twin.current_state,
			metadata=twin.metadata,
			is_active=twin.is_active,
			last_updated=twin.last_updated,
			historical_data=historical_data,
		)

	# ── State updates ───────────────────────────────────────────────────────

	async def update_state(
		self,
		twin_id: str,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		satellite: SatelliteSnapshot | None = None,
		check_trigger: bool = False,
	) -> StateUpdateResult:
		bind_twin_context(twin_id, "update_state")
		twin = await self.get_twin(twin_id)
		prior = twin.current_state

		decision = None
		reason = SCHEDULED_UPDATE_REASON
		if check_trigger:
			decision = self.engine.should_update(weather, prior.crop_stage)
			if not decision.should_update:
				logger.info("twin_state_update_skipped", reason=decision.reason)
				return StateUpdateResult(updated=False, reason=decision.reason, decision=decision)
			reason = decision.reason

		config = twin.farm_configuration
		temperature = weather.current.temperature
		days_after_planting = prior.days_after_planting + 1
		resolution = self.engine.resolve_stage(config, temperature, days_after_planting)
		stress = self.engine.calculate_stress_indicators(weather, soil, satellite)
		forecast = self.engine.generate_yield_forecast(config, temperature)

		sources: list[DataSourceEnum] = [DataSourceEnum.weather, DataSourceEnum.soil]
		if satellite is not None:
			sources.append(DataSourceEnum.satellite)

		now = self.clock()
		new_state = FarmState(
			crop_stage=resolution.stage,
			days_after_planting=days_after_planting,
			stress_indicators=stress,
			predicted_yield=forecast.expected_yield,
			confidence_level=resolution.confidence,
			data_quality=refresh_data_quality(prior.data_quality, sources),
			last_updated=now,
		)
		await self.store.update(
			twin_id,
			TwinPatch(current_state=new_state, last_updated=now),
			expected_version=twin.version,
		)
		await self._record_history(twin_id, prior, DataSourceEnum.weather, reason, now)

		logger.info(
			"twin_state_updated",
			crop_stage=str(new_state.crop_stage),
			days_after_planting=days_after_planting,
			predicted_yield=new_state.predicted_yield,
		)
		return StateUpdateResult(updated=True, reason=reason, decision=decision, new_state=new_state)

	async def process_weather_update(
		self,
		twin_id: str,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		satellite: SatelliteSnapshot | None = None,
	) -> StateUpdateResult:
		return await self.update_state(twin_id, weather, soil, satellite, check_trigger=True)

	async def record_farmer_observation(self, twin_id: str, observation: FarmerObservation) -> StateUpdateResult:
		"""Override stress scores with what the farmer observed, clamped to [0, 1]."""
		bind_twin_context(twin_id, "record_farmer_observation")
		twin = await self.get_twin(twin_id)
		prior = twin.current_state
		now = self.clock()

		observed = {name: _clamp_unit(value) for name, value in observation.observed_stress().items()}
		stress = prior.stress_indicators.model_copy(update={**observed, "last_updated": now})
		new_state = prior.model_copy(
			update={
				"stress_indicators": stress,
				"data_quality": refresh_data_quality(prior.data_quality, [DataSourceEnum.farmer]),
				"last_updated": now,
			}
		)
		return await self._apply_observation(twin, new_state, DataSourceEnum.farmer, now, observed=sorted(observed))

	async def apply_simulation_result(self, twin_id: str, result: SimulationResult) -> StateUpdateResult:
		"""Take predicted yield and confidence from an external crop simulation run."""
		bind_twin_context(twin_id, "apply_simulation_result")
		twin = await self.get_twin(twin_id)
		prior = twin.current_state
		now = self.clock()

		updates: dict[str, Any] = {
			"data_quality": refresh_data_quality(prior.data_quality, []),
			"last_updated": now,
		}
		if result.predicted_yield is not None:
			updates["predicted_yield"] = result.predicted_yield
		if result.confidence is not None:
			updates["confidence_level"] = _clamp_unit(result.confidence)
		new_state = prior.model_copy(update=updates)
		return await self._apply_observation(twin, new_state, DataSourceEnum.simulation, now, model=result.model)

	async def _apply_observation(
		self,
		twin: FarmTwinRead,
		new_state: FarmState,
		source: DataSourceEnum,
		now: datetime,
		**log_fields: Any,
	) -> StateUpdateResult:
		reason = f"Data update from {source}"
		await self.store.update(
			twin.twin_id,
			TwinPatch(current_state=new_state, last_updated=now),
			expected_version=twin.version,
		)
		await self._record_history(twin.twin_id, twin.current_state, source, reason, now)
		logger.info("twin_state_observed", source=str(source), **log_fields)
		return StateUpdateResult(updated=True, reason=reason, new_state=new_state)

	async def predict_growth(
		self,
		twin_id: str,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		horizon_days: int | None = None,
	) -> GrowthPrediction:
		twin = await self.get_twin(twin_id)
		horizon = horizon_days if horizon_days is not None else self.settings.default_horizon_days
		return self.engine.project(twin, weather, soil, horizon)

	# ── Configuration changes ───────────────────────────────────────────────

	async def batch_update(
		self,
		twin_id: str,
		updates: Mapping[str, Any],
		validate_only: bool = False,
	) -> BatchUpdateResult:
		"""Validate and atomically apply a set of configuration changes.

		Any invalid field rejects the whole batch with ``ValidationFailed``.
		With ``validate_only`` the would-be impact is returned and nothing is
		written.
		"""
		bind_twin_context(twin_id, "batch_update")
		twin = await self.get_twin(twin_id)
		current_config = twin.farm_configuration
		prior_state = twin.current_state

		validation = self.engine.validate(current_config, updates, prior_state.crop_stage)
		if not validation.is_valid:
			logger.info("batch_update_rejected", errors=validation.errors)
			raise ValidationFailed(validation.errors, validation.warnings)

		if validate_only:
			return BatchUpdateResult(
				applied=False,
				validation=validation,
				updated_fields=list(updates),
				recalculation_plan=self.engine.classifier.recalculation_plan(validation.impact),
			)

		merged_config = self.engine.classifier.merge(current_config, updates)
		now = self.clock()
		changes, confidence_delta, impact = self._diff_configuration(
			current_config, merged_config, prior_state, now, validation.impact
		)
		if not changes:
			return BatchUpdateResult(applied=False, validation=validation, confidence_level=prior_state.confidence_level)

		decayed_confidence = _clamp_unit(prior_state.confidence_level + confidence_delta)
		new_state = prior_state.model_copy(update={"confidence_level": decayed_confidence, "last_updated": now})
		metadata = twin.metadata
		if impact == ImpactLevelEnum.high:
			metadata = metadata.model_copy(update={"calibration_status": CalibrationStatusEnum.needs_recalibration})

		updated = await self.store.update(
			twin_id,
			TwinPatch(
				farm_configuration=merged_config,
				current_state=new_state,
				metadata=metadata,
				last_updated=now,
			),
			expected_version=twin.version,
		)

		for change in changes:
			await self.store.append(twin_id, change)
		await self.change_log_cache.invalidate(twin_id)
		updated_fields = [change.parameter for change in changes]
		await self._record_history(
			twin_id,
			prior_state,
			DataSourceEnum.configuration,
			f"Configuration update: {', '.join(updated_fields)}",
			now,
		)

		logger.info(
			"batch_update_applied",
			updated_fields=updated_fields,
			impact=str(impact),
			confidence_level=decayed_confidence,
			version=updated.version,
		)
		return BatchUpdateResult(
			applied=True,
			validation=validation,
			updated_fields=updated_fields,
			applied_changes=changes,
			recalculation_plan=self.engine.classifier.recalculation_plan(impact),
			confidence_level=decayed_confidence,
			rollback=RollbackSnapshot(
				twin_id=twin_id,
				original_configuration=current_config,
				original_confidence_level=prior_state.confidence_level,
				original_calibration_status=twin.metadata.calibration_status,
				applied_version=updated.version,
				captured_at=now,
			),
		)

	async def restore_configuration(self, twin_id: str, snapshot: RollbackSnapshot) -> FarmTwinRead:
		"""Undo a batch update from its rollback snapshot.

		Puts back the configuration together with the confidence level and
		calibration status the batch replaced, and records the superseded
		state in the history.  Fails with ``ConcurrencyConflict`` if the twin
		moved past ``applied_version``.
		"""
		if snapshot.twin_id != twin_id:
			raise ValueError(f"Rollback snapshot belongs to farm twin {snapshot.twin_id}")
		bind_twin_context(twin_id, "restore_configuration")
		twin = await self.get_twin(twin_id)
		prior_state = twin.current_state
		now = self.clock()

		changes, _, _ = self._diff_configuration(
			twin.farm_configuration,
			snapshot.original_configuration,
			prior_state,
			now,
			ImpactLevelEnum.low,
		)
		state_updates: dict[str, Any] = {"last_updated": now}
		if snapshot.original_confidence_level is not None:
			state_updates["confidence_level"] = snapshot.original_confidence_level
		metadata = twin.metadata
		if snapshot.original_calibration_status is not None:
			metadata = metadata.model_copy(update={"calibration_status": snapshot.original_calibration_status})

		restored = await self.store.update(
			twin_id,
			TwinPatch(
				farm_configuration=snapshot.original_configuration,
				current_state=prior_state.model_copy(update=state_updates),
				metadata=metadata,
				last_updated=now,
			),
			expected_version=snapshot.applied_version,
		)
		for change in changes:
			await self.store.append(twin_id, change)
		await self.change_log_cache.invalidate(twin_id)
		restored_fields = [change.parameter for change in changes]
		await self._record_history(
			twin_id,
			prior_state,
			DataSourceEnum.configuration,
			f"Configuration restored: {', '.join(restored_fields)}",
			now,
		)

		logger.info("configuration_restored", restored_fields=restored_fields)
		return restored

	def _diff_configuration(
		self,
		current: FarmConfiguration,
		target: FarmConfiguration,
		state: FarmState,
		now: datetime,
		base_impact: ImpactLevelEnum,
	) -> tuple[list[ParameterChange], float, ImpactLevelEnum]:
		old_values = current.model_dump(mode="json")
		new_values = target.model_dump(mode="json")
		changes: list[ParameterChange] = []
		confidence_delta = 0.0
		impact = base_impact
		for name in CONFIGURATION_FIELDS:
			if getattr(current, name) == getattr(target, name):
				continue
			field_impact = self.engine.impact_of(
				name,
				getattr(current, name),
				getattr(target, name),
				current.crop_type,
				state.crop_stage,
			)
			impact = escalate_impact(impact, field_impact.impact)
			confidence_delta += field_impact.estimated_confidence_change
			changes.append(
				ParameterChange(
					parameter=name,
					old_value=old_values[name],
					new_value=new_values[name],
					timestamp=now,
					impact=field_impact.impact,
					affected_predictions=field_impact.affected_predictions,
				)
			)
		return changes, confidence_delta, impact

	# ── History ─────────────────────────────────────────────────────────────

	async def get_parameter_change_history(self, twin_id: str, days: int | None = None) -> list[ParameterChange]:
		"""Change log oldest first.

		Served from the cache when it holds the twin's log, otherwise read from
		the store and cached for the next call.
		"""
		await self.get_twin(twin_id)
		changes = await self.change_log_cache.get(twin_id)
		if changes is None:
			changes = await self.store.list_changes(twin_id)
			await self.change_log_cache.fill(twin_id, changes)
		if days is None:
			return changes
		since = self.clock() - timedelta(days=days)
		return [change for change in changes if change.timestamp >= since]

	async def get_historical_trends(self, twin_id: str, days: int | None = None) -> HistoricalTrends:
		await self.get_twin(twin_id)
		window = days if days is not None else self.settings.default_history_days
		records = await self.store.list_history(twin_id, since=self.clock() - timedelta(days=window))
		return _summarize_trends(twin_id, window, records)

	async def _record_history(
		self,
		twin_id: str,
		prior_state: FarmState,
		source: DataSourceEnum,
		reason: str,
		captured_at: datetime,
	) -> None:
		record = HistoricalRecord(
			timestamp=captured_at,
			farm_state=prior_state,
			data_source=source,
			change_reason=reason,
		)
		try:
			await self.store.append(twin_id, record)
		except PersistenceFailure as exc:
			logger.warning("history_append_failed", source=str(source), error=str(exc))


def _clamp_unit(value: float) -> float:
	return min(1.0, max(0.0, value))


def _summarize_trends(twin_id: str, days: int, records: Iterable[HistoricalRecord]) -> HistoricalTrends:
	yield_trend: list[TrendPoint] = []
	stress = StressTrends()
	stage_durations: dict[str, int] = {}
	for record in sorted(records, key=lambda item: item.timestamp):
		state = record.farm_state
		yield_trend.append(TrendPoint(date=record.timestamp, value=state.predicted_yield))
		stress.water.append(TrendPoint(date=record.timestamp, value=state.stress_indicators.water_stress))
		stress.heat.append(TrendPoint(date=record.timestamp, value=state.stress_indicators.heat_stress))
		stress.nutrient.append(TrendPoint(date=record.timestamp, value=state.stress_indicators.nutrient_stress))
		stage = str(state.crop_stage)
		stage_durations[stage] = stage_durations.get(stage, 0) + 1
	return HistoricalTrends(
		twin_id=twin_id,
		days=days,
		yield_trend=yield_trend,
		stress_trends=stress,
		stage_durations=stage_durations,
	)
