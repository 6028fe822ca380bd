from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from croptwin.errors import ConcurrencyConflict, PersistenceFailure, TwinNotFound, ValidationFailed
from croptwin.models.enums import (
	CalibrationStatusEnum,
	CropStageEnum,
	CropTypeEnum,
	DataSourceEnum,
	ImpactLevelEnum,
	IrrigationTypeEnum,
)
from croptwin.schemas.environment import FarmerObservation, SimulationResult, SoilSnapshot, WeatherSnapshot
from croptwin.schemas.twin import FarmConfiguration, FarmTwinRead, Location
from croptwin.services.change_log_cache import ChangeLogCache
from croptwin.services.twin_state import TwinStateCoordinator
from croptwin.store.memory import InMemoryTwinStore

# ── Lifecycle ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_twin_seeds_default_state(created_twin: FarmTwinRead, clock) -> None:
	state = created_twin.current_state

	assert created_twin.twin_id.startswith("twin_")
	assert created_twin.version == 1
	assert state.days_after_planting == 30
	assert state.crop_stage == CropStageEnum.vegetative
	assert state.predicted_yield == 8000.0
	assert state.confidence_level == 0.5
	assert state.stress_indicators.water_stress == 0.3
	assert state.stress_indicators.disease_risk == 0.15
	assert state.data_quality.overall_quality_score == 0.6
	assert created_twin.metadata.tags == ["rice", "Guntur"]
	assert created_twin.metadata.data_sources_used == ["farmer_input"]
	assert created_twin.metadata.calibration_status == CalibrationStatusEnum.pending
	assert created_twin.created_at == clock.now


@pytest.mark.asyncio
async def test_create_twin_planted_in_future_starts_at_zero(
	coordinator: TwinStateCoordinator,
	location: Location,
	rice_config: FarmConfiguration,
	clock,
) -> None:
	config = rice_config.model_copy(update={"planting_date": clock.now + timedelta(days=20)})
	twin = await coordinator.create_twin("farmer-2", location, config)

	assert twin.current_state.days_after_planting == 0
	assert twin.current_state.crop_stage == CropStageEnum.germination


@pytest.mark.asyncio
async def test_create_twin_reports_every_error(
	coordinator: TwinStateCoordinator,
	location: Location,
	rice_config: FarmConfiguration,
	store: InMemoryTwinStore,
) -> None:
	config = rice_config.model_copy(update={"farm_size": 0.0, "variety_name": ""})

	with pytest.raises(ValidationFailed) as exc_info:
		await coordinator.create_twin("farmer-1", location, config)

	assert len(exc_info.value.errors) == 2
	assert store._twins == {}


@pytest.mark.asyncio
async def test_unknown_twin(coordinator: TwinStateCoordinator) -> None:
	with pytest.raises(TwinNotFound):
		await coordinator.get_twin("twin_missing")
	with pytest.raises(TwinNotFound):
		await coordinator.batch_update("twin_missing", {"farm_size": 3.0})


# ── State updates ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_state_replaces_state_and_records_history(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
	clock,
) -> None:
	clock.advance(hours=6)
	result = await coordinator.update_state(created_twin.twin_id, make_weather(temperature=28.0), soil)

	assert result.updated
	assert result.decision is None
	state = result.new_state
	assert state.days_after_planting == 31
	assert state.crop_stage == CropStageEnum.vegetative
	assert state.predicted_yield == 3000
	assert state.confidence_level == 0.9
	assert state.stress_indicators.water_stress == 0.7
	assert state.stress_indicators.nutrient_stress == 0.2
	assert state.data_quality.weather_data_freshness == 0
	assert state.data_quality.overall_quality_score == pytest.approx(0.9)

	stored = await coordinator.get_twin(created_twin.twin_id)
	assert stored.version == 2
	assert stored.current_state == state

	(record,) = await store.list_history(created_twin.twin_id)
	assert record.farm_state == created_twin.current_state
	assert record.data_source == DataSourceEnum.weather
	assert record.change_reason == "Scheduled state update"
	assert record.timestamp == clock.now


@pytest.mark.asyncio
async def test_trigger_check_skips_calm_weather(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
) -> None:
	result = await coordinator.process_weather_update(created_twin.twin_id, make_weather(temperature=25.0), soil)

	assert not result.updated
	assert result.reason == "No significant changes detected"
	assert (await coordinator.get_twin(created_twin.twin_id)).version == 1


@pytest.mark.asyncio
async def test_trigger_check_applies_on_heavy_rain(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
) -> None:
	result = await coordinator.process_weather_update(
		created_twin.twin_id, make_weather(temperature=25.0, rain_mm=(15.0, 12.0)), soil
	)

	assert result.updated
	assert result.reason == "Heavy precipitation detected"
	assert result.decision.triggers == ["heavy_rainfall_forecast"]
	assert result.new_state.stress_indicators.water_stress == 0.3
	(record,) = await store.list_history(created_twin.twin_id)
	assert record.change_reason == "Heavy precipitation detected"


@pytest.mark.asyncio
async def test_history_failure_does_not_block_update(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	monkeypatch.setattr(store, "append", AsyncMock(side_effect=PersistenceFailure("disk full")))

	result = await coordinator.update_state(created_twin.twin_id, make_weather(), soil)

	assert result.updated
	assert (await coordinator.get_twin(created_twin.twin_id)).version == 2


@pytest.mark.asyncio
async def test_predict_growth_uses_default_horizon(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
) -> None:
	prediction = await coordinator.predict_growth(created_twin.twin_id, make_weather(), soil)

	assert prediction.twin_id == created_twin.twin_id
	assert prediction.time_horizon == 30
	assert [item.stage for item in prediction.predicted_stages] == [CropStageEnum.vegetative]


# ── Batch updates ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_batch_update_dry_run_does_not_write(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
) -> None:
	result = await coordinator.batch_update(created_twin.twin_id, {"crop_type": "wheat"}, validate_only=True)

	assert not result.applied
	assert result.validation.impact == ImpactLevelEnum.high
	assert result.updated_fields == ["crop_type"]
	assert result.recalculation_plan == ["full_recalculation"]
	assert await coordinator.get_twin(created_twin.twin_id) == created_twin
	assert await store.list_changes(created_twin.twin_id) == []


@pytest.mark.asyncio
async def test_batch_update_rejects_whole_batch(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
) -> None:
	with pytest.raises(ValidationFailed) as exc_info:
		await coordinator.batch_update(
			created_twin.twin_id,
			{"variety_name": "Swarna", "farm_size": 0, "irrigation_type": "bucket"},
		)

	assert exc_info.value.errors == [
		"Farm size must be between 0 and 1000 hectares",
		"Invalid irrigation type: bucket",
	]
	assert await coordinator.get_twin(created_twin.twin_id) == created_twin


@pytest.mark.asyncio
async def test_batch_update_applies_changes_and_decays_confidence(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
) -> None:
	result = await coordinator.batch_update(created_twin.twin_id, {"irrigation_type": "drip", "farm_size": 2.2})

	assert result.applied
	assert result.updated_fields == ["farm_size", "irrigation_type"]
	assert [change.impact for change in result.applied_changes] == [ImpactLevelEnum.low, ImpactLevelEnum.medium]
	assert result.applied_changes[1].old_value == "flood"
	assert result.applied_changes[1].new_value == "drip"
	assert result.recalculation_plan == ["yield_recalculation", "stress_recalculation"]
	assert result.confidence_level == pytest.approx(0.4)
	assert result.rollback.applied_version == 2
	assert result.rollback.original_configuration == created_twin.farm_configuration

	stored = await coordinator.get_twin(created_twin.twin_id)
	assert stored.farm_configuration.irrigation_type == IrrigationTypeEnum.drip
	assert stored.current_state.confidence_level == pytest.approx(0.4)
	assert stored.metadata.calibration_status == CalibrationStatusEnum.pending

	(record,) = await store.list_history(created_twin.twin_id)
	assert record.data_source == DataSourceEnum.configuration
	assert record.change_reason == "Configuration update: farm_size, irrigation_type"
	assert record.farm_state.confidence_level == 0.5
	assert len(await store.list_changes(created_twin.twin_id)) == 2


@pytest.mark.asyncio
async def test_high_impact_batch_needs_recalibration(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
) -> None:
	result = await coordinator.batch_update(created_twin.twin_id, {"crop_type": CropTypeEnum.wheat})

	stored = await coordinator.get_twin(created_twin.twin_id)
	assert result.confidence_level == pytest.approx(0.2)
	assert stored.farm_configuration.crop_type == CropTypeEnum.wheat
	assert stored.metadata.calibration_status == CalibrationStatusEnum.needs_recalibration


@pytest.mark.asyncio
async def test_confidence_decay_is_clamped(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
) -> None:
	planting = created_twin.farm_configuration.planting_date - timedelta(days=40)
	result = await coordinator.batch_update(
		created_twin.twin_id,
		{
			"crop_type": "maize",
			"planting_date": planting,
			"farm_size": 4.0,
			"soil_type": "clay",
			"irrigation_type": "sprinkler",
		},
	)

	assert result.confidence_level == 0.0
	assert (await coordinator.get_twin(created_twin.twin_id)).current_state.confidence_level == 0.0


@pytest.mark.asyncio
async def test_batch_with_identical_values_is_not_applied(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
) -> None:
	result = await coordinator.batch_update(created_twin.twin_id, {"irrigation_type": "flood", "variety_name": "IR64"})

	assert not result.applied
	assert result.applied_changes == []
	assert (await coordinator.get_twin(created_twin.twin_id)).version == 1


@pytest.mark.asyncio
async def test_resubmitting_a_naive_planting_date_is_not_applied(
	coordinator: TwinStateCoordinator,
	location: Location,
	rice_config: FarmConfiguration,
	store: InMemoryTwinStore,
) -> None:
	config = FarmConfiguration(**{**rice_config.model_dump(), "planting_date": datetime(2026, 5, 2)})
	twin = await coordinator.create_twin("farmer-1", location, config)
	assert twin.farm_configuration.planting_date == datetime(2026, 5, 2, tzinfo=UTC)

	result = await coordinator.batch_update(twin.twin_id, {"planting_date": datetime(2026, 5, 2)})

	assert not result.applied
	assert (await coordinator.get_twin(twin.twin_id)).version == 1
	assert await store.list_changes(twin.twin_id) == []
	assert await store.list_history(twin.twin_id) == []


@pytest.mark.asyncio
async def test_stale_writer_gets_conflict_and_store_is_unchanged(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	await coordinator.update_state(created_twin.twin_id, make_weather(), soil)
	current_get = store.get
	before = await current_get(created_twin.twin_id)

	monkeypatch.setattr(store, "get", AsyncMock(return_value=created_twin))
	with pytest.raises(ConcurrencyConflict):
		await coordinator.batch_update(created_twin.twin_id, {"farm_size": 3.0})

	assert await current_get(created_twin.twin_id) == before
	assert await store.list_changes(created_twin.twin_id) == []


@pytest.mark.asyncio
async def test_restore_configuration(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
) -> None:
	result = await coordinator.batch_update(created_twin.twin_id, {"crop_type": CropTypeEnum.wheat})
	assert result.rollback.original_confidence_level == 0.5
	assert result.rollback.original_calibration_status == CalibrationStatusEnum.pending

	restored = await coordinator.restore_configuration(created_twin.twin_id, result.rollback)

	assert restored.farm_configuration == created_twin.farm_configuration
	assert restored.version == 3
	assert restored.current_state.confidence_level == 0.5
	assert restored.metadata.calibration_status == CalibrationStatusEnum.pending
	history = await coordinator.get_parameter_change_history(created_twin.twin_id)
	assert [(change.old_value, change.new_value) for change in history] == [("rice", "wheat"), ("wheat", "rice")]

	batch_record, restore_record = await store.list_history(created_twin.twin_id)
	assert restore_record.data_source == DataSourceEnum.configuration
	assert restore_record.change_reason == "Configuration restored: crop_type"
	assert restore_record.farm_state.confidence_level == pytest.approx(0.2)


@pytest.mark.asyncio
async def test_restore_after_later_write_conflicts(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
) -> None:
	first = await coordinator.batch_update(created_twin.twin_id, {"soil_type": "clay"})
	await coordinator.batch_update(created_twin.twin_id, {"variety_name": "Swarna"})

	with pytest.raises(ConcurrencyConflict):
		await coordinator.restore_configuration(created_twin.twin_id, first.rollback)


# ── History ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_farm_state_history_is_newest_first_and_windowed(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
	clock,
) -> None:
	await coordinator.update_state(created_twin.twin_id, make_weather(), soil)
	clock.advance(hours=1)
	await coordinator.update_state(created_twin.twin_id, make_weather(), soil)

	view = await coordinator.get_farm_state(created_twin.twin_id, include_history=True)
	assert [record.farm_state.days_after_planting for record in view.historical_data] == [31, 30]
	assert view.current_state.days_after_planting == 32

	assert (await coordinator.get_farm_state(created_twin.twin_id)).historical_data is None

	clock.advance(days=10)
	old = await coordinator.get_farm_state(created_twin.twin_id, include_history=True, history_days=7)
	assert old.historical_data == []


@pytest.mark.asyncio
async def test_historical_trends(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	make_weather: Callable[..., WeatherSnapshot],
	soil: SoilSnapshot,
	clock,
) -> None:
	await coordinator.update_state(created_twin.twin_id, make_weather(), soil)
	clock.advance(hours=1)
	await coordinator.update_state(created_twin.twin_id, make_weather(), soil)

	trends = await coordinator.get_historical_trends(created_twin.twin_id, days=7)

	assert trends.days == 7
	assert [point.value for point in trends.yield_trend] == [8000.0, 3000.0]
	assert [point.value for point in trends.stress_trends.water] == [0.3, 0.7]
	assert trends.stage_durations == {"vegetative": 2}


@pytest.mark.asyncio
async def test_change_history_prefers_cache_and_falls_back_to_store(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	engine,
	settings,
	fake_redis,
	clock,
) -> None:
	await coordinator.batch_update(created_twin.twin_id, {"soil_type": "clay"})
	assert len(await coordinator.get_parameter_change_history(created_twin.twin_id)) == 1
	fake_redis.lrange.assert_awaited()

	fake_redis.lists.clear()
	cold = TwinStateCoordinator(store, engine, change_log_cache=ChangeLogCache(fake_redis), settings=settings)
	history = await cold.get_parameter_change_history(created_twin.twin_id)
	assert [change.parameter for change in history] == ["soil_type"]
	assert fake_redis.lists  # repopulated from the store

	clock.advance(days=3)
	assert await cold.get_parameter_change_history(created_twin.twin_id, days=1) == []


@pytest.mark.asyncio
async def test_change_history_survives_cache_expiry_between_writes(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	fake_redis,
) -> None:
	await coordinator.batch_update(created_twin.twin_id, {"variety_name": "Swarna"})
	await coordinator.get_parameter_change_history(created_twin.twin_id)
	fake_redis.lists.clear()
	await coordinator.batch_update(created_twin.twin_id, {"variety_name": "Sona"})

	history = await coordinator.get_parameter_change_history(created_twin.twin_id)

	assert [change.new_value for change in history] == ["Swarna", "Sona"]


@pytest.mark.asyncio
async def test_change_log_longer_than_cache_is_read_from_store(
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	engine,
	settings,
	fake_redis,
) -> None:
	bounded = TwinStateCoordinator(
		store, engine, change_log_cache=ChangeLogCache(fake_redis, max_entries=2), settings=settings
	)
	for variety in ("Swarna", "Sona", "Pusa"):
		await bounded.batch_update(created_twin.twin_id, {"variety_name": variety})

	first = await bounded.get_parameter_change_history(created_twin.twin_id)
	second = await bounded.get_parameter_change_history(created_twin.twin_id)

	assert [change.new_value for change in first] == ["Swarna", "Sona", "Pusa"]
	assert second == first
	assert fake_redis.lists == {}


# ── Farmer and simulation observations ──────────────────────────────────────


@pytest.mark.asyncio
async def test_farmer_observation_overrides_stress(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	clock,
) -> None:
	clock.advance(hours=2)
	observation = FarmerObservation(observed_at=clock.now, water_stress=1.4, pest_risk=0.6)

	result = await coordinator.record_farmer_observation(created_twin.twin_id, observation)

	stress = result.new_state.stress_indicators
	assert result.updated
	assert result.reason == "Data update from farmer"
	assert stress.water_stress == 1.0
	assert stress.pest_risk == 0.6
	assert stress.heat_stress == 0.2
	assert stress.last_updated == clock.now
	assert result.new_state.predicted_yield == created_twin.current_state.predicted_yield
	assert result.new_state.data_quality.farmer_input_recency == 0
	assert result.new_state.data_quality.overall_quality_score == pytest.approx(0.55)
	assert (await coordinator.get_twin(created_twin.twin_id)).version == 2

	(record,) = await store.list_history(created_twin.twin_id)
	assert record.data_source == DataSourceEnum.farmer
	assert record.farm_state == created_twin.current_state


@pytest.mark.asyncio
async def test_simulation_result_replaces_yield_and_confidence(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	store: InMemoryTwinStore,
	clock,
) -> None:
	result = await coordinator.apply_simulation_result(
		created_twin.twin_id,
		SimulationResult(produced_at=clock.now, model="dssat", predicted_yield=7200.0, confidence=1.3),
	)

	assert result.new_state.predicted_yield == 7200.0
	assert result.new_state.confidence_level == 1.0
	assert result.new_state.stress_indicators == created_twin.current_state.stress_indicators

	(record,) = await store.list_history(created_twin.twin_id)
	assert record.data_source == DataSourceEnum.simulation
	assert record.change_reason == "Data update from simulation"


@pytest.mark.asyncio
async def test_simulation_result_without_values_keeps_yield(
	coordinator: TwinStateCoordinator,
	created_twin: FarmTwinRead,
	clock,
) -> None:
	result = await coordinator.apply_simulation_result(created_twin.twin_id, SimulationResult(produced_at=clock.now))

	assert result.new_state.predicted_yield == 8000.0
	assert result.new_state.confidence_level == 0.5
