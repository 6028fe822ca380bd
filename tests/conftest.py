"""Shared pytest fixtures: fixed clock, sample twins and snapshots, storage fakes."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from croptwin.config import Settings
from croptwin.models.enums import CropStageEnum, CropTypeEnum, IrrigationTypeEnum, SoilTypeEnum
from croptwin.schemas.environment import (
	CurrentWeather,
	ForecastDay,
	PrecipitationForecast,
	SoilProperties,
	SoilSnapshot,
	WeatherSnapshot,
)
from croptwin.schemas.twin import FarmConfiguration, FarmState, FarmTwinRead, Location, StressIndicators
from croptwin.services.change_log_cache import ChangeLogCache
from croptwin.services.data_quality import DEFAULT_DATA_QUALITY
from croptwin.services.engine import CropTwinEngine
from croptwin.services.twin_state import TwinStateCoordinator
from croptwin.store.memory import InMemoryTwinStore

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
	def __init__(self, now: datetime) -> None:
		self.now = now

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **kwargs: float) -> None:
		self.now = self.now + timedelta(**kwargs)


class FakeRedis:
	"""List-backed stand-in for the Redis commands the change-log cache issues."""

	def __init__(self) -> None:
		self.lists: dict[str, list[str]] = {}
		self.rpush = AsyncMock(side_effect=self._rpush)
		self.delete = AsyncMock(side_effect=self._delete)
		self.lrange = AsyncMock(side_effect=self._lrange)
		self.expire = AsyncMock(return_value=True)
		self.ping = AsyncMock(return_value=True)
		self.aclose = AsyncMock()

	async def _rpush(self, key: str, *values: str) -> int:
		self.lists.setdefault(key, []).extend(values)
		return len(self.lists[key])

	async def _delete(self, *keys: str) -> int:
		return sum(1 for key in keys if self.lists.pop(key, None) is not None)

	async def _lrange(self, key: str, start: int, end: int) -> list[str]:
		values = self.lists.get(key, [])
		stop = None if end == -1 else end + 1
		return list(values[start:stop])


class FakeAsyncSession:
	def __init__(self) -> None:
		self.added: list[Any] = []
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock()
		self.flush = AsyncMock(side_effect=self._flush)
		self.nested_calls = 0

	def add(self, obj: Any) -> None:
		self.added.append(obj)

	async def _flush(self) -> None:
		for obj in self.added:
			if hasattr(obj, "version") and obj.version is None:
				obj.version = 1

	@asynccontextmanager
	async def begin_nested(self):  # type: ignore[no-untyped-def]
		self.nested_calls += 1
		yield self


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock(NOW)


@pytest.fixture
def settings() -> Settings:
	return Settings(_env_file=None)


@pytest.fixture
def engine(settings: Settings, clock: FakeClock) -> CropTwinEngine:
	return CropTwinEngine(settings=settings, clock=clock)


@pytest.fixture
def location() -> Location:
	return Location(latitude=16.3, longitude=80.45, district="Guntur", state="Andhra Pradesh", country="IN")


@pytest.fixture
def rice_config() -> FarmConfiguration:
	"""Rice planted 30 days before NOW, i.e. in the vegetative stage."""
	return FarmConfiguration(
		crop_type=CropTypeEnum.rice,
		variety_name="IR64",
		planting_date=NOW - timedelta(days=30),
		farm_size=2.0,
		irrigation_type=IrrigationTypeEnum.flood,
		soil_type=SoilTypeEnum.loam,
	)


@pytest.fixture
def make_weather() -> Callable[..., WeatherSnapshot]:
	def _make(temperature: float = 28.0, rain_mm: tuple[float, ...] = ()) -> WeatherSnapshot:
		return WeatherSnapshot(
			timestamp=NOW,
			source="imd",
			current=CurrentWeather(temperature=temperature, humidity=65.0),
			forecast=[
				ForecastDay(
					date=NOW + timedelta(days=index + 1),
					precipitation=PrecipitationForecast(probability=80, amount=amount),
				)
				for index, amount in enumerate(rain_mm)
			],
		)

	return _make


@pytest.fixture
def soil() -> SoilSnapshot:
	return SoilSnapshot(
		source="soil_health_card",
		last_updated=NOW - timedelta(days=60),
		soil_properties=SoilProperties(soil_type="loam", nitrogen=250.0, ph=6.8),
	)


@pytest.fixture
def make_twin(rice_config: FarmConfiguration, location: Location) -> Callable[..., FarmTwinRead]:
	def _make(stage: CropStageEnum = CropStageEnum.vegetative, days_after_planting: int = 30) -> FarmTwinRead:
		return FarmTwinRead(
			twin_id="twin_fixture",
			farmer_id="farmer-1",
			location=location,
			farm_configuration=rice_config,
			current_state=FarmState(
				crop_stage=stage,
				days_after_planting=days_after_planting,
				stress_indicators=StressIndicators(
					water_stress=0.4,
					heat_stress=0.2,
					nutrient_stress=0.25,
					pest_risk=0.1,
					disease_risk=0.15,
					last_updated=NOW,
				),
				predicted_yield=8000.0,
				confidence_level=0.5,
				data_quality=DEFAULT_DATA_QUALITY,
				last_updated=NOW,
			),
			created_at=NOW,
			last_updated=NOW,
		)

	return _make


@pytest.fixture
def store() -> InMemoryTwinStore:
	return InMemoryTwinStore()


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
def coordinator(
	store: InMemoryTwinStore,
	engine: CropTwinEngine,
	settings: Settings,
	fake_redis: FakeRedis,
) -> TwinStateCoordinator:
	cache = ChangeLogCache(fake_redis, ttl_seconds=settings.change_log_cache_ttl_seconds)
	return TwinStateCoordinator(store, engine, change_log_cache=cache, settings=settings)


@pytest.fixture
async def created_twin(
	coordinator: TwinStateCoordinator,
	location: Location,
	rice_config: FarmConfiguration,
) -> FarmTwinRead:
	return await coordinator.create_twin("farmer-1", location, rice_config)


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	return FakeAsyncSession()
