"""Pure computation facade over the twin services.

Owns the crop-parameter table and hands the same mapping to every service so
that an injected table is seen consistently.  Nothing here touches storage.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from croptwin.config import Settings, get_settings
from croptwin.models.enums import CropStageEnum, CropTypeEnum
from croptwin.schemas.decisions import ChangeImpact, UpdateDecision, ValidationResult
from croptwin.schemas.environment import SatelliteSnapshot, SoilSnapshot, WeatherSnapshot
from croptwin.schemas.prediction import GrowthPrediction, StageResolution, YieldForecast
from croptwin.schemas.twin import FarmConfiguration, FarmTwinRead, StressIndicators
from croptwin.services.change_impact import ChangeImpactClassifier
from croptwin.services.crop_parameters import CropParameterTable, default_crop_parameters
from croptwin.services.growth_projection import GrowthPredictionProjector
from croptwin.services.growth_stage import GrowthStageResolver
from croptwin.services.stress import StressIndicatorCalculator
from croptwin.services.update_trigger import UpdateTriggerPolicy
from croptwin.services.yield_forecast import YieldForecastModel


def _utcnow() -> datetime:
	return datetime.now(UTC)


class CropTwinEngine:
	def __init__(
		self,
		crop_parameters: CropParameterTable | None = None,
		settings: Settings | None = None,
		clock: Callable[[], datetime] = _utcnow,
	):
		settings = settings or get_settings()
		self.crop_parameters = crop_parameters if crop_parameters is not None else default_crop_parameters()
		self.clock = clock
		self.stage_resolver = GrowthStageResolver(self.crop_parameters)
		self.stress_calculator = StressIndicatorCalculator(clock=clock)
		self.yield_model = YieldForecastModel(self.crop_parameters)
		self.projector = GrowthPredictionProjector(self.crop_parameters, self.yield_model, clock=clock)
		self.classifier = ChangeImpactClassifier(self.crop_parameters, clock=clock)
		self.trigger_policy = UpdateTriggerPolicy(
			temperature_threshold=settings.weather_update_threshold_c,
			precipitation_threshold=settings.precipitation_threshold_mm,
		)

	def resolve_stage(
		self,
		config: FarmConfiguration,
		current_temperature: float,
		days_after_planting: int,
	) -> StageResolution:
		return self.stage_resolver.resolve(config, current_temperature, days_after_planting)

	def calculate_stress_indicators(
		self,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		satellite: SatelliteSnapshot | None = None,
	) -> StressIndicators:
		return self.stress_calculator.calculate(weather, soil, satellite)

	def generate_yield_forecast(self, config: FarmConfiguration, current_temperature: float) -> YieldForecast:
		return self.yield_model.forecast(config, current_temperature)

	def project(
		self,
		twin: FarmTwinRead,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		horizon_days: int,
	) -> GrowthPrediction:
		return self.projector.project(twin, weather, soil, horizon_days)

	def validate(
		self,
		current_config: FarmConfiguration,
		proposed_changes: Mapping[str, Any],
		current_stage: CropStageEnum | None = None,
	) -> ValidationResult:
		return self.classifier.validate(current_config, proposed_changes, current_stage)

	def impact_of(
		self,
		parameter: str,
		old_value: Any,
		new_value: Any,
		crop_type: CropTypeEnum | None = None,
		current_stage: CropStageEnum | None = None,
	) -> ChangeImpact:
		return self.classifier.impact_of(parameter, old_value, new_value, crop_type, current_stage)

	def should_update(
		self,
		new_weather: WeatherSnapshot,
		current_stage: CropStageEnum | None = None,
	) -> UpdateDecision:
		return self.trigger_policy.should_update(new_weather, current_stage)
