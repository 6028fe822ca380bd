"""Forward projection of stage sequence, yield and risks over a horizon."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from croptwin.models.enums import STAGE_ORDER, RiskTypeEnum, is_critical_stage
from croptwin.schemas.environment import SoilSnapshot, WeatherSnapshot
from croptwin.schemas.prediction import GrowthPrediction, PredictedStage, RiskFactor
from croptwin.schemas.twin import FarmTwinRead
from croptwin.services.crop_parameters import CropParameterTable, require_parameters
from croptwin.services.yield_forecast import YieldForecastModel

CRITICAL_STAGE_CONFIDENCE = 0.8
STAGE_CONFIDENCE = 0.9
PREDICTION_CONFIDENCE = 0.75

HEAT_RISK_SEVERITY = 0.8
BASELINE_WEATHER_RISK_SEVERITY = 0.3
WEATHER_RISK_PROBABILITY = 0.6
WATER_RISK_PROBABILITY = 0.7


def _utcnow() -> datetime:
	return datetime.now(UTC)


class GrowthPredictionProjector:
	def __init__(
		self,
		crop_parameters: CropParameterTable,
		yield_model: YieldForecastModel,
		clock: Callable[[], datetime] = _utcnow,
	):
		self.crop_parameters = crop_parameters
		self.yield_model = yield_model
		self.clock = clock

	def project(
		self,
		twin: FarmTwinRead,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		horizon_days: int,
	) -> GrowthPrediction:
		if horizon_days < 0:
			raise ValueError("horizon_days must be >= 0")

		config = twin.farm_configuration
		params = require_parameters(self.crop_parameters, config.crop_type)
		temperature = weather.current.temperature
		now = self.clock()

		stages: list[PredictedStage] = []
		cursor = now
		remaining = horizon_days
		start_index = STAGE_ORDER.index(twin.current_state.crop_stage)
		for stage in STAGE_ORDER[start_index:]:
			if remaining <= 0:
				break
			consumed = min(params.stage_duration(stage), remaining)
			end = cursor + timedelta(days=consumed)
			stages.append(
				PredictedStage(
					stage=stage,
					expected_start_date=cursor,
					expected_end_date=end,
					confidence=CRITICAL_STAGE_CONFIDENCE if is_critical_stage(stage) else STAGE_CONFIDENCE,
				)
			)
			cursor = end
			remaining -= consumed

		risk_factors = [
			RiskFactor(
				type=RiskTypeEnum.weather,
				severity=HEAT_RISK_SEVERITY if temperature > params.max_temperature else BASELINE_WEATHER_RISK_SEVERITY,
				probability=WEATHER_RISK_PROBABILITY,
				timeframe="next 7 days",
				description="Temperature stress risk",
			),
			RiskFactor(
				type=RiskTypeEnum.water,
				severity=twin.current_state.stress_indicators.water_stress,
				probability=WATER_RISK_PROBABILITY,
				timeframe="next 14 days",
				description="Water stress risk",
			),
		]

		return GrowthPrediction(
			twin_id=twin.twin_id,
			prediction_date=now,
			time_horizon=horizon_days,
			predicted_stages=stages,
			yield_forecast=self.yield_model.forecast(config, temperature),
			risk_factors=risk_factors,
			confidence=PREDICTION_CONFIDENCE,
		)
