"""Compositional yield forecast.

Not a mechanistic simulation: the crop's optimal potential is scaled by a
fixed sequence of multipliers (heat penalty, then drip bonus).
"""

from __future__ import annotations

from croptwin.models.enums import IrrigationTypeEnum
from croptwin.schemas.prediction import YieldFactor, YieldForecast
from croptwin.schemas.twin import FarmConfiguration
from croptwin.services.crop_parameters import CropParameterTable, require_parameters

HEAT_PENALTY_MULTIPLIER = 0.7
DRIP_BONUS_MULTIPLIER = 1.15
MIN_YIELD_RATIO = 0.7
MAX_YIELD_RATIO = 1.3
FORECAST_CONFIDENCE = 0.7


class YieldForecastModel:
	def __init__(self, crop_parameters: CropParameterTable):
		self.crop_parameters = crop_parameters

	def forecast(self, config: FarmConfiguration, current_temperature: float) -> YieldForecast:
		params = require_parameters(self.crop_parameters, config.crop_type)
		value = params.yield_potential.optimal
		factors: list[YieldFactor] = []

		if current_temperature > params.max_temperature:
			value *= HEAT_PENALTY_MULTIPLIER
			factors.append(
				YieldFactor(
					factor="heat_stress",
					impact=round(HEAT_PENALTY_MULTIPLIER - 1, 2),
					confidence=FORECAST_CONFIDENCE,
				)
			)

		if config.irrigation_type == IrrigationTypeEnum.drip:
			value *= DRIP_BONUS_MULTIPLIER
			factors.append(
				YieldFactor(
					factor="drip_irrigation",
					impact=round(DRIP_BONUS_MULTIPLIER - 1, 2),
					confidence=FORECAST_CONFIDENCE,
				)
			)

		# Bounds derive from the unrounded value.
		return YieldForecast(
			expected_yield=round(value),
			min_yield=round(value * MIN_YIELD_RATIO),
			max_yield=round(value * MAX_YIELD_RATIO),
			confidence=FORECAST_CONFIDENCE,
			factors=factors,
		)
