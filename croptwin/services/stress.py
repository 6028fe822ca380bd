"""Stress indicator scoring.

Each indicator is a two-level step function over a single signal.  The levels
are part of the contract with advisory consumers and are not interpolated.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from croptwin.schemas.environment import SatelliteSnapshot, SoilSnapshot, WeatherSnapshot
from croptwin.schemas.twin import StressIndicators

WATER_PRECIPITATION_THRESHOLD_MM = 20.0
WATER_STRESS_DRY = 0.7
WATER_STRESS_WET = 0.3

HEAT_TEMPERATURE_THRESHOLD_C = 40.0
HEAT_STRESS_EXTREME = 1.0
HEAT_STRESS_NORMAL = 0.3

NITROGEN_THRESHOLD_KG_HA = 200.0
NUTRIENT_STRESS_DEFICIENT = 0.6
NUTRIENT_STRESS_ADEQUATE = 0.2

# No pest/disease surveillance feed yet.
PEST_RISK_PLACEHOLDER = 0.3
DISEASE_RISK_PLACEHOLDER = 0.3


def _utcnow() -> datetime:
	return datetime.now(UTC)


class StressIndicatorCalculator:
	def __init__(self, clock: Callable[[], datetime] = _utcnow):
		self.clock = clock

	def calculate(
		self,
		weather: WeatherSnapshot,
		soil: SoilSnapshot,
		satellite: SatelliteSnapshot | None = None,
	) -> StressIndicators:
		# satellite is accepted for interface stability; no indicator reads it yet.
		del satellite

		precipitation = weather.forecast_precipitation_mm
		temperature = weather.current.temperature
		nitrogen = soil.soil_properties.nitrogen

		return StressIndicators(
			water_stress=WATER_STRESS_DRY if precipitation < WATER_PRECIPITATION_THRESHOLD_MM else WATER_STRESS_WET,
			heat_stress=HEAT_STRESS_EXTREME if temperature > HEAT_TEMPERATURE_THRESHOLD_C else HEAT_STRESS_NORMAL,
			nutrient_stress=(
				NUTRIENT_STRESS_DEFICIENT if nitrogen < NITROGEN_THRESHOLD_KG_HA else NUTRIENT_STRESS_ADEQUATE
			),
			pest_risk=PEST_RISK_PLACEHOLDER,
			disease_risk=DISEASE_RISK_PLACEHOLDER,
			last_updated=self.clock(),
		)
