"""Decides whether a fresh weather snapshot warrants recomputing a twin."""

from __future__ import annotations

from croptwin.models.enums import CropStageEnum, UrgencyEnum, escalate_urgency, is_critical_stage
from croptwin.schemas.decisions import UpdateDecision
from croptwin.schemas.environment import WeatherSnapshot

BASELINE_TEMPERATURE_C = 25.0
EXTREME_TEMPERATURE_C = 40.0
NO_CHANGE_REASON = "No significant changes detected"


class UpdateTriggerPolicy:
	def __init__(self, temperature_threshold: float = 5.0, precipitation_threshold: float = 20.0):
		self.temperature_threshold = temperature_threshold
		self.precipitation_threshold = precipitation_threshold

	def should_update(
		self,
		new_weather: WeatherSnapshot,
		current_stage: CropStageEnum | None = None,
	) -> UpdateDecision:
		"""Evaluate temperature, precipitation and stage triggers in that order.

		Urgency is the most severe level any trigger asked for.  The reason is
		taken from the last trigger that fired.
		"""
		triggers: list[str] = []
		urgency = UrgencyEnum.low
		reason = NO_CHANGE_REASON
		critical = is_critical_stage(current_stage)

		temperature = new_weather.current.temperature
		if abs(temperature - BASELINE_TEMPERATURE_C) > self.temperature_threshold:
			if temperature > EXTREME_TEMPERATURE_C:
				triggers.append("extreme_temperature")
				urgency = escalate_urgency(urgency, UrgencyEnum.high)
			else:
				triggers.append("temperature_change")
				urgency = escalate_urgency(urgency, UrgencyEnum.medium)
			reason = "Significant temperature change detected"

		if new_weather.forecast_precipitation_mm > self.precipitation_threshold:
			triggers.append("heavy_rainfall_forecast")
			urgency = escalate_urgency(urgency, UrgencyEnum.high if critical else UrgencyEnum.medium)
			reason = "Heavy precipitation detected"

		if critical:
			triggers.append("critical_growth_stage")
			urgency = escalate_urgency(urgency, UrgencyEnum.medium)
			reason = "Crop in critical growth stage"

		return UpdateDecision(
			should_update=bool(triggers),
			reason=reason,
			urgency=urgency,
			triggers=triggers,
		)
