"""Crop lifecycle stage resolution from elapsed days."""

from __future__ import annotations

from croptwin.models.enums import STAGE_ORDER
from croptwin.schemas.prediction import StageResolution
from croptwin.schemas.twin import FarmConfiguration
from croptwin.services.crop_parameters import CropParameterTable, require_parameters

IN_RANGE_CONFIDENCE = 0.9
OUT_OF_RANGE_CONFIDENCE = 0.6


class GrowthStageResolver:
	def __init__(self, crop_parameters: CropParameterTable):
		self.crop_parameters = crop_parameters

	def resolve(
		self,
		config: FarmConfiguration,
		current_temperature: float,
		days_after_planting: int,
	) -> StageResolution:
		"""Return the first stage whose cumulative end day covers ``days_after_planting``.

		Past the crop's total duration the final stage is returned.  Confidence
		only reflects whether today's temperature sits in the optimal band.
		"""
		params = require_parameters(self.crop_parameters, config.crop_type)

		stage = STAGE_ORDER[-1]
		elapsed = 0
		for candidate, duration in params.ordered_durations():
			elapsed += duration
			if days_after_planting <= elapsed:
				stage = candidate
				break

		in_range = params.optimal_temperature_min <= current_temperature <= params.optimal_temperature_max
		return StageResolution(
			stage=stage,
			confidence=IN_RANGE_CONFIDENCE if in_range else OUT_OF_RANGE_CONFIDENCE,
		)
