"""Pydantic schemas for per-crop growth parameters."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from croptwin.models.enums import STAGE_ORDER, CropStageEnum


class NutrientRequirement(BaseModel):
	model_config = ConfigDict(frozen=True)

	n: float = Field(ge=0)
	p: float = Field(ge=0)
	k: float = Field(ge=0)


class YieldPotential(BaseModel):
	model_config = ConfigDict(frozen=True)

	min: float = Field(ge=0)
	max: float = Field(ge=0)
	optimal: float = Field(ge=0)


class CropGrowthParameters(BaseModel):
	"""Agronomic profile of one crop type.

	``growth_duration`` maps every stage to its length in days; iteration
	always follows ``STAGE_ORDER``, never dict order.
	"""

	model_config = ConfigDict(frozen=True)

	base_temperature: float
	optimal_temperature_min: float
	optimal_temperature_max: float
	max_temperature: float
	water_requirement: float = Field(ge=0, description="mm/day")
	critical_water_stages: frozenset[CropStageEnum] = frozenset()
	nutrient_requirement: NutrientRequirement
	growth_duration: dict[CropStageEnum, int]
	yield_potential: YieldPotential

	def stage_duration(self, stage: CropStageEnum) -> int:
		return self.growth_duration.get(stage, 0)

	def ordered_durations(self) -> list[tuple[CropStageEnum, int]]:
		return [(stage, self.stage_duration(stage)) for stage in STAGE_ORDER]

	@property
	def total_duration(self) -> int:
		return sum(duration for _, duration in self.ordered_durations())
