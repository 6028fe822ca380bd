"""Static crop-parameter table and per-crop yield baselines.

The table is built once and handed to the engine as a read-only mapping;
tests inject their own.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from croptwin.errors import UnsupportedCropType
from croptwin.models.enums import CropStageEnum, CropTypeEnum
from croptwin.schemas.crops import CropGrowthParameters, NutrientRequirement, YieldPotential

CropParameterTable = Mapping[CropTypeEnum, CropGrowthParameters]

_DEFAULT_PROFILE = CropGrowthParameters(
	base_temperature=10.0,
	optimal_temperature_min=20.0,
	optimal_temperature_max=30.0,
	max_temperature=40.0,
	water_requirement=4.0,
	critical_water_stages=frozenset({CropStageEnum.flowering}),
	nutrient_requirement=NutrientRequirement(n=100, p=50, k=40),
	growth_duration={
		CropStageEnum.germination: 10,
		CropStageEnum.vegetative: 50,
		CropStageEnum.flowering: 30,
		CropStageEnum.fruiting: 25,
		CropStageEnum.grain_filling: 35,
		CropStageEnum.maturity: 15,
		CropStageEnum.harvest_ready: 5,
	},
	yield_potential=YieldPotential(min=1000, max=5000, optimal=3000),
)

# kg/ha, used only to seed predicted_yield on a freshly created twin.
INITIAL_YIELD_KG_PER_HA: Mapping[CropTypeEnum, float] = MappingProxyType(
	{
		CropTypeEnum.rice: 4000,
		CropTypeEnum.wheat: 3500,
		CropTypeEnum.maize: 5000,
		CropTypeEnum.cotton: 1500,
		CropTypeEnum.sugarcane: 70000,
		CropTypeEnum.soybean: 2500,
		CropTypeEnum.groundnut: 2000,
		CropTypeEnum.pulses: 1500,
		CropTypeEnum.vegetables: 25000,
		CropTypeEnum.fruits: 15000,
	}
)
DEFAULT_INITIAL_YIELD_KG_PER_HA = 3000.0


def default_crop_parameters() -> CropParameterTable:
	"""Every registered crop shares the generic profile until calibrated."""
	return MappingProxyType({crop_type: _DEFAULT_PROFILE for crop_type in CropTypeEnum})


def require_parameters(table: CropParameterTable, crop_type: CropTypeEnum | str) -> CropGrowthParameters:
	try:
		return table[CropTypeEnum(crop_type)]
	except (KeyError, ValueError) as exc:
		raise UnsupportedCropType(crop_type) from exc


def estimate_initial_yield(crop_type: CropTypeEnum, farm_size: float) -> float:
	baseline = INITIAL_YIELD_KG_PER_HA.get(crop_type, DEFAULT_INITIAL_YIELD_KG_PER_HA)
	return baseline * farm_size
