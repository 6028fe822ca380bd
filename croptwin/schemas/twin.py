"""Pydantic schemas for farm twins, their live state and append-only logs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from croptwin.models.enums import (
	CalibrationStatusEnum,
	CropStageEnum,
	CropTypeEnum,
	DataSourceEnum,
	ImpactLevelEnum,
	IrrigationTypeEnum,
	SoilTypeEnum,
)

CONFIGURATION_FIELDS: tuple[str, ...] = (
	"crop_type",
	"variety_name",
	"planting_date",
	"farm_size",
	"irrigation_type",
	"soil_type",
	"expected_harvest_date",
)


class Location(BaseModel):
	model_config = ConfigDict(frozen=True)

	latitude: float = Field(ge=-90, le=90)
	longitude: float = Field(ge=-180, le=180)
	district: str = Field(min_length=1)
	state: str = Field(min_length=1)
	country: str | None = None


class FarmConfiguration(BaseModel):
	"""Farmer-declared plot setup.  Changed only through validated batch updates."""

	model_config = ConfigDict(frozen=True)

	crop_type: CropTypeEnum
	variety_name: str
	planting_date: datetime
	farm_size: float = Field(description="hectares")
	irrigation_type: IrrigationTypeEnum
	soil_type: SoilTypeEnum
	expected_harvest_date: datetime | None = None

	@field_validator("planting_date", "expected_harvest_date")
	@classmethod
	def _assume_utc(cls, value: datetime | None) -> datetime | None:
		"""Naive dates are read as UTC so stored and proposed dates compare equal."""
		if value is not None and value.tzinfo is None:
			return value.replace(tzinfo=UTC)
		return value


class StressIndicators(BaseModel):
	model_config = ConfigDict(frozen=True)

	water_stress: float = Field(ge=0, le=1)
	heat_stress: float = Field(ge=0, le=1)
	nutrient_stress: float = Field(ge=0, le=1)
	pest_risk: float = Field(ge=0, le=1)
	disease_risk: float = Field(ge=0, le=1)
	last_updated: datetime


class DataQualityMetrics(BaseModel):
	model_config = ConfigDict(frozen=True)

	weather_data_freshness: float = Field(ge=0, description="hours since last weather update")
	satellite_data_freshness: float = Field(ge=0, description="days since last satellite update")
	soil_data_availability: bool = False
	farmer_input_recency: float = Field(ge=0, description="days since last farmer input")
	overall_quality_score: float = Field(ge=0, le=1)


class FarmState(BaseModel):
	model_config = ConfigDict(frozen=True)

	crop_stage: CropStageEnum
	days_after_planting: int = Field(ge=0)
	stress_indicators: StressIndicators
	predicted_yield: float = Field(ge=0, description="kg")
	confidence_level: float = Field(ge=0, le=1)
	data_quality: DataQualityMetrics
	last_updated: datetime


class HistoricalRecord(BaseModel):
	"""Prior FarmState captured right before it was superseded."""

	model_config = ConfigDict(frozen=True)

	timestamp: datetime
	farm_state: FarmState
	data_source: DataSourceEnum
	change_reason: str


class ParameterChange(BaseModel):
	model_config = ConfigDict(frozen=True)

	parameter: str
	old_value: Any = None
	new_value: Any = None
	timestamp: datetime
	impact: ImpactLevelEnum
	affected_predictions: list[str] = Field(default_factory=list)


class TwinMetadata(BaseModel):
	model_config = ConfigDict(frozen=True)

	version: str = "1.0"
	data_sources_used: list[str] = Field(default_factory=list)
	simulation_model: str = "basic_crop_model_v1"
	calibration_status: CalibrationStatusEnum = CalibrationStatusEnum.pending
	last_calibration_date: datetime | None = None
	tags: list[str] = Field(default_factory=list)


class FarmTwinRead(BaseModel):
	"""A twin as loaded from the store.  ``version`` guards every write."""

	model_config = ConfigDict(frozen=True)

	twin_id: str
	farmer_id: str
	location: Location
	farm_configuration: FarmConfiguration
	current_state: FarmState
	metadata: TwinMetadata = Field(default_factory=TwinMetadata)
	is_active: bool = True
	created_at: datetime
	last_updated: datetime
	version: int = Field(default=1, ge=1)


class TwinPatch(BaseModel):
	"""Partial twin update; ``None`` leaves the stored value untouched."""

	farm_configuration: FarmConfiguration | None = None
	current_state: FarmState | None = None
	metadata: TwinMetadata | None = None
	last_updated: datetime

	def changed_fields(self) -> list[str]:
		return [
			name
			for name in ("farm_configuration", "current_state", "metadata")
			if getattr(self, name) is not None
		]


class FarmStateView(BaseModel):
	twin_id: str
	farmer_id: str
	location: Location
	farm_configuration: FarmConfiguration
	current_state: FarmState
	metadata: TwinMetadata
	is_active: bool
	last_updated: datetime
	historical_data: list[HistoricalRecord] | None = None
