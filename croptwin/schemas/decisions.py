"""Pydantic schemas for change-impact, update-trigger and coordinator results."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from croptwin.models.enums import CalibrationStatusEnum, ImpactLevelEnum, UrgencyEnum
from croptwin.schemas.twin import FarmConfiguration, FarmState, ParameterChange


class ValidationResult(BaseModel):
	model_config = ConfigDict(frozen=True)

	is_valid: bool
	errors: list[str] = Field(default_factory=list)
	warnings: list[str] = Field(default_factory=list)
	impact: ImpactLevelEnum = ImpactLevelEnum.low


class ChangeImpact(BaseModel):
	model_config = ConfigDict(frozen=True)

	impact: ImpactLevelEnum
	affected_predictions: list[str] = Field(default_factory=list)
	affected_systems: list[str] = Field(default_factory=list)
	confidence: float = Field(ge=0, le=1)
	recalculation_needed: bool = False
	estimated_confidence_change: float = 0.0


class UpdateDecision(BaseModel):
	model_config = ConfigDict(frozen=True)

	should_update: bool
	reason: str
	urgency: UrgencyEnum
	triggers: list[str] = Field(default_factory=list)


class RollbackSnapshot(BaseModel):
	"""Pre-change configuration, confidence and calibration status, plus the twin version the batch produced."""

	model_config = ConfigDict(frozen=True)

	twin_id: str
	original_configuration: FarmConfiguration
	original_confidence_level: float | None = Field(default=None, ge=0, le=1)
	original_calibration_status: CalibrationStatusEnum | None = None
	applied_version: int
	captured_at: datetime


class BatchUpdateResult(BaseModel):
	applied: bool
	validation: ValidationResult
	updated_fields: list[str] = Field(default_factory=list)
	applied_changes: list[ParameterChange] = Field(default_factory=list)
	recalculation_plan: list[str] = Field(default_factory=list)
	confidence_level: float | None = None
	rollback: RollbackSnapshot | None = None


class StateUpdateResult(BaseModel):
	updated: bool
	reason: str
	decision: UpdateDecision | None = None
	new_state: FarmState | None = None


class TrendPoint(BaseModel):
	date: datetime
	value: float


class StressTrends(BaseModel):
	water: list[TrendPoint] = Field(default_factory=list)
	heat: list[TrendPoint] = Field(default_factory=list)
	nutrient: list[TrendPoint] = Field(default_factory=list)


class HistoricalTrends(BaseModel):
	twin_id: str
	days: int
	yield_trend: list[TrendPoint] = Field(default_factory=list)
	stress_trends: StressTrends = Field(default_factory=StressTrends)
	stage_durations: dict[str, int] = Field(default_factory=dict)
