"""Pydantic schemas for computed (non-persisted) growth outputs."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from croptwin.models.enums import CropStageEnum, RiskTypeEnum


class StageResolution(BaseModel):
	model_config = ConfigDict(frozen=True)

	stage: CropStageEnum
	confidence: float = Field(ge=0, le=1)


class YieldFactor(BaseModel):
	model_config = ConfigDict(frozen=True)

	factor: str
	impact: float = Field(ge=-1, le=1, description="negative reduces yield")
	confidence: float = Field(ge=0, le=1)


class YieldForecast(BaseModel):
	model_config = ConfigDict(frozen=True)

	expected_yield: int = Field(ge=0)
	min_yield: int = Field(ge=0)
	max_yield: int = Field(ge=0)
	confidence: float = Field(ge=0, le=1)
	factors: list[YieldFactor] = Field(default_factory=list)


class PredictedStage(BaseModel):
	model_config = ConfigDict(frozen=True)

	stage: CropStageEnum
	expected_start_date: datetime
	expected_end_date: datetime
	confidence: float = Field(ge=0, le=1)


class RiskFactor(BaseModel):
	model_config = ConfigDict(frozen=True)

	type: RiskTypeEnum
	severity: float = Field(ge=0, le=1)
	probability: float = Field(ge=0, le=1)
	timeframe: str
	description: str


class GrowthPrediction(BaseModel):
	model_config = ConfigDict(frozen=True)

	twin_id: str
	prediction_date: datetime
	time_horizon: int = Field(ge=0, description="days")
	predicted_stages: list[PredictedStage] = Field(default_factory=list)
	yield_forecast: YieldForecast
	risk_factors: list[RiskFactor] = Field(default_factory=list)
	confidence: float = Field(ge=0, le=1)
