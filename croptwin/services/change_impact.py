"""Validation and impact classification of farm configuration changes.

``validate`` reviews a proposed partial configuration and reports every
violation at once together with a combined impact level.  ``impact_of``
classifies a single field transition with a fixed policy table; its
``estimated_confidence_change`` drives confidence decay on applied batches.
Impact only ever escalates (low < medium < high).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from croptwin.models.enums import (
	CropStageEnum,
	CropTypeEnum,
	ImpactLevelEnum,
	IrrigationTypeEnum,
	SoilTypeEnum,
	escalate_impact,
	is_critical_stage,
)
from croptwin.schemas.decisions import ChangeImpact, ValidationResult
from croptwin.schemas.twin import CONFIGURATION_FIELDS, FarmConfiguration
from croptwin.services.crop_parameters import CropParameterTable

MAX_FARM_SIZE_HA = 1000.0
FARM_SIZE_WARNING_RATIO = 0.5
PLANTING_DATE_MAX_YEARS_AHEAD = 1
PLANTING_DATE_MAX_YEARS_BACK = 2
PLANTING_SHIFT_HIGH_DAYS = 30
PLANTING_SHIFT_MEDIUM_DAYS = 7
FARM_SIZE_HIGH_RATIO = 0.5
FARM_SIZE_MEDIUM_RATIO = 0.2

DEFAULT_CLASSIFIER_CONFIDENCE = 0.8
CROP_TYPE_CLASSIFIER_CONFIDENCE = 0.9
UNKNOWN_PARAMETER_CONFIDENCE = 0.6

_RECALCULATION_PLANS: dict[ImpactLevelEnum, tuple[str, ...]] = {
	ImpactLevelEnum.high: ("full_recalculation",),
	ImpactLevelEnum.medium: ("yield_recalculation", "stress_recalculation"),
	ImpactLevelEnum.low: ("metadata_update",),
}


def _utcnow() -> datetime:
	return datetime.now(UTC)


def coerce_datetime(value: Any) -> datetime | None:
	"""Parse a date-like value into an aware UTC datetime, or ``None`` if it is not one."""
	if isinstance(value, datetime):
		parsed = value
	elif isinstance(value, date):
		parsed = datetime(value.year, value.month, value.day)
	elif isinstance(value, str):
		try:
			parsed = datetime.fromisoformat(value)
		except ValueError:
			return None
	else:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=UTC)
	return parsed


def _shift_years(moment: datetime, years: int) -> datetime:
	try:
		return moment.replace(year=moment.year + years)
	except ValueError:
		# 29 February in a non-leap target year
		return moment.replace(year=moment.year + years, day=28)


def _days_between(a: datetime, b: datetime) -> float:
	return abs((a - b).total_seconds()) / 86400.0


def _is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class _Review:
	current: FarmConfiguration | None
	proposed: Mapping[str, Any]
	current_stage: CropStageEnum | None
	now: datetime
	errors: list[str] = field(default_factory=list)
	warnings: list[str] = field(default_factory=list)
	impact: ImpactLevelEnum = ImpactLevelEnum.low

	def escalate(self, level: ImpactLevelEnum) -> None:
		self.impact = escalate_impact(self.impact, level)

	def result(self) -> ValidationResult:
		return ValidationResult(
			is_valid=not self.errors,
			errors=self.errors,
			warnings=self.warnings,
			impact=self.impact,
		)


class ChangeImpactClassifier:
	def __init__(
		self,
		crop_parameters: CropParameterTable,
		clock: Callable[[], datetime] = _utcnow,
	):
		self.crop_parameters = crop_parameters
		self.clock = clock
		self._checkers: dict[str, Callable[[_Review, Any], None]] = {
			"crop_type": self._check_crop_type,
			"variety_name": self._check_variety_name,
			"planting_date": self._check_planting_date,
			"farm_size": self._check_farm_size,
			"irrigation_type": self._check_irrigation_type,
			"soil_type": self._check_soil_type,
			"expected_harvest_date": self._check_expected_harvest_date,
		}

	# ── Validation ──────────────────────────────────────────────────────────

	def validate(
		self,
		current_config: FarmConfiguration,
		proposed_changes: Mapping[str, Any],
		current_stage: CropStageEnum | None = None,
	) -> ValidationResult:
		review = _Review(
			current=current_config,
			proposed=proposed_changes,
			current_stage=current_stage,
			now=self.clock(),
		)
		self._run(review)
		return review.result()

	def validate_configuration(self, config: FarmConfiguration) -> ValidationResult:
		"""Check a complete configuration, e.g. one submitted at twin creation."""
		review = _Review(
			current=None,
			proposed=config.model_dump(),
			current_stage=None,
			now=self.clock(),
		)
		self._run(review)
		return review.result()

	def merge(self, current_config: FarmConfiguration, changes: Mapping[str, Any]) -> FarmConfiguration:
		"""Apply already-validated changes on top of ``current_config``."""
		merged = current_config.model_dump()
		for name, value in changes.items():
			if name in ("planting_date", "expected_harvest_date") and value is not None:
				value = coerce_datetime(value)
			merged[name] = value
		return FarmConfiguration.model_validate(merged)

	def _run(self, review: _Review) -> None:
		for name in CONFIGURATION_FIELDS:
			if name in review.proposed:
				self._checkers[name](review, review.proposed[name])
		for name in review.proposed:
			if name not in self._checkers:
				review.errors.append(f"Unknown configuration field: {name}")

	def _check_crop_type(self, review: _Review, value: Any) -> None:
		try:
			crop_type = CropTypeEnum(value)
		except ValueError:
			review.errors.append(f"Unsupported crop type: {value}")
			return
		if crop_type not in self.crop_parameters:
			review.errors.append(f"Unsupported crop type: {value}")
			return
		if review.current is not None and crop_type != review.current.crop_type:
			review.escalate(ImpactLevelEnum.high)
			review.warnings.append(
				"Crop type change will reset all growth predictions and require full recalibration"
			)

	def _check_variety_name(self, review: _Review, value: Any) -> None:
		if not isinstance(value, str) or not value.strip():
			review.errors.append("variety_name cannot be empty")

	def _check_planting_date(self, review: _Review, value: Any) -> None:
		planting_date = coerce_datetime(value)
		if planting_date is None:
			review.errors.append("Planting date must be a valid date")
			return
		if planting_date > _shift_years(review.now, PLANTING_DATE_MAX_YEARS_AHEAD):
			review.errors.append("Planting date cannot be more than 1 year in the future")
			return
		if planting_date < _shift_years(review.now, -PLANTING_DATE_MAX_YEARS_BACK):
			review.errors.append("Planting date cannot be more than 2 years in the past")
			return
		if review.current is None:
			return
		current_date = coerce_datetime(review.current.planting_date)
		if current_date is not None and _days_between(planting_date, current_date) > PLANTING_SHIFT_HIGH_DAYS:
			review.escalate(ImpactLevelEnum.high)
			review.warnings.append("Significant planting date change will affect growth stage calculations")

	def _check_farm_size(self, review: _Review, value: Any) -> None:
		if not _is_number(value) or value <= 0 or value > MAX_FARM_SIZE_HA:
			review.errors.append("Farm size must be between 0 and 1000 hectares")
			return
		if review.current is None:
			return
		current_size = review.current.farm_size
		if abs(value - current_size) > current_size * FARM_SIZE_WARNING_RATIO:
			review.escalate(ImpactLevelEnum.medium)
			review.warnings.append("Significant farm size change will affect yield calculations")

	def _check_irrigation_type(self, review: _Review, value: Any) -> None:
		try:
			irrigation_type = IrrigationTypeEnum(value)
		except ValueError:
			review.errors.append(f"Invalid irrigation type: {value}")
			return
		if review.current is None or irrigation_type == review.current.irrigation_type:
			return
		review.escalate(ImpactLevelEnum.medium)
		review.warnings.append(
			"Irrigation type change will affect water stress calculations and yield predictions"
		)
		if is_critical_stage(review.current_stage):
			review.escalate(ImpactLevelEnum.high)
			review.warnings.append(
				f"Irrigation type changed during critical growth stage: {review.current_stage}"
			)

	def _check_soil_type(self, review: _Review, value: Any) -> None:
		try:
			soil_type = SoilTypeEnum(value)
		except ValueError:
			review.errors.append(f"Invalid soil type: {value}")
			return
		if review.current is not None and soil_type != review.current.soil_type:
			review.escalate(ImpactLevelEnum.medium)
			review.warnings.append("Soil type change will affect nutrient and water stress calculations")

	def _check_expected_harvest_date(self, review: _Review, value: Any) -> None:
		if value is None:
			return
		harvest_date = coerce_datetime(value)
		if harvest_date is None:
			review.errors.append("Expected harvest date must be a valid date")
			return
		planting_date = coerce_datetime(review.proposed.get("planting_date"))
		if planting_date is None and review.current is not None:
			planting_date = coerce_datetime(review.current.planting_date)
		if planting_date is not None and harvest_date <= planting_date:
			review.errors.append("Expected harvest date must be after the planting date")

	# ── Impact policy ───────────────────────────────────────────────────────

	def impact_of(
		self,
		parameter: str,
		old_value: Any,
		new_value: Any,
		crop_type: CropTypeEnum | None = None,
		current_stage: CropStageEnum | None = None,
	) -> ChangeImpact:
		"""Classify one field transition.

		``crop_type`` is accepted so that per-crop policies can be added without
		changing callers; the current table does not depend on it.
		"""
		del crop_type

		if parameter == "crop_type":
			return ChangeImpact(
				impact=ImpactLevelEnum.high,
				affected_predictions=["growth_stages", "yield_forecast", "stress_indicators", "risk_factors"],
				affected_systems=["growth_modeling", "yield_prediction", "stress_calculation"],
				confidence=CROP_TYPE_CLASSIFIER_CONFIDENCE,
				recalculation_needed=True,
				estimated_confidence_change=-0.3,
			)

		if parameter == "planting_date":
			old_date = coerce_datetime(old_value)
			new_date = coerce_datetime(new_value)
			if old_date is None or new_date is None:
				raise ValueError("planting_date impact requires two dates")
			shift = _days_between(new_date, old_date)
			if shift > PLANTING_SHIFT_HIGH_DAYS:
				return ChangeImpact(
					impact=ImpactLevelEnum.high,
					affected_predictions=["growth_stages", "harvest_date"],
					affected_systems=["growth_stages", "harvest_prediction"],
					confidence=DEFAULT_CLASSIFIER_CONFIDENCE,
					recalculation_needed=True,
					estimated_confidence_change=-0.2,
				)
			if shift > PLANTING_SHIFT_MEDIUM_DAYS:
				return ChangeImpact(
					impact=ImpactLevelEnum.medium,
					affected_predictions=["growth_stages"],
					affected_systems=["growth_stages"],
					confidence=DEFAULT_CLASSIFIER_CONFIDENCE,
					recalculation_needed=True,
					estimated_confidence_change=-0.1,
				)
			return ChangeImpact(impact=ImpactLevelEnum.low, confidence=DEFAULT_CLASSIFIER_CONFIDENCE)

		if parameter == "farm_size":
			if old_value:
				ratio = abs(new_value - old_value) / old_value
			else:
				ratio = float("inf")
			if ratio > FARM_SIZE_HIGH_RATIO:
				return ChangeImpact(
					impact=ImpactLevelEnum.high,
					affected_predictions=["yield_forecast", "resource_requirements"],
					affected_systems=["yield_prediction", "resource_calculation"],
					confidence=DEFAULT_CLASSIFIER_CONFIDENCE,
					recalculation_needed=True,
					estimated_confidence_change=-0.15,
				)
			if ratio > FARM_SIZE_MEDIUM_RATIO:
				return ChangeImpact(
					impact=ImpactLevelEnum.medium,
					affected_predictions=["yield_forecast"],
					affected_systems=["yield_prediction"],
					confidence=DEFAULT_CLASSIFIER_CONFIDENCE,
					recalculation_needed=True,
					estimated_confidence_change=-0.05,
				)
			return ChangeImpact(impact=ImpactLevelEnum.low, confidence=DEFAULT_CLASSIFIER_CONFIDENCE)

		if parameter == "irrigation_type":
			critical = is_critical_stage(current_stage)
			return ChangeImpact(
				impact=ImpactLevelEnum.high if critical else ImpactLevelEnum.medium,
				affected_predictions=["water_stress", "yield_forecast"],
				affected_systems=["stress_calculation", "yield_prediction"],
				confidence=DEFAULT_CLASSIFIER_CONFIDENCE,
				recalculation_needed=True,
				estimated_confidence_change=-0.2 if critical else -0.1,
			)

		if parameter == "soil_type":
			return ChangeImpact(
				impact=ImpactLevelEnum.medium,
				affected_predictions=["nutrient_stress", "water_stress", "yield_forecast"],
				affected_systems=["stress_calculation", "yield_prediction"],
				confidence=DEFAULT_CLASSIFIER_CONFIDENCE,
				recalculation_needed=True,
				estimated_confidence_change=-0.1,
			)

		return ChangeImpact(impact=ImpactLevelEnum.low, confidence=UNKNOWN_PARAMETER_CONFIDENCE)

	@staticmethod
	def recalculation_plan(impact: ImpactLevelEnum) -> list[str]:
		return list(_RECALCULATION_PLANS[impact])
