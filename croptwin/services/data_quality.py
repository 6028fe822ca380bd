"""Freshness bookkeeping for the data feeding a twin's state."""

from __future__ import annotations

from collections.abc import Iterable

from croptwin.models.enums import DataSourceEnum
from croptwin.schemas.twin import DataQualityMetrics

# (upper bound, score) pairs, checked in order.
WEATHER_HOURS_BANDS = ((6.0, 0.25), (24.0, 0.15), (72.0, 0.05))
SATELLITE_DAYS_BANDS = ((3.0, 0.25), (7.0, 0.15), (14.0, 0.05))
FARMER_DAYS_BANDS = ((1.0, 0.25), (7.0, 0.15), (30.0, 0.05))
SOIL_AVAILABLE_SCORE = 0.25

DEFAULT_DATA_QUALITY = DataQualityMetrics(
	weather_data_freshness=24,
	satellite_data_freshness=7,
	soil_data_availability=False,
	farmer_input_recency=0,
	overall_quality_score=0.6,
)


def _band_score(age: float, bands: tuple[tuple[float, float], ...]) -> float:
	for limit, score in bands:
		if age <= limit:
			return score
	return 0.0


def overall_quality_score(metrics: DataQualityMetrics) -> float:
	score = (
		_band_score(metrics.weather_data_freshness, WEATHER_HOURS_BANDS)
		+ _band_score(metrics.satellite_data_freshness, SATELLITE_DAYS_BANDS)
		+ (SOIL_AVAILABLE_SCORE if metrics.soil_data_availability else 0.0)
		+ _band_score(metrics.farmer_input_recency, FARMER_DAYS_BANDS)
	)
	return min(1.0, round(score, 4))


def refresh_data_quality(current: DataQualityMetrics, sources: Iterable[DataSourceEnum]) -> DataQualityMetrics:
	"""Mark the given sources as fresh and recompute the overall score."""
	present = set(sources)
	updates: dict[str, object] = {}
	if DataSourceEnum.weather in present:
		updates["weather_data_freshness"] = 0.0
	if DataSourceEnum.satellite in present:
		updates["satellite_data_freshness"] = 0.0
	if DataSourceEnum.soil in present:
		updates["soil_data_availability"] = True
	if DataSourceEnum.farmer in present:
		updates["farmer_input_recency"] = 0.0

	refreshed = current.model_copy(update=updates)
	return refreshed.model_copy(update={"overall_quality_score": overall_quality_score(refreshed)})
