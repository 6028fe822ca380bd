"""Pydantic schemas for already-parsed environmental snapshots.

These are the shapes handed to the engine by the ingestion collaborators.
The engine never fetches or cleans them.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class DataQuality(BaseModel):
	completeness: float = Field(default=1.0, ge=0, le=1)
	accuracy: float = Field(default=1.0, ge=0, le=1)
	timeliness: float = Field(default=1.0, ge=0, le=1)
	last_validated: datetime | None = None
	issues: list[str] = Field(default_factory=list)


class Coordinates(BaseModel):
	latitude: float = Field(ge=-90, le=90)
	longitude: float = Field(ge=-180, le=180)


# ── Weather ─────────────────────────────────────────────────────────────────


class CurrentWeather(BaseModel):
	temperature: float = Field(description="°C")
	humidity: float = Field(default=0.0, description="%")
	wind_speed: float = Field(default=0.0, description="km/h")
	wind_direction: float | None = None
	precipitation: float = Field(default=0.0, description="mm")
	pressure: float | None = None
	visibility: float | None = None
	uv_index: float | None = None
	cloud_cover: float | None = None
	dew_point: float | None = None


class TemperatureRange(BaseModel):
	min: float
	max: float
	average: float


class PrecipitationForecast(BaseModel):
	probability: float = Field(default=0.0, ge=0, le=100)
	amount: float = Field(default=0.0, ge=0, description="mm")


class ForecastDay(BaseModel):
	date: datetime
	temperature: TemperatureRange | None = None
	precipitation: PrecipitationForecast = Field(default_factory=PrecipitationForecast)
	wind_speed: float | None = None
	conditions: list[str] = Field(default_factory=list)
	confidence: float = Field(default=1.0, ge=0, le=1)


class WeatherSnapshot(BaseModel):
	timestamp: datetime
	source: str = "unknown"
	location: Coordinates | None = None
	current: CurrentWeather
	forecast: list[ForecastDay] = Field(default_factory=list)
	quality: DataQuality = Field(default_factory=DataQuality)

	@property
	def forecast_precipitation_mm(self) -> float:
		return sum(day.precipitation.amount for day in self.forecast)


# ── Soil ────────────────────────────────────────────────────────────────────


class SoilTexture(BaseModel):
	sand: float = 0.0
	silt: float = 0.0
	clay: float = 0.0


class SoilProperties(BaseModel):
	soil_type: str = "unknown"
	texture: SoilTexture = Field(default_factory=SoilTexture)
	ph: float | None = None
	organic_carbon: float | None = None
	nitrogen: float = Field(ge=0, description="kg/ha")
	phosphorus: float | None = None
	potassium: float | None = None
	sulfur: float | None = None
	micronutrients: dict[str, float] = Field(default_factory=dict)


class SoilSnapshot(BaseModel):
	source: str = "unknown"
	last_updated: datetime
	location: Coordinates | None = None
	soil_properties: SoilProperties
	quality: DataQuality = Field(default_factory=DataQuality)


# ── Satellite ───────────────────────────────────────────────────────────────


class VegetationIndex(BaseModel):
	ndvi: float = Field(ge=-1, le=1)
	evi: float | None = None
	lai: float | None = None
	fpar: float | None = None
	gpp: float | None = None
	confidence: float = Field(default=1.0, ge=0, le=1)


class SatelliteSnapshot(BaseModel):
	capture_date: datetime
	source: str = "unknown"
	satellite: str = "unknown"
	location: Coordinates | None = None
	vegetation_index: VegetationIndex
	cloud_cover: float | None = None
	resolution: float | None = None
	processing_level: str | None = None
	quality: DataQuality = Field(default_factory=DataQuality)


# ── Farmer and simulation ───────────────────────────────────────────────────


class FarmerObservation(BaseModel):
	"""Stress scores a farmer reported from the field; omitted scores are left as they are."""

	observed_at: datetime
	water_stress: float | None = None
	heat_stress: float | None = None
	nutrient_stress: float | None = None
	pest_risk: float | None = None
	disease_risk: float | None = None
	notes: str | None = None

	def observed_stress(self) -> dict[str, float]:
		return self.model_dump(exclude={"observed_at", "notes"}, exclude_none=True)


class SimulationResult(BaseModel):
	produced_at: datetime
	model: str = "unknown"
	predicted_yield: float | None = Field(default=None, ge=0, description="kg")
	confidence: float | None = None
