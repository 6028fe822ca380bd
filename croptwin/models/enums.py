"""Enum types shared by the ORM models, schemas and services.

Each StrEnum maps 1:1 to a PostgreSQL CREATE TYPE ... AS ENUM where a column
stores it.  Ordering helpers live next to the enums they order so that every
caller agrees on stage sequence and impact/urgency precedence.
"""

from enum import StrEnum

# ── Crop & field enums ──────────────────────────────────────────────────────


class CropTypeEnum(StrEnum):
    """Crops with a registered growth-parameter profile."""

    rice = "rice"
    wheat = "wheat"
    maize = "maize"
    cotton = "cotton"
    sugarcane = "sugarcane"
    soybean = "soybean"
    groundnut = "groundnut"
    pulses = "pulses"
    vegetables = "vegetables"
    fruits = "fruits"


class CropStageEnum(StrEnum):
    """Crop lifecycle phases.  Declaration order IS the lifecycle order."""

    germination = "germination"
    vegetative = "vegetative"
    flowering = "flowering"
    fruiting = "fruiting"
    grain_filling = "grain_filling"
    maturity = "maturity"
    harvest_ready = "harvest_ready"


class IrrigationTypeEnum(StrEnum):
    """How the plot is watered."""

    rainfed = "rainfed"
    drip = "drip"
    sprinkler = "sprinkler"
    flood = "flood"
    furrow = "furrow"


class SoilTypeEnum(StrEnum):
    """Soil texture classes."""

    clay = "clay"
    loam = "loam"
    sandy = "sandy"
    silt = "silt"
    clay_loam = "clay_loam"
    sandy_loam = "sandy_loam"
    silt_loam = "silt_loam"


# ── Decision enums ──────────────────────────────────────────────────────────


class ImpactLevelEnum(StrEnum):
    """Severity of a configuration change."""

    low = "low"
    medium = "medium"
    high = "high"


class UrgencyEnum(StrEnum):
    """How soon a recomputation should run."""

    low = "low"
    medium = "medium"
    high = "high"


class RiskTypeEnum(StrEnum):
    """Risk classes reported on a growth prediction."""

    weather = "weather"
    pest = "pest"
    disease = "disease"
    nutrient = "nutrient"
    water = "water"


# ── Twin bookkeeping enums ──────────────────────────────────────────────────


class DataSourceEnum(StrEnum):
    """Origin of a state change recorded in the twin history."""

    weather = "weather"
    satellite = "satellite"
    farmer = "farmer"
    soil = "soil"
    simulation = "simulation"
    configuration = "configuration"


class CalibrationStatusEnum(StrEnum):
    """Whether the twin's model still matches its configuration."""

    pending = "pending"
    calibrated = "calibrated"
    needs_recalibration = "needs_recalibration"


# ── Ordering helpers ────────────────────────────────────────────────────────

STAGE_ORDER: tuple[CropStageEnum, ...] = tuple(CropStageEnum)

CRITICAL_STAGES: frozenset[CropStageEnum] = frozenset(
    {
        CropStageEnum.flowering,
        CropStageEnum.grain_filling,
        CropStageEnum.maturity,
    }
)

_LEVEL_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2}


def is_critical_stage(stage: CropStageEnum | None) -> bool:
    return stage is not None and stage in CRITICAL_STAGES


def escalate_impact(current: ImpactLevelEnum, candidate: ImpactLevelEnum) -> ImpactLevelEnum:
    """Return the more severe of two impact levels (never downgrades)."""
    if _LEVEL_RANK[candidate] > _LEVEL_RANK[current]:
        return candidate
    return current


def escalate_urgency(current: UrgencyEnum, candidate: UrgencyEnum) -> UrgencyEnum:
    """Return the more urgent of two urgency levels (never downgrades)."""
    if _LEVEL_RANK[candidate] > _LEVEL_RANK[current]:
        return candidate
    return current
