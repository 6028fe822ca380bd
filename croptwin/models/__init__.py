"""ORM model registry: importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from croptwin.models.base import AppendOnlyMixin, Base, TimestampMixin

# ── Enums ───────────────────────────────────────────────────────────────────
from croptwin.models.enums import (
    CalibrationStatusEnum,
    CropStageEnum,
    CropTypeEnum,
    DataSourceEnum,
    ImpactLevelEnum,
    IrrigationTypeEnum,
    RiskTypeEnum,
    SoilTypeEnum,
    UrgencyEnum,
)

# ── Twin models ─────────────────────────────────────────────────────────────
from croptwin.models.twin import FarmTwin, TwinHistoryEntry, TwinParameterChange

__all__ = [
    "AppendOnlyMixin",
    # Base & mixins
    "Base",
    "CalibrationStatusEnum",
    "CropStageEnum",
    # Enums
    "CropTypeEnum",
    "DataSourceEnum",
    # Twin
    "FarmTwin",
    "ImpactLevelEnum",
    "IrrigationTypeEnum",
    "RiskTypeEnum",
    "SoilTypeEnum",
    "TimestampMixin",
    "TwinHistoryEntry",
    "TwinParameterChange",
    "UrgencyEnum",
]
