"""FarmTwin, TwinHistoryEntry, TwinParameterChange ORM models.

``farm_twins`` holds one row per plot.  Configuration, live state, location
and metadata are stored as JSONB documents shaped by the pydantic schemas in
``croptwin.schemas.twin``; the store layer converts in both directions.

``version`` is the mapper's ``version_id_col``: every flush of a twin row
emits ``UPDATE ... WHERE id = :id AND version = :version`` and bumps it, so a
writer holding a stale row fails with ``StaleDataError`` instead of silently
overwriting a concurrent update.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from croptwin.models.base import AppendOnlyMixin, Base, TimestampMixin
from croptwin.models.enums import (
    CropTypeEnum,
    DataSourceEnum,
    ImpactLevelEnum,
)

# ═══════════════════════════════════════════════════════════════════════════
# Farm twin
# ═══════════════════════════════════════════════════════════════════════════


class FarmTwin(Base, TimestampMixin):
    """Digital representation of one plot's cultivation cycle."""

    __tablename__ = "farm_twins"
    __table_args__ = (
        Index("ix_farm_twins_farmer_id", "farmer_id"),
        Index("ix_farm_twins_crop_type", "crop_type"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    farmer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    # Denormalised from farm_configuration for filtering.
    crop_type: Mapped[CropTypeEnum] = mapped_column(
        Enum(
            CropTypeEnum,
            name="crop_type",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
    )
    location: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    farm_configuration: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    current_state: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONB, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ── Relationships ────────────────────────────────────────────────────
    history: Mapped[list[TwinHistoryEntry]] = relationship(
        back_populates="twin",
        cascade="all, delete-orphan",
        lazy="noload",
        order_by="TwinHistoryEntry.timestamp",
    )
    parameter_changes: Mapped[list[TwinParameterChange]] = relationship(
        back_populates="twin",
        cascade="all, delete-orphan",
        lazy="noload",
        order_by="TwinParameterChange.timestamp",
    )

    def __repr__(self) -> str:
        return (
            f"<FarmTwin id={self.id} farmer={self.farmer_id!r} "
            f"crop={self.crop_type} version={self.version}>"
        )


# ═══════════════════════════════════════════════════════════════════════════
# Append-only logs
# ═══════════════════════════════════════════════════════════════════════════


class TwinHistoryEntry(Base, AppendOnlyMixin):
    """Superseded FarmState, captured before each state replacement."""

    __tablename__ = "twin_history"
    __table_args__ = (
        Index("ix_twin_history_twin_ts", "twin_id", "timestamp"),
    )

    twin_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("farm_twins.id", ondelete="CASCADE"),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    farm_state: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    data_source: Mapped[DataSourceEnum] = mapped_column(
        Enum(
            DataSourceEnum,
            name="data_source",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
    )
    change_reason: Mapped[str] = mapped_column(String(512), nullable=False)

    twin: Mapped[FarmTwin] = relationship(back_populates="history")

    def __repr__(self) -> str:
        return (
            f"<TwinHistoryEntry id={self.id} twin={self.twin_id} "
            f"ts={self.timestamp} source={self.data_source}>"
        )


class TwinParameterChange(Base, AppendOnlyMixin):
    """Audit entry for one configuration field changed by a batch update."""

    __tablename__ = "twin_parameter_changes"
    __table_args__ = (
        Index("ix_twin_parameter_changes_twin_ts", "twin_id", "timestamp"),
    )

    twin_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("farm_twins.id", ondelete="CASCADE"),
        nullable=False,
    )
    parameter: Mapped[str] = mapped_column(String(64), nullable=False)
    old_value: Mapped[Any] = mapped_column(JSONB, nullable=True)
    new_value: Mapped[Any] = mapped_column(JSONB, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    impact: Mapped[ImpactLevelEnum] = mapped_column(
        Enum(
            ImpactLevelEnum,
            name="impact_level",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
    )
    affected_predictions: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list
    )

    twin: Mapped[FarmTwin] = relationship(back_populates="parameter_changes")

    def __repr__(self) -> str:
        return (
            f"<TwinParameterChange id={self.id} twin={self.twin_id} "
            f"parameter={self.parameter!r} impact={self.impact}>"
        )
