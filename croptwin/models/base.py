"""Declarative base and column mixins for farm_twins, twin_history and twin_parameter_changes."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Registry for the twin tables; Alembic autogenerates against its metadata."""


class TimestampMixin:
    """Row creation and last-write times for the mutable farm_twins row."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class AppendOnlyMixin:
    """BIGSERIAL PK + write timestamp for append-only twin logs.

    History and change-log tables are never updated in place, so they skip
    ``TimestampMixin``; ``recorded_at`` tracks when the row reached the
    database, independent of the entry's own ``timestamp``.
    """

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=True,
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
