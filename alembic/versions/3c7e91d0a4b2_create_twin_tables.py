"""create_twin_tables

Revision ID: 3c7e91d0a4b2
Revises:
Create Date: 2026-10-18 09:30:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3c7e91d0a4b2"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_CROP_TYPE = postgresql.ENUM(
	"rice",
	"wheat",
	"maize",
	"cotton",
	"sugarcane",
	"soybean",
	"groundnut",
	"pulses",
	"vegetables",
	"fruits",
	name="crop_type",
	create_type=False,
)
ENUM_DATA_SOURCE = postgresql.ENUM(
	"weather",
	"satellite",
	"farmer",
	"soil",
	"simulation",
	"configuration",
	name="data_source",
	create_type=False,
)
ENUM_IMPACT_LEVEL = postgresql.ENUM(
	"low",
	"medium",
	"high",
	name="impact_level",
	create_type=False,
)


def upgrade() -> None:
	bind = op.get_bind()
	ENUM_CROP_TYPE.create(bind, checkfirst=True)
	ENUM_DATA_SOURCE.create(bind, checkfirst=True)
	ENUM_IMPACT_LEVEL.create(bind, checkfirst=True)

	op.create_table(
		"farm_twins",
		sa.Column("id", sa.String(length=64), nullable=False),
		sa.Column("farmer_id", sa.String(length=50), nullable=False),
		sa.Column("crop_type", ENUM_CROP_TYPE, nullable=False),
		sa.Column("location", postgresql.JSONB(), nullable=False),
		sa.Column("farm_configuration", postgresql.JSONB(), nullable=False),
		sa.Column("current_state", postgresql.JSONB(), nullable=False),
		sa.Column("metadata", postgresql.JSONB(), nullable=False),
		sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
		sa.Column("version", sa.Integer(), nullable=False),
		sa.Column(
			"created_at",
			sa.DateTime(timezone=True),
			server_default=sa.text("now()"),
			nullable=False,
		),
		sa.Column(
			"updated_at",
			sa.DateTime(timezone=True),
			server_default=sa.text("now()"),
			nullable=False,
		),
		sa.PrimaryKeyConstraint("id"),
	)
	op.create_index("ix_farm_twins_farmer_id", "farm_twins", ["farmer_id"])
	op.create_index("ix_farm_twins_crop_type", "farm_twins", ["crop_type"])

	op.create_table(
		"twin_history",
		sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
		sa.Column("twin_id", sa.String(length=64), nullable=False),
		sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
		sa.Column("farm_state", postgresql.JSONB(), nullable=False),
		sa.Column("data_source", ENUM_DATA_SOURCE, nullable=False),
		sa.Column("change_reason", sa.String(length=512), nullable=False),
		sa.Column(
			"recorded_at",
			sa.DateTime(timezone=True),
			server_default=sa.text("now()"),
			nullable=False,
		),
		sa.ForeignKeyConstraint(["twin_id"], ["farm_twins.id"], ondelete="CASCADE"),
		sa.PrimaryKeyConstraint("id"),
	)
	op.create_index("ix_twin_history_twin_ts", "twin_history", ["twin_id", "timestamp"])

	op.create_table(
		"twin_parameter_changes",
		sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
		sa.Column("twin_id", sa.String(length=64), nullable=False),
		sa.Column("parameter", sa.String(length=64), nullable=False),
		sa.Column("old_value", postgresql.JSONB(), nullable=True),
		sa.Column("new_value", postgresql.JSONB(), nullable=True),
		sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
		sa.Column("impact", ENUM_IMPACT_LEVEL, nullable=False),
		sa.Column("affected_predictions", postgresql.JSONB(), nullable=False),
		sa.Column(
			"recorded_at",
			sa.DateTime(timezone=True),
			server_default=sa.text("now()"),
			nullable=False,
		),
		sa.ForeignKeyConstraint(["twin_id"], ["farm_twins.id"], ondelete="CASCADE"),
		sa.PrimaryKeyConstraint("id"),
	)
	op.create_index(
		"ix_twin_parameter_changes_twin_ts",
		"twin_parameter_changes",
		["twin_id", "timestamp"],
	)


def downgrade() -> None:
	op.drop_index("ix_twin_parameter_changes_twin_ts", table_name="twin_parameter_changes")
	op.drop_table("twin_parameter_changes")
	op.drop_index("ix_twin_history_twin_ts", table_name="twin_history")
	op.drop_table("twin_history")
	op.drop_index("ix_farm_twins_crop_type", table_name="farm_twins")
	op.drop_index("ix_farm_twins_farmer_id", table_name="farm_twins")
	op.drop_table("farm_twins")

	bind = op.get_bind()
	ENUM_IMPACT_LEVEL.drop(bind, checkfirst=True)
	ENUM_DATA_SOURCE.drop(bind, checkfirst=True)
	ENUM_CROP_TYPE.drop(bind, checkfirst=True)
