"""Initial back-office schema: clients, vehicles, rating factors and policies.

Revision ID: 001
Revises:
Create Date: 2025-07-02

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    ]


def upgrade() -> None:
    """Create initial database schema."""
    op.create_table(
        "clients",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_clients")),
        sa.UniqueConstraint("email", name=op.f("uq_clients_email")),
    )
    op.create_index(
        "ix_clients_full_name",
        "clients",
        [sa.text("lower(first_name || ' ' || last_name)")],
        unique=False,
    )

    op.create_table(
        "vehicles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("make", sa.String(50), nullable=True),
        sa.Column("model", sa.String(50), nullable=True),
        sa.Column("registration_number", sa.String(20), nullable=True),
        sa.Column("vin", sa.String(17), nullable=True),
        sa.Column("engine_capacity", sa.Integer(), nullable=False),
        sa.Column("power", sa.Integer(), nullable=False),
        sa.Column("first_registration_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_vehicles")),
        sa.UniqueConstraint(
            "registration_number", name=op.f("uq_vehicles_registration_number")
        ),
        sa.UniqueConstraint("vin", name=op.f("uq_vehicles_vin")),
        sa.CheckConstraint("engine_capacity > 0", name="ck_vehicles_engine_capacity"),
        sa.CheckConstraint("power > 0", name="ck_vehicles_power"),
    )

    op.create_table(
        "rating_factors",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("category", sa.String(10), nullable=False),
        sa.Column("factor_key", sa.String(100), nullable=False),
        sa.Column("multiplier", sa.Numeric(10, 4), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_rating_factors")),
        sa.CheckConstraint(
            "category IN ('OC', 'AC', 'NNW')", name="ck_rating_factors_category"
        ),
        sa.CheckConstraint("multiplier > 0", name="ck_rating_factors_multiplier"),
        sa.CheckConstraint(
            "valid_to IS NULL OR valid_to >= valid_from",
            name="ck_rating_factors_window",
        ),
    )
    op.create_index(
        "ix_rating_factors_lookup",
        "rating_factors",
        ["category", "factor_key", "valid_from"],
        unique=False,
    )

    op.create_table(
        "policies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("policy_number", sa.String(50), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("category", sa.String(10), nullable=False),
        sa.Column("premium", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "adjustment",
            sa.Numeric(10, 2),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("vehicle_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_policies")),
        sa.UniqueConstraint("policy_number", name=op.f("uq_policies_policy_number")),
        sa.ForeignKeyConstraint(
            ["client_id"],
            ["clients.id"],
            name=op.f("fk_policies_client_id_clients"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["vehicle_id"],
            ["vehicles.id"],
            name=op.f("fk_policies_vehicle_id_vehicles"),
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint(
            "status IN ('ACTIVE', 'CANCELED')", name="ck_policies_status"
        ),
        sa.CheckConstraint(
            "category IN ('OC', 'AC', 'NNW')", name="ck_policies_category"
        ),
        sa.CheckConstraint("premium >= 0", name="ck_policies_premium"),
        sa.CheckConstraint("start_date <= end_date", name="ck_policies_dates"),
        sa.CheckConstraint("issue_date <= start_date", name="ck_policies_issue_date"),
    )

    op.create_index(op.f("ix_policies_client_id"), "policies", ["client_id"])
    op.create_index(op.f("ix_policies_vehicle_id"), "policies", ["vehicle_id"])
    op.create_index(
        "ix_policies_status_end_date", "policies", ["status", "end_date"]
    )
    op.create_index(op.f("ix_policies_category"), "policies", ["category"])


def downgrade() -> None:
    """Drop initial database schema."""
    op.drop_index(op.f("ix_policies_category"), table_name="policies")
    op.drop_index("ix_policies_status_end_date", table_name="policies")
    op.drop_index(op.f("ix_policies_vehicle_id"), table_name="policies")
    op.drop_index(op.f("ix_policies_client_id"), table_name="policies")
    op.drop_table("policies")

    op.drop_index("ix_rating_factors_lookup", table_name="rating_factors")
    op.drop_table("rating_factors")

    op.drop_table("vehicles")

    op.drop_index("ix_clients_full_name", table_name="clients")
    op.drop_table("clients")
