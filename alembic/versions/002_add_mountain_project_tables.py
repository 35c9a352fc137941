"""Add Mountain Project areas, routes and ticks

Revision ID: 002_mountain_project
Revises: 001_job_executions
Create Date: 2026-09-02

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002_mountain_project"
down_revision: str = "001_job_executions"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "mp_areas",
        sa.Column("mp_area_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("parent_mp_area_id", sa.BigInteger(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("mp_area_id"),
    )
    op.create_index("ix_mp_areas_parent_mp_area_id", "mp_areas", ["parent_mp_area_id"])

    op.create_table(
        "mp_routes",
        sa.Column("mp_route_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("mp_area_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("route_type", sa.String(100), nullable=True),
        sa.Column("rating", sa.String(50), nullable=True),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("sync_priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("last_tick_sync_at", sa.DateTime(), nullable=True),
        sa.Column("last_comment_sync_at", sa.DateTime(), nullable=True),
        sa.Column("tick_count_14d", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tick_count_90d", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_tick_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("days_since_last_tick", sa.Integer(), nullable=True),
        sa.Column("area_percentile", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["mp_area_id"], ["mp_areas.mp_area_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("mp_route_id"),
    )
    op.create_index("ix_mp_routes_mp_area_id", "mp_routes", ["mp_area_id"])
    op.create_index("ix_mp_routes_name", "mp_routes", ["name"])
    op.create_index("ix_mp_routes_route_type", "mp_routes", ["route_type"])
    op.create_index("ix_mp_routes_location_id", "mp_routes", ["location_id"])
    op.create_index("ix_mp_routes_sync_priority", "mp_routes", ["sync_priority"])

    op.create_table(
        "mp_ticks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("mp_route_id", sa.BigInteger(), nullable=False),
        sa.Column("user_name", sa.String(255), nullable=False),
        sa.Column("climbed_at", sa.DateTime(), nullable=False),
        sa.Column("style", sa.String(50), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["mp_route_id"], ["mp_routes.mp_route_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("mp_route_id", "user_name", "climbed_at", name="uq_mp_ticks_route_user_date"),
    )
    op.create_index("ix_mp_ticks_mp_route_id", "mp_ticks", ["mp_route_id"])
    op.create_index("ix_mp_ticks_climbed_at", "mp_ticks", ["climbed_at"])


def downgrade() -> None:
    op.drop_index("ix_mp_ticks_climbed_at", table_name="mp_ticks")
    op.drop_index("ix_mp_ticks_mp_route_id", table_name="mp_ticks")
    op.drop_table("mp_ticks")
    op.drop_index("ix_mp_routes_sync_priority", table_name="mp_routes")
    op.drop_index("ix_mp_routes_location_id", table_name="mp_routes")
    op.drop_index("ix_mp_routes_route_type", table_name="mp_routes")
    op.drop_index("ix_mp_routes_name", table_name="mp_routes")
    op.drop_index("ix_mp_routes_mp_area_id", table_name="mp_routes")
    op.drop_table("mp_routes")
    op.drop_index("ix_mp_areas_parent_mp_area_id", table_name="mp_areas")
    op.drop_table("mp_areas")
