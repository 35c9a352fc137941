"""Add Kaya users, locations, climbs, ascents and sync progress

Revision ID: 003_kaya
Revises: 002_mountain_project
Create Date: 2026-09-05

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003_kaya"
down_revision: str = "002_mountain_project"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "kaya_users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kaya_user_id", sa.String(50), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("fname", sa.String(255), nullable=True),
        sa.Column("lname", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("height", sa.Float(), nullable=True),
        sa.Column("ape_index", sa.Float(), nullable=True),
        sa.Column("limit_grade_bouldering_id", sa.String(50), nullable=True),
        sa.Column("limit_grade_bouldering_name", sa.String(50), nullable=True),
        sa.Column("limit_grade_routes_id", sa.String(50), nullable=True),
        sa.Column("limit_grade_routes_name", sa.String(50), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_kaya_users_kaya_user_id", "kaya_users", ["kaya_user_id"], unique=True)

    op.create_table(
        "kaya_locations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kaya_location_id", sa.String(50), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location_type_id", sa.String(50), nullable=True),
        sa.Column("location_type_name", sa.String(100), nullable=True),
        sa.Column("parent_location_id", sa.String(50), nullable=True),
        sa.Column("parent_location_slug", sa.String(255), nullable=True),
        sa.Column("parent_location_name", sa.String(255), nullable=True),
        sa.Column("climb_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("boulder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("route_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ascent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_gb_moderated_bouldering", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_gb_moderated_routes", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_access_sensitive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("has_maps_disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("closed_date", sa.DateTime(), nullable=True),
        sa.Column("description_bouldering", sa.Text(), nullable=True),
        sa.Column("description_routes", sa.Text(), nullable=True),
        sa.Column("access_description_bouldering", sa.Text(), nullable=True),
        sa.Column("access_description_routes", sa.Text(), nullable=True),
        sa.Column("climb_type_id", sa.String(50), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_kaya_locations_kaya_location_id", "kaya_locations", ["kaya_location_id"], unique=True)
    op.create_index("ix_kaya_locations_slug", "kaya_locations", ["slug"], unique=True)
    op.create_index("ix_kaya_locations_parent_location_id", "kaya_locations", ["parent_location_id"])

    op.create_table(
        "kaya_climbs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("grade_id", sa.String(50), nullable=True),
        sa.Column("grade_name", sa.String(50), nullable=True),
        sa.Column("grade_ordering", sa.Integer(), nullable=True),
        sa.Column("grade_climb_type_id", sa.String(50), nullable=True),
        sa.Column("climb_type_name", sa.String(50), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("ascent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("kaya_location_id", sa.String(50), nullable=True),
        sa.Column("kaya_destination_name", sa.String(255), nullable=True),
        sa.Column("kaya_area_name", sa.String(255), nullable=True),
        sa.Column("color_name", sa.String(50), nullable=True),
        sa.Column("gym_name", sa.String(255), nullable=True),
        sa.Column("board_name", sa.String(255), nullable=True),
        sa.Column("is_gb_moderated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_access_sensitive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_offensive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_synced_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_kaya_climbs_slug", "kaya_climbs", ["slug"], unique=True)
    op.create_index("ix_kaya_climbs_name", "kaya_climbs", ["name"])
    op.create_index("ix_kaya_climbs_kaya_location_id", "kaya_climbs", ["kaya_location_id"])

    op.create_table(
        "kaya_ascents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kaya_ascent_id", sa.String(50), nullable=False),
        sa.Column("kaya_climb_slug", sa.String(255), nullable=False),
        sa.Column("kaya_user_id", sa.String(50), nullable=True),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("stiffness", sa.Integer(), nullable=True),
        sa.Column("grade_id", sa.String(50), nullable=True),
        sa.Column("grade_name", sa.String(50), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("photo_thumb_url", sa.Text(), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("video_thumb_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["kaya_climb_slug"], ["kaya_climbs.slug"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["kaya_user_id"], ["kaya_users.kaya_user_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_kaya_ascents_kaya_ascent_id", "kaya_ascents", ["kaya_ascent_id"], unique=True)
    op.create_index("ix_kaya_ascents_kaya_climb_slug", "kaya_ascents", ["kaya_climb_slug"])
    op.create_index("ix_kaya_ascents_kaya_user_id", "kaya_ascents", ["kaya_user_id"])
    op.create_index("ix_kaya_ascents_date", "kaya_ascents", ["date"])

    op.create_table(
        "kaya_sync_progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kaya_location_id", sa.String(50), nullable=False),
        sa.Column("location_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.Column("next_sync_at", sa.DateTime(), nullable=True),
        sa.Column("sync_error", sa.Text(), nullable=True),
        sa.Column("climbs_synced", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ascents_synced", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sub_locations_synced", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_kaya_sync_progress_kaya_location_id", "kaya_sync_progress", ["kaya_location_id"], unique=True
    )
    op.create_index("ix_kaya_sync_progress_status", "kaya_sync_progress", ["status"])
    op.create_index("ix_kaya_sync_progress_next_sync_at", "kaya_sync_progress", ["next_sync_at"])


def downgrade() -> None:
    op.drop_table("kaya_sync_progress")
    op.drop_table("kaya_ascents")
    op.drop_table("kaya_climbs")
    op.drop_table("kaya_locations")
    op.drop_table("kaya_users")
