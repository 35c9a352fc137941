"""Add kaya_mp_route_matches table

Revision ID: 004_route_matches
Revises: 003_kaya
Create Date: 2026-09-12

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "004_route_matches"
down_revision: str = "003_kaya"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "kaya_mp_route_matches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kaya_climb_id", sa.String(255), nullable=False),
        sa.Column("mp_route_id", sa.BigInteger(), nullable=False),
        sa.Column("match_confidence", sa.Float(), nullable=False),
        sa.Column("match_type", sa.String(50), nullable=False),
        sa.Column("kaya_climb_name", sa.String(255), nullable=False),
        sa.Column("kaya_location_name", sa.String(255), nullable=True),
        sa.Column("kaya_latitude", sa.Float(), nullable=True),
        sa.Column("kaya_longitude", sa.Float(), nullable=True),
        sa.Column("mp_route_name", sa.String(255), nullable=False),
        sa.Column("mp_area_name", sa.String(255), nullable=True),
        sa.Column("mp_latitude", sa.Float(), nullable=True),
        sa.Column("mp_longitude", sa.Float(), nullable=True),
        sa.Column("name_similarity", sa.Float(), nullable=False),
        sa.Column("location_distance_km", sa.Float(), nullable=True),
        sa.Column("location_name_match", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_by", sa.String(100), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("match_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kaya_climb_id", "mp_route_id", name="uq_kaya_mp_route_match"),
    )
    op.create_index("ix_kaya_mp_route_matches_kaya_climb_id", "kaya_mp_route_matches", ["kaya_climb_id"])
    op.create_index("ix_kaya_mp_route_matches_mp_route_id", "kaya_mp_route_matches", ["mp_route_id"])
    op.create_index(
        "ix_kaya_mp_route_matches_match_confidence", "kaya_mp_route_matches", ["match_confidence"]
    )


def downgrade() -> None:
    op.drop_index("ix_kaya_mp_route_matches_match_confidence", table_name="kaya_mp_route_matches")
    op.drop_index("ix_kaya_mp_route_matches_mp_route_id", table_name="kaya_mp_route_matches")
    op.drop_index("ix_kaya_mp_route_matches_kaya_climb_id", table_name="kaya_mp_route_matches")
    op.drop_table("kaya_mp_route_matches")
