"""Initial schema: draws, students, groups, suites and their link tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "building",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_building_name"),
    )

    op.create_table(
        "draw",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("intent_locked", sa.Boolean(), nullable=False),
        sa.Column("locked_sizes", sa.JSON(), nullable=True),
        sa.Column("lock_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "student",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("gender", sa.String(), nullable=True),
        sa.Column("class_year", sa.String(), nullable=True),
        sa.Column("college", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("intent", sa.String(), nullable=False),
        sa.Column("draw_id", sa.Integer(), nullable=True),
        sa.Column("old_draw_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["draw_id"], ["draw.id"]),
        sa.ForeignKeyConstraint(["old_draw_id"], ["draw.id"]),
        sa.UniqueConstraint("username", name="uq_student_username"),
    )
    op.create_index("ix_student_draw_id", "student", ["draw_id"])

    # Groups: draw_id NULL means drawless
    op.create_table(
        "draw_group",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("draw_id", sa.Integer(), nullable=True),
        sa.Column("leader_id", sa.Integer(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("lottery_number", sa.Integer(), nullable=True),
        sa.Column("skipped", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["draw_id"], ["draw.id"]),
        sa.ForeignKeyConstraint(["leader_id"], ["student.id"]),
        sa.UniqueConstraint("draw_id", "lottery_number", name="uq_draw_lottery_number"),
    )
    op.create_index("ix_draw_group_draw_id", "draw_group", ["draw_id"])

    op.create_table(
        "suite",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("building_id", sa.Integer(), nullable=False),
        sa.Column("number", sa.String(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["building_id"], ["building.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["draw_group.id"]),
        sa.UniqueConstraint("group_id", name="uq_suite_group"),
        sa.UniqueConstraint("building_id", "number", name="uq_building_suite_number"),
    )
    op.create_index("ix_suite_building_id", "suite", ["building_id"])

    op.create_table(
        "drawsuite",
        sa.Column("draw_id", sa.Integer(), nullable=False),
        sa.Column("suite_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("draw_id", "suite_id"),
        sa.ForeignKeyConstraint(["draw_id"], ["draw.id"]),
        sa.ForeignKeyConstraint(["suite_id"], ["suite.id"]),
    )

    op.create_table(
        "membership",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["draw_group.id"]),
        sa.ForeignKeyConstraint(["student_id"], ["student.id"]),
        sa.UniqueConstraint("student_id", name="uq_membership_student"),
    )
    op.create_index("ix_membership_group_id", "membership", ["group_id"])

    op.create_table(
        "clip",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("draw_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["draw_id"], ["draw.id"]),
    )
    op.create_index("ix_clip_draw_id", "clip", ["draw_id"])

    op.create_table(
        "clipmembership",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clip_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("confirmed", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["clip_id"], ["clip.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["draw_group.id"]),
        sa.UniqueConstraint("group_id", name="uq_clip_membership_group"),
    )
    op.create_index("ix_clipmembership_clip_id", "clipmembership", ["clip_id"])


def downgrade() -> None:
    op.drop_index("ix_clipmembership_clip_id", table_name="clipmembership")
    op.drop_table("clipmembership")
    op.drop_index("ix_clip_draw_id", table_name="clip")
    op.drop_table("clip")
    op.drop_index("ix_membership_group_id", table_name="membership")
    op.drop_table("membership")
    op.drop_table("drawsuite")
    op.drop_index("ix_suite_building_id", table_name="suite")
    op.drop_table("suite")
    op.drop_index("ix_draw_group_draw_id", table_name="draw_group")
    op.drop_table("draw_group")
    op.drop_index("ix_student_draw_id", table_name="student")
    op.drop_table("student")
    op.drop_table("draw")
    op.drop_table("building")
