"""create drawings and drawing_participants

Revision ID: 0001_create_drawings
Revises:
Create Date: 2026-10-17 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_create_drawings"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "drawings",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("scope_id", sa.String(length=100), nullable=False),
        sa.Column("organizer_id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("prize_description", sa.Text(), nullable=False),
        sa.Column("prize_image_url", sa.String(length=500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("draw_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("fixed_positions", sa.JSON(), nullable=True),
        sa.Column("min_participants", sa.Integer(), nullable=False),
        sa.Column("backup_policy", sa.String(length=20), nullable=False),
        sa.Column("selection_rule", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("locked", sa.Boolean(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("winners", sa.JSON(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('open','finished','cancelled')",
            name=op.f("ck_drawings_status_enum"),
        ),
        sa.CheckConstraint(
            "selection_rule IN ('random','fixed-position')",
            name=op.f("ck_drawings_selection_rule_enum"),
        ),
        sa.CheckConstraint(
            "backup_policy IN ('proceed-anyway','cancel')",
            name=op.f("ck_drawings_backup_policy_enum"),
        ),
        sa.CheckConstraint(
            "winner_count > 0", name=op.f("ck_drawings_winner_count_positive")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_drawings")),
    )
    op.create_index(op.f("ix_drawings_scope_id"), "drawings", ["scope_id"])
    op.create_index(op.f("ix_drawings_organizer_id"), "drawings", ["organizer_id"])
    op.create_index(op.f("ix_drawings_draw_time"), "drawings", ["draw_time"])
    op.create_index(op.f("ix_drawings_status"), "drawings", ["status"])
    op.create_index(
        "ix_drawings_status_draw_time", "drawings", ["status", "draw_time"]
    )

    op.create_table(
        "drawing_participants",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("drawing_id", ID_TYPE, nullable=False),
        sa.Column("user_id", sa.String(length=100), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("entry_ref", sa.String(length=100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("participated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False),
        sa.CheckConstraint(
            "position > 1",
            name=op.f("ck_drawing_participants_position_after_opening"),
        ),
        sa.ForeignKeyConstraint(
            ["drawing_id"],
            ["drawings.id"],
            name=op.f("fk_drawing_participants_drawing_id_drawings"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_drawing_participants")),
        sa.UniqueConstraint(
            "drawing_id", "user_id", name="uq_drawing_participant_user"
        ),
        sa.UniqueConstraint(
            "drawing_id", "position", name="uq_drawing_participant_position"
        ),
    )
    op.create_index(
        op.f("ix_drawing_participants_drawing_id"),
        "drawing_participants",
        ["drawing_id"],
    )


def downgrade() -> None:
    op.drop_index(
        op.f("ix_drawing_participants_drawing_id"), table_name="drawing_participants"
    )
    op.drop_table("drawing_participants")
    op.drop_index("ix_drawings_status_draw_time", table_name="drawings")
    op.drop_index(op.f("ix_drawings_status"), table_name="drawings")
    op.drop_index(op.f("ix_drawings_draw_time"), table_name="drawings")
    op.drop_index(op.f("ix_drawings_organizer_id"), table_name="drawings")
    op.drop_index(op.f("ix_drawings_scope_id"), table_name="drawings")
    op.drop_table("drawings")
