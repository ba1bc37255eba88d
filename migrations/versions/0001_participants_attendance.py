"""participants and attendance tables

Revision ID: 0001_participants_attendance
Revises:
Create Date: 2024-01-05 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_participants_attendance"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("gender", sa.String(length=1), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "gender IS NULL OR gender IN ('L', 'P')", name="ck_participants_gender"
        ),
    )
    op.create_index(
        "ix_participants_name_lower",
        "participants",
        [sa.text("lower(name)")],
        unique=True,
    )

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("device_id", sa.String(length=255), nullable=True),
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["participant_id"], ["participants.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "participant_id",
            "event_date",
            name="uq_attendance_participant_event_date",
        ),
    )
    op.create_index("ix_attendance_event_date", "attendance", ["event_date"])
    op.create_index("ix_attendance_participant_id", "attendance", ["participant_id"])


def downgrade() -> None:
    op.drop_index("ix_attendance_participant_id", table_name="attendance")
    op.drop_index("ix_attendance_event_date", table_name="attendance")
    op.drop_table("attendance")
    op.drop_index("ix_participants_name_lower", table_name="participants")
    op.drop_table("participants")
