"""Progression schema - learners, subject progress, catalogue, event log

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "learners",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("cultural_background", sa.String(100), nullable=False, server_default="Global"),
        sa.Column("accessibility_flags", sa.JSON(), nullable=False),
        sa.Column("preferred_language", sa.String(50), nullable=False, server_default="English"),
        sa.Column("track", sa.String(50), nullable=False, server_default="Standard"),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("learner_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("transition_target_age", sa.Integer(), nullable=True),
        sa.Column("transition_structure", sa.String(20), nullable=True),
        sa.Column("transition_source", sa.String(50), nullable=True),
        sa.Column("transition_enrolled_on", sa.Date(), nullable=True),
        sa.Column("transition_expires_on", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_learners"),
    )

    op.create_table(
        "subject_progress",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("learner_id", sa.Uuid(), nullable=False),
        sa.Column("subject_id", sa.String(100), nullable=False),
        sa.Column("level", sa.String(20), nullable=False, server_default="A"),
        sa.Column("lesson_index", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_placed", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("last_score", sa.JSON(), nullable=True),
        sa.Column("track", sa.String(50), nullable=False, server_default="Standard"),
        sa.Column("is_fast_track", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("fast_track_duration", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("relearn_active", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("relearn_stage", sa.String(20), nullable=True),
        sa.Column("specializations", sa.JSON(), nullable=False),
        sa.Column("completed_exercises", sa.JSON(), nullable=False),
        sa.Column("completed_media", sa.JSON(), nullable=False),
        sa.Column("awaiting_verification", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_subject_progress"),
        sa.ForeignKeyConstraint(
            ["learner_id"],
            ["learners.id"],
            name="fk_subject_progress_learner_id_learners",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("learner_id", "subject_id", name="uq_subject_progress_learner_subject"),
    )
    op.create_index("ix_subject_progress_learner_id", "subject_progress", ["learner_id"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="Custom"),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("subtopics", sa.JSON(), nullable=False),
        sa.Column("exercises_per_lesson", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("is_user_generated", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Append-only audit log
    op.create_table(
        "event_logs",
        sa.Column("sequence", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("learner_id", sa.Uuid(), nullable=True, index=True),
        sa.Column("subject_id", sa.String(100), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
        sa.PrimaryKeyConstraint("sequence", name="pk_event_logs"),
        sa.UniqueConstraint("id", name="uq_event_logs_id"),
    )
    op.create_index("ix_event_logs_learner_subject", "event_logs", ["learner_id", "subject_id"])
    op.create_index("ix_event_logs_type_time", "event_logs", ["event_type", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_event_logs_type_time", table_name="event_logs")
    op.drop_index("ix_event_logs_learner_subject", table_name="event_logs")
    op.drop_table("event_logs")
    op.drop_table("subjects")
    op.drop_index("ix_subject_progress_learner_id", table_name="subject_progress")
    op.drop_table("subject_progress")
    op.drop_table("learners")
