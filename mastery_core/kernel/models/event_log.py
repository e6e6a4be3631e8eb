"""
Immutable event log for the progression audit trail.

Every progression mutation is logged here in the same transaction as the change.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mastery_core.kernel.models.base import Base, generate_uuid


class EventType(str, Enum):
    """All event types for the audit log."""

    # Learner events
    LEARNER_CREATED = "learner.created"
    LEARNER_UPDATED = "learner.updated"
    XP_AWARDED = "learner.xp_awarded"

    # Lesson events
    LESSON_ADVANCED = "lesson.advanced"
    LEVEL_COMPLETE = "lesson.level_complete"
    SPECIAL_COMPLETION = "lesson.special_completion"

    # Verification events
    VERIFICATION_PASSED = "verification.passed"
    VERIFICATION_FAILED = "verification.failed"
    LEVEL_ADVANCED = "verification.level_advanced"
    CERTIFICATE_ISSUED = "certificate.issued"

    # Pathway events
    TRACK_CHANGED = "pathway.track_changed"
    FAST_TRACK_ENABLED = "pathway.fast_track_enabled"
    FAST_TRACK_DISABLED = "pathway.fast_track_disabled"
    RELEARN_STARTED = "pathway.relearn_started"
    RELEARN_STOPPED = "pathway.relearn_stopped"
    TRANSITION_ENROLLED = "pathway.transition_enrolled"

    # Subject events
    PLACEMENT_APPLIED = "subject.placement_applied"
    SPECIALIZATIONS_SET = "subject.specializations_set"
    MEDIA_COMPLETED = "subject.media_completed"
    SUBJECT_REMOVED = "subject.removed"
    SUBJECT_CREATED = "subject.created"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    # Write order; created_at alone cannot separate events from one transaction
    sequence: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        unique=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Learner the event concerns (null for catalogue events)
    learner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    subject_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    # Timestamp (immutable)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    # Fetch sequence and created_at on flush so history reads never lazy-load
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        Index("ix_event_logs_learner_subject", "learner_id", "subject_id"),
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.learner_id}:{self.subject_id}>"
