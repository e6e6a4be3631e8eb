"""
Per (learner, subject) progression rows.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mastery_core.kernel.models.base import (
    Base,
    RevisionMixin,
    TimestampMixin,
    UuidPrimaryKeyMixin,
)


class SubjectProgressRecord(Base, UuidPrimaryKeyMixin, TimestampMixin, RevisionMixin):
    """
    One row per (learner, subject).

    Saves overwrite the whole row and bump `revision`; the last writer wins.
    """

    __tablename__ = "subject_progress"

    learner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("learners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(String(100), nullable=False)

    level: Mapped[str] = mapped_column(String(20), nullable=False, default="A")
    lesson_index: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_placed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # {correct, total, skill_points, grade_tier}
    last_score: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    track: Mapped[str] = mapped_column(String(50), nullable=False, default="Standard")
    is_fast_track: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fast_track_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    relearn_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    relearn_stage: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    specializations: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    completed_exercises: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    completed_media: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    awaiting_verification: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("learner_id", "subject_id", name="uq_subject_progress_learner_subject"),
    )

    def __repr__(self) -> str:
        return f"<SubjectProgressRecord {self.learner_id}:{self.subject_id} {self.level}/{self.lesson_index}>"
