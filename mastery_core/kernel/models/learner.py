"""
Learner profile model.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import JSON, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mastery_core.kernel.models.base import Base, TimestampMixin, UuidPrimaryKeyMixin


class LearnerRecord(Base, UuidPrimaryKeyMixin, TimestampMixin):
    """
    A learner and their experience pool.

    Transition enrollment is flattened onto the row; all transition_* columns are
    null when the learner is not enrolled.
    """

    __tablename__ = "learners"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    cultural_background: Mapped[str] = mapped_column(String(100), nullable=False, default="Global")
    accessibility_flags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    preferred_language: Mapped[str] = mapped_column(String(50), nullable=False, default="English")
    track: Mapped[str] = mapped_column(String(50), nullable=False, default="Standard")

    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    learner_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    transition_target_age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    transition_structure: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    transition_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    transition_enrolled_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    transition_expires_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<LearnerRecord {self.id} level={self.learner_level}>"
