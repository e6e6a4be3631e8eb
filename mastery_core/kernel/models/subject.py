"""
Subject catalogue model.
"""

from typing import List

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mastery_core.kernel.models.base import Base, TimestampMixin


class SubjectRecord(Base, TimestampMixin):
    """Catalogue entry, seeded or generated on demand."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="Custom")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subtopics: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    exercises_per_lesson: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    is_user_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
