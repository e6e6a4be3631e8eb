"""
Request / response schemas for the progression API.

Domain models (Learner, SubjectProgress, Certificate, ...) are returned as-is; the
schemas here cover request bodies and the few responses that must hide fields.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mastery_core.engines.progression.models import (
    DEFAULT_FAST_TRACK_DURATION,
    EducationalStage,
    EnrollmentTrack,
    MasteryLevel,
    TransitionSource,
)
from mastery_core.orchestration.state_machine import LessonKind


class LearnerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    age: int = Field(10, ge=2, le=120)
    cultural_background: str = "Global"
    accessibility_flags: List[str] = []
    preferred_language: str = "English"
    track: EnrollmentTrack = EnrollmentTrack.STANDARD


class LearnerProfileUpdate(BaseModel):
    """
    Profile fields a client may change.

    Track and transition have their own endpoints; experience is only earned.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    age: Optional[int] = Field(None, ge=2, le=120)
    cultural_background: Optional[str] = None
    accessibility_flags: Optional[List[str]] = None
    preferred_language: Optional[str] = None


class LessonRequestBody(BaseModel):
    # Falls back to the learner's preferred language
    language: Optional[str] = None
    theme: Optional[str] = None
    kind: LessonKind = LessonKind.REGULAR


class LessonCompleteBody(BaseModel):
    lesson_index: int = Field(..., ge=1)
    correct: int = Field(..., ge=0)
    total: int = Field(..., gt=0)
    xp_earned: Optional[int] = Field(None, ge=0)
    kind: LessonKind = LessonKind.REGULAR
    exercise_indices: Optional[List[int]] = None


class ExamStartBody(BaseModel):
    language: Optional[str] = None


class ExamQuestionOut(BaseModel):
    """Exam question without its answer key."""

    number: int
    question: str
    options: List[str] = []


class ExamPaperResponse(BaseModel):
    exam_id: uuid.UUID
    subject_id: str
    level: str
    time_limit_seconds: int
    started_at: datetime
    questions: List[ExamQuestionOut]


class TrackChangeBody(BaseModel):
    track: EnrollmentTrack


class TrackChangeResponse(BaseModel):
    track: EnrollmentTrack
    subjects_updated: int


class FastTrackBody(BaseModel):
    duration: int = DEFAULT_FAST_TRACK_DURATION


class RelearnBody(BaseModel):
    stage: EducationalStage


class TransitionBody(BaseModel):
    target_structure: str
    source_program: Optional[TransitionSource] = None


class TransitionOptionsResponse(BaseModel):
    age: int
    structures: List[str]


class PlacementBody(BaseModel):
    level: MasteryLevel


class SpecializationsBody(BaseModel):
    tags: List[str]


class MediaCompleteBody(BaseModel):
    media_id: str = Field(..., min_length=1)


class SubjectCreateBody(BaseModel):
    query: str = Field(..., min_length=1)
    language: str = "English"
