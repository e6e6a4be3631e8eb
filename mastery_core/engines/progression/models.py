"""
Progression domain models.

Closed enums for every tag the engine branches on (levels, tracks, stages, program
types, completion methods) and the pydantic records owned by the Progress Store.
"""

import uuid
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MasteryLevel(str, Enum):
    """Mastery levels: 20 standard levels plus two maintenance levels."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"
    G = "G"
    H = "H"
    I = "I"  # noqa: E741
    J = "J"
    K = "K"
    L = "L"
    M = "M"
    N = "N"
    O = "O"  # noqa: E741
    P = "P"  # highest foundation level
    Q = "Q"  # first advanced level
    R = "R"
    S = "S"
    T = "T"  # highest advanced level
    BEYOND_P = "Beyond P"
    BEYOND_T = "Beyond T"


class LevelClassification(str, Enum):
    """Classification tag carried by each level."""
    MANDATORY = "mandatory"
    OPTIONAL = "optional"
    MAINTENANCE = "maintenance"


class BranchChoice(str, Enum):
    """Learner's choice at the foundation/advanced fork."""
    CONTINUE = "continue"  # into the advanced levels
    DIVERT = "divert"  # into foundation maintenance


class EnrollmentTrack(str, Enum):
    """Catalogue / dashboard scope. Never consulted by level ordering."""
    STANDARD = "Standard"
    SCHOOL = "School"
    UNIVERSITY = "University"
    DISTANCE_SCHOOL = "DistanceSchool"
    DISTANCE_UNIVERSITY = "DistanceUniversity"
    VOCATIONAL_SCHOOL = "VocationalSchool"
    VOCATIONAL_UNIVERSITY = "VocationalUniversity"
    DISTANCE_VOCATIONAL_SCHOOL = "DistanceVocationalSchool"
    DISTANCE_VOCATIONAL_UNIVERSITY = "DistanceVocationalUniversity"


class EducationalStage(str, Enum):
    """Relearn axis, ordered, independent of MasteryLevel."""
    PRESCHOOL = "Preschool"
    PRIMARY = "Primary"
    MIDDLE = "Middle"
    HIGH = "High"
    UNIVERSITY = "University"


class ProgramType(str, Enum):
    """Certificate program types."""
    REGULAR = "regular"
    FAST_TRACK = "fast-track"
    RELEARN = "relearn"
    TRANSITION = "transition"


class CompletionMethod(str, Enum):
    """The four mutually exclusive level-completion methods."""
    EXAM = "exam"
    PROJECT = "project"
    PERFORMANCE = "performance"
    QUESTIONNAIRE = "questionnaire"


class TransitionSource(str, Enum):
    """Programmes a transition learner may be bridging from."""
    KUMON = "Kumon"
    SAKAMOTO = "Sakamoto"
    EYE_LEVEL = "Eye Level"
    WINK_SMART_LEARNING = "Wink Smart Learning"


# Fast-track session lengths in minutes
FAST_TRACK_DURATIONS = (5, 10, 15, 30, 45, 60, 90, 120, 180)
DEFAULT_FAST_TRACK_DURATION = 30


class PerformanceSample(BaseModel):
    """A correct/total pair from one exercise set or verification attempt."""

    model_config = ConfigDict(frozen=True)

    correct: int = Field(ge=0)
    total: int = Field(gt=0)

    @model_validator(mode="after")
    def _correct_within_total(self) -> "PerformanceSample":
        if self.correct > self.total:
            raise ValueError(f"correct ({self.correct}) exceeds total ({self.total})")
        return self

    @property
    def skill_points(self) -> int:
        """round(correct / total * 100), half-up, in exact integer arithmetic."""
        return (200 * self.correct + self.total) // (2 * self.total)

    @property
    def momentum(self) -> float:
        return self.correct / self.total


class ScoreRecord(BaseModel):
    """Last performance sample persisted on a subject."""

    correct: int
    total: int
    skill_points: int
    grade_tier: Optional[str] = None

    def to_sample(self) -> PerformanceSample:
        return PerformanceSample(correct=self.correct, total=self.total)


class SubjectProgress(BaseModel):
    """Per (learner, subject) progression record."""

    learner_id: uuid.UUID
    subject_id: str
    level: MasteryLevel = MasteryLevel.A
    lesson_index: int = 1
    is_placed: bool = False
    last_score: Optional[ScoreRecord] = None
    track: EnrollmentTrack = EnrollmentTrack.STANDARD
    is_fast_track: bool = False
    fast_track_duration: int = DEFAULT_FAST_TRACK_DURATION
    relearn_active: bool = False
    relearn_stage: Optional[EducationalStage] = None
    specializations: List[str] = []
    # Orthogonal completion sets; neither gates the other
    completed_exercises: List[str] = []
    completed_media: List[str] = []
    awaiting_verification: bool = False
    revision: int = 0


class TransitionEnrollment(BaseModel):
    """Time-boxed bridging enrollment."""

    target_age: int
    target_structure: str
    source_program: Optional[TransitionSource] = None
    enrolled_on: date
    expires_on: date

    def is_active(self, today: date) -> bool:
        return self.enrolled_on <= today < self.expires_on


class Learner(BaseModel):
    """Learner profile record."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str
    age: int = 10
    cultural_background: str = "Global"
    accessibility_flags: List[str] = []
    preferred_language: str = "English"
    track: EnrollmentTrack = EnrollmentTrack.STANDARD
    xp: int = 0  # experience within the current learner level
    learner_level: int = 1
    transition: Optional[TransitionEnrollment] = None


class Certificate(BaseModel):
    """One-shot credential artifact. Never stored in the Progress Store."""

    model_config = ConfigDict(frozen=True)

    subject_name: str
    level: str
    issued_on: date
    learner_name: str
    program_type: ProgramType
    verification_id: str
    score: int
    grade_tier: str
    career_readiness: str


class Subject(BaseModel):
    """Catalogue entry, static or generated on demand."""

    id: str
    name: str
    category: str = "Custom"
    description: str = ""
    subtopics: List[str] = []
    exercises_per_lesson: int = 4
    is_user_generated: bool = False
