"""
Typed partial updates for progression records.

Patches carry only the fields a caller explicitly set. The reducers merge them into a
fresh entity and reject any result that breaks level / lesson consistency, so no
caller can write an out-of-range lesson index or a half-configured pathway.
"""

from typing import List, Optional

from pydantic import BaseModel, ValidationError

from mastery_core.engines.progression.errors import ProgressInvariantError
from mastery_core.engines.progression.level_registry import LevelRegistry
from mastery_core.engines.progression.models import (
    FAST_TRACK_DURATIONS,
    EducationalStage,
    EnrollmentTrack,
    Learner,
    MasteryLevel,
    ScoreRecord,
    SubjectProgress,
    TransitionEnrollment,
)


class SubjectProgressPatch(BaseModel):
    """Partial update for a SubjectProgress. Unset fields are left alone."""

    level: Optional[MasteryLevel] = None
    lesson_index: Optional[int] = None
    is_placed: Optional[bool] = None
    last_score: Optional[ScoreRecord] = None
    track: Optional[EnrollmentTrack] = None
    is_fast_track: Optional[bool] = None
    fast_track_duration: Optional[int] = None
    relearn_active: Optional[bool] = None
    relearn_stage: Optional[EducationalStage] = None
    specializations: Optional[List[str]] = None
    completed_exercises: Optional[List[str]] = None
    completed_media: Optional[List[str]] = None
    awaiting_verification: Optional[bool] = None


class LearnerProfilePatch(BaseModel):
    """Partial update for the descriptive fields of a Learner."""

    name: Optional[str] = None
    age: Optional[int] = None
    cultural_background: Optional[str] = None
    accessibility_flags: Optional[List[str]] = None
    preferred_language: Optional[str] = None


class LearnerPatch(LearnerProfilePatch):
    """
    Partial update for any Learner field.

    Track, experience and transition are owned by the pathway router and the
    completion callbacks; outside callers only get LearnerProfilePatch.
    """

    track: Optional[EnrollmentTrack] = None
    xp: Optional[int] = None
    learner_level: Optional[int] = None
    transition: Optional[TransitionEnrollment] = None


PROFILE_FIELDS = frozenset(LearnerProfilePatch.model_fields)


def check_progress_invariants(progress: SubjectProgress, registry: LevelRegistry) -> None:
    """Raise ProgressInvariantError if the record is internally inconsistent."""
    chapters = registry.chapter_count(progress.level)
    if not 1 <= progress.lesson_index <= chapters:
        raise ProgressInvariantError(
            f"lesson_index {progress.lesson_index} outside 1..{chapters} for level {progress.level.value}"
        )
    if progress.fast_track_duration not in FAST_TRACK_DURATIONS:
        raise ProgressInvariantError(
            f"fast_track_duration {progress.fast_track_duration} is not one of {FAST_TRACK_DURATIONS}"
        )
    if progress.relearn_active and progress.relearn_stage is None:
        raise ProgressInvariantError("relearn_active requires a relearn_stage")


def apply_progress_patch(
    progress: SubjectProgress,
    patch: SubjectProgressPatch,
    registry: LevelRegistry,
) -> SubjectProgress:
    """Return a new SubjectProgress with the patch merged in."""
    changes = patch.model_dump(exclude_unset=True)
    try:
        merged = SubjectProgress.model_validate({**progress.model_dump(), **changes})
    except ValidationError as exc:
        raise ProgressInvariantError(str(exc)) from exc
    check_progress_invariants(merged, registry)
    return merged


def apply_learner_patch(learner: Learner, patch: LearnerProfilePatch) -> Learner:
    """Return a new Learner with the patch merged in."""
    changes = patch.model_dump(exclude_unset=True)
    try:
        merged = Learner.model_validate({**learner.model_dump(), **changes})
    except ValidationError as exc:
        raise ProgressInvariantError(str(exc)) from exc
    if merged.xp < 0 or merged.learner_level < 1:
        raise ProgressInvariantError(
            f"Invalid experience state xp={merged.xp} learner_level={merged.learner_level}"
        )
    return merged
