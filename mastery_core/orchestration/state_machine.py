"""
Lesson advancement state machine.

A submitted exercise set moves IN_LESSON -> SCORING and then to exactly one outcome:

- SPECIAL_COMPLETION: relearn / transition lesson, certificate issued, position untouched
- ADVANCE: lesson index + 1 within the current level
- LEVEL_COMPLETE: last lesson of the level, hand off to verification

Valid transitions are defined here; anything else raises InvalidTransitionError.
"""

from enum import Enum
from typing import Dict, List, Set, Tuple

from mastery_core.engines.progression.errors import (
    InvalidTransitionError,
    ProgressInvariantError,
)
from mastery_core.engines.progression.level_registry import LevelRegistry
from mastery_core.engines.progression.models import Learner, SubjectProgress


class LessonState(str, Enum):
    IN_LESSON = "in_lesson"
    SCORING = "scoring"
    ADVANCE = "advance"
    LEVEL_COMPLETE = "level_complete"
    SPECIAL_COMPLETION = "special_completion"


class LessonKind(str, Enum):
    """What kind of lesson a submission belongs to."""
    REGULAR = "regular"
    RELEARN = "relearn"
    TRANSITION = "transition"

    @property
    def is_special(self) -> bool:
        return self != LessonKind.REGULAR


# from_state -> allowed to_states
_TRANSITIONS: Dict[LessonState, Set[LessonState]] = {
    LessonState.IN_LESSON: {LessonState.SCORING},
    LessonState.SCORING: {
        LessonState.ADVANCE,
        LessonState.LEVEL_COMPLETE,
        LessonState.SPECIAL_COMPLETION,
    },
    LessonState.ADVANCE: {LessonState.IN_LESSON},
    LessonState.SPECIAL_COMPLETION: {LessonState.IN_LESSON},
    # Verification resolves a completed level back into a lesson (same or next level)
    LessonState.LEVEL_COMPLETE: {LessonState.IN_LESSON},
}

# Experience points per exercise in a lesson's pool
XP_PER_EXERCISE = 100


def valid_transitions(from_state: LessonState) -> List[LessonState]:
    """Return list of valid target states from given state."""
    return sorted(_TRANSITIONS.get(from_state, set()), key=lambda s: s.value)


def can_transition(from_state: LessonState, to_state: LessonState) -> bool:
    return to_state in _TRANSITIONS.get(from_state, set())


class LessonStateMachine:
    """Tracks one submission through the lesson states."""

    def __init__(self, state: LessonState = LessonState.IN_LESSON):
        self.state = state
        self.history: List[Tuple[LessonState, LessonState]] = []

    def transition(self, to_state: LessonState) -> LessonState:
        if not can_transition(self.state, to_state):
            raise InvalidTransitionError(
                f"Invalid transition: {self.state.value} -> {to_state.value}"
            )
        self.history.append((self.state, to_state))
        self.state = to_state
        return self.state


def decide_outcome(
    progress: SubjectProgress,
    submitted_lesson_index: int,
    kind: LessonKind,
    registry: LevelRegistry,
) -> LessonState:
    """
    Pick the terminal state for a scored submission.

    Special lessons bypass the lesson index entirely. For regular lessons the
    submitted index must match the stored one, otherwise the submission is stale.
    """
    if kind.is_special:
        return LessonState.SPECIAL_COMPLETION

    if submitted_lesson_index != progress.lesson_index:
        raise ProgressInvariantError(
            f"Stale submission: lesson {submitted_lesson_index} submitted, "
            f"stored lesson is {progress.lesson_index}"
        )

    if progress.lesson_index < registry.chapter_count(progress.level):
        return LessonState.ADVANCE
    return LessonState.LEVEL_COMPLETE


def xp_for_session(correct: int, total: int) -> int:
    """Share of the lesson's XP pool earned, proportional to correct answers."""
    return correct * XP_PER_EXERCISE if total > 0 else 0


def award_xp(learner: Learner, earned: int, xp_per_level: int) -> Tuple[int, int]:
    """
    Add earned experience to a learner's pool.

    Returns (new_xp, new_learner_level). Overflow past several levels carries over in
    full; nothing is lost.
    """
    if earned < 0:
        raise ValueError("xp_earned must be non-negative")
    total = learner.xp + earned
    return total % xp_per_level, learner.learner_level + total // xp_per_level
