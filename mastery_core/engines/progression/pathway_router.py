"""
Pathway Router - enrollment track, fast-track, relearn, transition and placement.

None of these pathways touch the pass threshold or the level order. Fast-track is a
pacing hint for lesson requests; relearn and transition lessons are special completions
that never move a subject's level or lesson index.
"""

import uuid
from datetime import date, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional

from mastery_core.engines.progression.errors import PathwayError, ProgressNotFoundError
from mastery_core.engines.progression.level_registry import LevelRegistry
from mastery_core.engines.progression.models import (
    DEFAULT_FAST_TRACK_DURATION,
    FAST_TRACK_DURATIONS,
    EducationalStage,
    EnrollmentTrack,
    Learner,
    MasteryLevel,
    SubjectProgress,
    TransitionEnrollment,
    TransitionSource,
)
from mastery_core.engines.progression.patches import (
    LearnerPatch,
    SubjectProgressPatch,
    apply_learner_patch,
    apply_progress_patch,
)
from mastery_core.engines.progression.progress_store import (
    ProgressStore,
    load_or_init_progress,
    require_learner,
)
from mastery_core.kernel.models.event_log import EventType
from mastery_core.logging_config import get_logger

logger = get_logger(__name__)

_PRIMARY_ENTRY = frozenset({"6-3-3", "4-4-4", "8-4"})
_SECONDARY_ENTRY = frozenset({"6-3-3", "8-3", "7-3"})

# Enrollment age -> school structures a learner of that age may bridge into
TRANSITION_ELIGIBILITY: Dict[int, FrozenSet[str]] = {
    6: _PRIMARY_ENTRY,
    7: _PRIMARY_ENTRY,
    12: _SECONDARY_ENTRY,
    15: _SECONDARY_ENTRY,
    18: _SECONDARY_ENTRY,
}
TRANSITION_DURATION = timedelta(days=365)


def eligible_structures(age: int) -> List[str]:
    return sorted(TRANSITION_ELIGIBILITY.get(age, frozenset()))


def transition_is_active(learner: Learner, today: date) -> bool:
    return learner.transition is not None and learner.transition.is_active(today)


class PathwayRouter:
    """
    Applies pathway and placement changes through typed patches.

    Every operation loads the record, merges a patch, saves and logs one event.
    """

    def __init__(
        self,
        store: ProgressStore,
        registry: LevelRegistry,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.registry = registry
        self._today = today or date.today

    async def _patch_subject(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        patch: SubjectProgressPatch,
        event_type: EventType,
        payload: Optional[dict] = None,
    ) -> SubjectProgress:
        learner = await require_learner(self.store, learner_id)
        progress, _ = await load_or_init_progress(self.store, learner, subject_id)
        updated = apply_progress_patch(progress, patch, self.registry)
        saved = await self.store.save_progress(updated)
        await self.store.record_event(
            event_type,
            learner_id=learner_id,
            subject_id=subject_id,
            payload=payload or patch.model_dump(mode="json", exclude_unset=True),
        )
        return saved

    # ── enrollment track ────────────────────────────────────────────────

    async def change_track(self, learner_id: uuid.UUID, track: EnrollmentTrack) -> int:
        """Rewrite the track on the learner and every subject at once. Nothing else changes."""
        learner = await require_learner(self.store, learner_id)
        updated = await self.store.set_track_everywhere(learner_id, track)
        await self.store.record_event(
            EventType.TRACK_CHANGED,
            learner_id=learner_id,
            payload={"from_track": learner.track.value, "to_track": track.value, "subjects": updated},
        )
        logger.info("Track changed", extra={"to_track": track.value, "subjects": updated})
        return updated

    # ── fast-track ──────────────────────────────────────────────────────

    async def enable_fast_track(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        duration: int = DEFAULT_FAST_TRACK_DURATION,
    ) -> SubjectProgress:
        if duration not in FAST_TRACK_DURATIONS:
            raise PathwayError(
                f"Fast-track duration {duration} is not one of {FAST_TRACK_DURATIONS}"
            )
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(is_fast_track=True, fast_track_duration=duration),
            EventType.FAST_TRACK_ENABLED,
        )

    async def disable_fast_track(self, learner_id: uuid.UUID, subject_id: str) -> SubjectProgress:
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(is_fast_track=False),
            EventType.FAST_TRACK_DISABLED,
        )

    # ── relearn ─────────────────────────────────────────────────────────

    async def start_relearn(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        stage: EducationalStage,
    ) -> SubjectProgress:
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(relearn_active=True, relearn_stage=stage),
            EventType.RELEARN_STARTED,
        )

    async def stop_relearn(self, learner_id: uuid.UUID, subject_id: str) -> SubjectProgress:
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(relearn_active=False, relearn_stage=None),
            EventType.RELEARN_STOPPED,
        )

    # ── transition ──────────────────────────────────────────────────────

    async def enroll_transition(
        self,
        learner_id: uuid.UUID,
        target_structure: str,
        source_program: Optional[TransitionSource] = None,
    ) -> Learner:
        """
        Enroll a learner into a 365-day transition programme.

        Eligibility is by the learner's current age and the target school structure.
        """
        learner = await require_learner(self.store, learner_id)
        allowed = TRANSITION_ELIGIBILITY.get(learner.age)
        if not allowed:
            raise PathwayError(f"Age {learner.age} is not a transition enrollment age")
        if target_structure not in allowed:
            raise PathwayError(
                f"Structure {target_structure} is not available at age {learner.age}; "
                f"choose one of {sorted(allowed)}"
            )

        today = self._today()
        enrollment = TransitionEnrollment(
            target_age=learner.age,
            target_structure=target_structure,
            source_program=source_program,
            enrolled_on=today,
            expires_on=today + TRANSITION_DURATION,
        )
        updated = apply_learner_patch(learner, LearnerPatch(transition=enrollment))
        saved = await self.store.save_learner(updated)
        await self.store.record_event(
            EventType.TRANSITION_ENROLLED,
            learner_id=learner_id,
            payload=enrollment.model_dump(mode="json"),
        )
        logger.info(
            "Transition enrollment created",
            extra={"structure": target_structure, "expires_on": enrollment.expires_on.isoformat()},
        )
        return saved

    # ── placement and subject bookkeeping ───────────────────────────────

    async def apply_placement(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        level: MasteryLevel,
    ) -> SubjectProgress:
        """Place a learner at `level`, lesson 1. Any pending verification is dropped."""
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(
                level=level,
                lesson_index=1,
                is_placed=True,
                awaiting_verification=False,
            ),
            EventType.PLACEMENT_APPLIED,
        )

    async def set_specializations(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        tags: List[str],
    ) -> SubjectProgress:
        cleaned = list(dict.fromkeys(t.strip() for t in tags if t and t.strip()))
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(specializations=cleaned),
            EventType.SPECIALIZATIONS_SET,
        )

    async def mark_media_complete(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        media_id: str,
    ) -> SubjectProgress:
        """Record a consumed media resource. Has no effect on lesson or level."""
        if not media_id.strip():
            raise ValueError("media_id must not be empty")
        learner = await require_learner(self.store, learner_id)
        progress, _ = await load_or_init_progress(self.store, learner, subject_id)
        media = list(dict.fromkeys([*progress.completed_media, media_id]))
        return await self._patch_subject(
            learner_id,
            subject_id,
            SubjectProgressPatch(completed_media=media),
            EventType.MEDIA_COMPLETED,
            payload={"media_id": media_id},
        )

    async def remove_subject(self, learner_id: uuid.UUID, subject_id: str) -> None:
        await require_learner(self.store, learner_id)
        removed = await self.store.remove_progress(learner_id, subject_id)
        if not removed:
            raise ProgressNotFoundError(f"No progress for subject {subject_id}")
        await self.store.record_event(
            EventType.SUBJECT_REMOVED,
            learner_id=learner_id,
            subject_id=subject_id,
        )
