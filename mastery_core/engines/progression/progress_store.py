"""
Progress Store - persistence seam for learners, subject progress and the catalogue.

The engine only talks to the abstract ProgressStore. Two implementations ship:

- InMemoryProgressStore: process-local dicts, used by tests and the stub app
- SqlProgressStore: SQLAlchemy async session, one transaction per request

Saves are whole-record overwrites keyed by (learner, subject); the last writer wins and
every save bumps `revision`.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mastery_core.engines.progression.errors import LearnerNotFoundError
from mastery_core.engines.progression.models import (
    EducationalStage,
    EnrollmentTrack,
    Learner,
    MasteryLevel,
    ScoreRecord,
    Subject,
    SubjectProgress,
    TransitionEnrollment,
    TransitionSource,
)
from mastery_core.kernel.events.event_store import EventStore
from mastery_core.kernel.models.event_log import EventType
from mastery_core.kernel.models.learner import LearnerRecord
from mastery_core.kernel.models.progress import SubjectProgressRecord
from mastery_core.kernel.models.subject import SubjectRecord
from mastery_core.logging_config import get_logger

logger = get_logger(__name__)


class ProgressEvent(BaseModel):
    """Audit event as seen through the store interface."""

    event_type: EventType
    learner_id: Optional[uuid.UUID] = None
    subject_id: Optional[str] = None
    payload: Dict[str, Any] = {}
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProgressStore(ABC):
    """Async persistence interface consumed by the progression engine."""

    @abstractmethod
    async def get_learner(self, learner_id: uuid.UUID) -> Optional[Learner]:
        ...

    @abstractmethod
    async def save_learner(self, learner: Learner) -> Learner:
        ...

    @abstractmethod
    async def get_progress(self, learner_id: uuid.UUID, subject_id: str) -> Optional[SubjectProgress]:
        ...

    @abstractmethod
    async def save_progress(self, progress: SubjectProgress) -> SubjectProgress:
        """Overwrite the (learner, subject) record and return it with revision bumped."""

    @abstractmethod
    async def list_progress(self, learner_id: uuid.UUID) -> List[SubjectProgress]:
        ...

    @abstractmethod
    async def remove_progress(self, learner_id: uuid.UUID, subject_id: str) -> bool:
        """Delete a subject's progress. Returns False if there was none."""

    @abstractmethod
    async def set_track_everywhere(self, learner_id: uuid.UUID, track: EnrollmentTrack) -> int:
        """
        Rewrite `track` on the learner and on every SubjectProgress in one atomic step.

        Returns the number of progress records updated.
        """

    @abstractmethod
    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        ...

    @abstractmethod
    async def list_subjects(self) -> List[Subject]:
        ...

    @abstractmethod
    async def save_subject(self, subject: Subject) -> Subject:
        ...

    @abstractmethod
    async def record_event(
        self,
        event_type: EventType,
        learner_id: Optional[uuid.UUID] = None,
        subject_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    @abstractmethod
    async def list_events(
        self,
        learner_id: uuid.UUID,
        subject_id: Optional[str] = None,
    ) -> List[ProgressEvent]:
        """Events for a learner, oldest first."""


class InMemoryProgressStore(ProgressStore):
    """Dict-backed store. Records are copied on the way in and out."""

    def __init__(self):
        self._learners: Dict[uuid.UUID, Learner] = {}
        self._progress: Dict[tuple, SubjectProgress] = {}
        self._subjects: Dict[str, Subject] = {}
        self._events: List[ProgressEvent] = []

    async def get_learner(self, learner_id: uuid.UUID) -> Optional[Learner]:
        learner = self._learners.get(learner_id)
        return learner.model_copy(deep=True) if learner else None

    async def save_learner(self, learner: Learner) -> Learner:
        self._learners[learner.id] = learner.model_copy(deep=True)
        return learner.model_copy(deep=True)

    async def get_progress(self, learner_id: uuid.UUID, subject_id: str) -> Optional[SubjectProgress]:
        progress = self._progress.get((learner_id, subject_id))
        return progress.model_copy(deep=True) if progress else None

    async def save_progress(self, progress: SubjectProgress) -> SubjectProgress:
        key = (progress.learner_id, progress.subject_id)
        current = self._progress.get(key)
        revision = (current.revision if current else 0) + 1
        stored = progress.model_copy(update={"revision": revision}, deep=True)
        self._progress[key] = stored
        return stored.model_copy(deep=True)

    async def list_progress(self, learner_id: uuid.UUID) -> List[SubjectProgress]:
        return [
            p.model_copy(deep=True)
            for (owner, _), p in sorted(self._progress.items(), key=lambda kv: kv[0][1])
            if owner == learner_id
        ]

    async def remove_progress(self, learner_id: uuid.UUID, subject_id: str) -> bool:
        return self._progress.pop((learner_id, subject_id), None) is not None

    async def set_track_everywhere(self, learner_id: uuid.UUID, track: EnrollmentTrack) -> int:
        # Build every new record first, then swap them in together
        updated = {
            key: p.model_copy(update={"track": track, "revision": p.revision + 1})
            for key, p in self._progress.items()
            if key[0] == learner_id
        }
        learner = self._learners.get(learner_id)
        if learner is not None:
            self._learners[learner_id] = learner.model_copy(update={"track": track})
        self._progress.update(updated)
        return len(updated)

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        subject = self._subjects.get(subject_id)
        return subject.model_copy(deep=True) if subject else None

    async def list_subjects(self) -> List[Subject]:
        return [s.model_copy(deep=True) for _, s in sorted(self._subjects.items())]

    async def save_subject(self, subject: Subject) -> Subject:
        self._subjects[subject.id] = subject.model_copy(deep=True)
        return subject

    async def record_event(
        self,
        event_type: EventType,
        learner_id: Optional[uuid.UUID] = None,
        subject_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._events.append(
            ProgressEvent(
                event_type=event_type,
                learner_id=learner_id,
                subject_id=subject_id,
                payload=dict(payload or {}),
            )
        )

    async def list_events(
        self,
        learner_id: uuid.UUID,
        subject_id: Optional[str] = None,
    ) -> List[ProgressEvent]:
        return [
            e for e in self._events
            if e.learner_id == learner_id and (subject_id is None or e.subject_id == subject_id)
        ]


class SqlProgressStore(ProgressStore):
    """
    SQLAlchemy-backed store.

    Operates inside the caller's session; the caller commits (the API dependency
    commits once per request, so an engine call is one transaction).
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    # ── row <-> model mapping ───────────────────────────────────────────

    @staticmethod
    def _learner_from_row(row: LearnerRecord) -> Learner:
        transition = None
        if row.transition_structure is not None:
            transition = TransitionEnrollment(
                target_age=row.transition_target_age,
                target_structure=row.transition_structure,
                source_program=TransitionSource(row.transition_source) if row.transition_source else None,
                enrolled_on=row.transition_enrolled_on,
                expires_on=row.transition_expires_on,
            )
        return Learner(
            id=row.id,
            name=row.name,
            age=row.age,
            cultural_background=row.cultural_background,
            accessibility_flags=list(row.accessibility_flags or []),
            preferred_language=row.preferred_language,
            track=EnrollmentTrack(row.track),
            xp=row.xp,
            learner_level=row.learner_level,
            transition=transition,
        )

    @staticmethod
    def _learner_columns(learner: Learner) -> Dict[str, Any]:
        t = learner.transition
        return {
            "name": learner.name,
            "age": learner.age,
            "cultural_background": learner.cultural_background,
            "accessibility_flags": list(learner.accessibility_flags),
            "preferred_language": learner.preferred_language,
            "track": learner.track.value,
            "xp": learner.xp,
            "learner_level": learner.learner_level,
            "transition_target_age": t.target_age if t else None,
            "transition_structure": t.target_structure if t else None,
            "transition_source": t.source_program.value if t and t.source_program else None,
            "transition_enrolled_on": t.enrolled_on if t else None,
            "transition_expires_on": t.expires_on if t else None,
        }

    @staticmethod
    def _progress_from_row(row: SubjectProgressRecord) -> SubjectProgress:
        return SubjectProgress(
            learner_id=row.learner_id,
            subject_id=row.subject_id,
            level=MasteryLevel(row.level),
            lesson_index=row.lesson_index,
            is_placed=row.is_placed,
            last_score=ScoreRecord(**row.last_score) if row.last_score else None,
            track=EnrollmentTrack(row.track),
            is_fast_track=row.is_fast_track,
            fast_track_duration=row.fast_track_duration,
            relearn_active=row.relearn_active,
            relearn_stage=EducationalStage(row.relearn_stage) if row.relearn_stage else None,
            specializations=list(row.specializations or []),
            completed_exercises=list(row.completed_exercises or []),
            completed_media=list(row.completed_media or []),
            awaiting_verification=row.awaiting_verification,
            revision=row.revision,
        )

    @staticmethod
    def _progress_columns(progress: SubjectProgress) -> Dict[str, Any]:
        return {
            "level": progress.level.value,
            "lesson_index": progress.lesson_index,
            "is_placed": progress.is_placed,
            "last_score": progress.last_score.model_dump() if progress.last_score else None,
            "track": progress.track.value,
            "is_fast_track": progress.is_fast_track,
            "fast_track_duration": progress.fast_track_duration,
            "relearn_active": progress.relearn_active,
            "relearn_stage": progress.relearn_stage.value if progress.relearn_stage else None,
            "specializations": list(progress.specializations),
            "completed_exercises": list(progress.completed_exercises),
            "completed_media": list(progress.completed_media),
            "awaiting_verification": progress.awaiting_verification,
        }

    # ── learners ────────────────────────────────────────────────────────

    async def get_learner(self, learner_id: uuid.UUID) -> Optional[Learner]:
        row = await self.session.get(LearnerRecord, learner_id)
        return self._learner_from_row(row) if row else None

    async def save_learner(self, learner: Learner) -> Learner:
        row = await self.session.get(LearnerRecord, learner.id)
        columns = self._learner_columns(learner)
        if row is None:
            row = LearnerRecord(id=learner.id, **columns)
            self.session.add(row)
        else:
            for key, value in columns.items():
                setattr(row, key, value)
        await self.session.flush()
        return learner

    # ── subject progress ────────────────────────────────────────────────

    async def _progress_row(self, learner_id: uuid.UUID, subject_id: str) -> Optional[SubjectProgressRecord]:
        result = await self.session.execute(
            select(SubjectProgressRecord).where(
                SubjectProgressRecord.learner_id == learner_id,
                SubjectProgressRecord.subject_id == subject_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_progress(self, learner_id: uuid.UUID, subject_id: str) -> Optional[SubjectProgress]:
        row = await self._progress_row(learner_id, subject_id)
        return self._progress_from_row(row) if row else None

    async def save_progress(self, progress: SubjectProgress) -> SubjectProgress:
        row = await self._progress_row(progress.learner_id, progress.subject_id)
        columns = self._progress_columns(progress)
        if row is None:
            row = SubjectProgressRecord(
                learner_id=progress.learner_id,
                subject_id=progress.subject_id,
                revision=1,
                **columns,
            )
            self.session.add(row)
        else:
            for key, value in columns.items():
                setattr(row, key, value)
            row.revision = row.revision + 1
        await self.session.flush()
        return self._progress_from_row(row)

    async def list_progress(self, learner_id: uuid.UUID) -> List[SubjectProgress]:
        result = await self.session.execute(
            select(SubjectProgressRecord)
            .where(SubjectProgressRecord.learner_id == learner_id)
            .order_by(SubjectProgressRecord.subject_id)
        )
        return [self._progress_from_row(row) for row in result.scalars().all()]

    async def remove_progress(self, learner_id: uuid.UUID, subject_id: str) -> bool:
        result = await self.session.execute(
            delete(SubjectProgressRecord).where(
                SubjectProgressRecord.learner_id == learner_id,
                SubjectProgressRecord.subject_id == subject_id,
            )
        )
        await self.session.flush()
        return result.rowcount > 0

    async def set_track_everywhere(self, learner_id: uuid.UUID, track: EnrollmentTrack) -> int:
        await self.session.execute(
            update(LearnerRecord)
            .where(LearnerRecord.id == learner_id)
            .values(track=track.value)
        )
        result = await self.session.execute(
            update(SubjectProgressRecord)
            .where(SubjectProgressRecord.learner_id == learner_id)
            .values(track=track.value, revision=SubjectProgressRecord.revision + 1)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        logger.debug(
            "Track rewritten",
            extra={"track": track.value, "rows": result.rowcount},
        )
        return result.rowcount

    # ── catalogue ───────────────────────────────────────────────────────

    @staticmethod
    def _subject_from_row(row: SubjectRecord) -> Subject:
        return Subject(
            id=row.id,
            name=row.name,
            category=row.category,
            description=row.description,
            subtopics=list(row.subtopics or []),
            exercises_per_lesson=row.exercises_per_lesson,
            is_user_generated=row.is_user_generated,
        )

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        row = await self.session.get(SubjectRecord, subject_id)
        return self._subject_from_row(row) if row else None

    async def list_subjects(self) -> List[Subject]:
        result = await self.session.execute(select(SubjectRecord).order_by(SubjectRecord.id))
        return [self._subject_from_row(row) for row in result.scalars().all()]

    async def save_subject(self, subject: Subject) -> Subject:
        row = await self.session.get(SubjectRecord, subject.id)
        columns = subject.model_dump(exclude={"id"})
        if row is None:
            self.session.add(SubjectRecord(id=subject.id, **columns))
        else:
            for key, value in columns.items():
                setattr(row, key, value)
        await self.session.flush()
        return subject

    # ── events ──────────────────────────────────────────────────────────

    async def record_event(
        self,
        event_type: EventType,
        learner_id: Optional[uuid.UUID] = None,
        subject_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.event_store.log(
            event_type=event_type,
            learner_id=learner_id,
            subject_id=subject_id,
            payload=payload,
        )

    async def list_events(
        self,
        learner_id: uuid.UUID,
        subject_id: Optional[str] = None,
    ) -> List[ProgressEvent]:
        await self.session.flush()
        rows = await self.event_store.get_learner_history(learner_id, subject_id=subject_id, limit=1000)
        return [
            ProgressEvent(
                event_type=EventType(row.event_type),
                learner_id=row.learner_id,
                subject_id=row.subject_id,
                payload=row.payload or {},
                created_at=row.created_at,
            )
            for row in reversed(rows)
        ]


# ── helpers shared by the engine, the pipeline and the pathway router ──

async def require_learner(store: ProgressStore, learner_id: uuid.UUID) -> Learner:
    learner = await store.get_learner(learner_id)
    if learner is None:
        raise LearnerNotFoundError(f"Learner {learner_id} not found")
    return learner


async def load_or_init_progress(
    store: ProgressStore,
    learner: Learner,
    subject_id: str,
) -> Tuple[SubjectProgress, bool]:
    """
    Return the stored progress for (learner, subject), or fresh defaults.

    The flag is True when the record did not exist yet; it is not persisted here.
    """
    progress = await store.get_progress(learner.id, subject_id)
    if progress is not None:
        return progress, False
    return SubjectProgress(learner_id=learner.id, subject_id=subject_id, track=learner.track), True
