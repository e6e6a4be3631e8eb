"""
Progression Engine - the facade the API and any client drive.

Lesson and level progress only ever change through the two completion callbacks:

- on_lesson_complete: a full exercise set was submitted
- on_level_verification_complete: a level-completion attempt was submitted

Everything else here either reads, requests content (generation is awaited before
any write, so a failed call leaves the store untouched) or delegates to the
PathwayRouter.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel

from mastery_core.ai.evaluator import EssayEvaluator
from mastery_core.ai.lesson_generator import (
    ExamRequest,
    FastTrackDirective,
    LearnerProfile,
    LessonContent,
    LessonGenerator,
    LessonRequest,
)
from mastery_core.config import Settings, get_settings
from mastery_core.engines.progression.certificate_issuer import (
    CertificateIssuer,
    resolve_program_type,
)
from mastery_core.engines.progression.errors import PathwayError, ProgressInvariantError
from mastery_core.engines.progression.grader import ExamPaper
from mastery_core.engines.progression.level_registry import LevelRegistry, get_level_registry
from mastery_core.engines.progression.models import (
    Certificate,
    Learner,
    MasteryLevel,
    PerformanceSample,
    ScoreRecord,
    Subject,
    SubjectProgress,
)
from mastery_core.engines.progression.patches import (
    PROFILE_FIELDS,
    LearnerPatch,
    LearnerProfilePatch,
    SubjectProgressPatch,
    apply_learner_patch,
    apply_progress_patch,
)
from mastery_core.engines.progression.pathway_router import PathwayRouter, transition_is_active
from mastery_core.engines.progression.progress_store import (
    ProgressEvent,
    ProgressStore,
    load_or_init_progress,
    require_learner,
)
from mastery_core.engines.progression.rigor_selector import (
    RigorBand,
    directive_text,
    select_directive,
)
from mastery_core.engines.progression.verification_pipeline import (
    ExamSessions,
    VerificationPipeline,
    VerificationResult,
    VerificationSubmission,
)
from mastery_core.kernel.models.event_log import EventType
from mastery_core.logging_config import get_logger
from mastery_core.orchestration.state_machine import (
    LessonKind,
    LessonState,
    LessonStateMachine,
    award_xp,
    decide_outcome,
    xp_for_session,
)

logger = get_logger(__name__)


class LessonPackage(BaseModel):
    """A generated lesson plus the position and rigor it was generated for."""

    subject_id: str
    level: MasteryLevel
    lesson_number: int
    kind: LessonKind
    rigor_band: RigorBand
    content: LessonContent


class LessonCompletion(BaseModel):
    """Outcome of one exercise-set submission."""

    state: LessonState
    skill_points: int
    xp_earned: int
    levels_gained: int
    learner: Learner
    progress: SubjectProgress
    certificate: Optional[Certificate] = None


class ProgressionEngine:
    """
    Wires the registry, store, collaborators and pipelines together.

    Usage:
        engine = ProgressionEngine(store, generator, evaluator)
        completion = await engine.on_lesson_complete(learner.id, "math", 1, correct=3, total=4)
    """

    def __init__(
        self,
        store: ProgressStore,
        generator: LessonGenerator,
        evaluator: EssayEvaluator,
        registry: Optional[LevelRegistry] = None,
        issuer: Optional[CertificateIssuer] = None,
        exams: Optional[ExamSessions] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.generator = generator
        self.registry = registry or get_level_registry()
        self.issuer = issuer or CertificateIssuer()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._today = today or date.today
        self.pathways = PathwayRouter(store, self.registry, today=self._today)
        self.verification = VerificationPipeline(
            store,
            self.registry,
            self.issuer,
            evaluator,
            exams=exams,
            clock=self._clock,
        )

    # ── learners ────────────────────────────────────────────────────────

    async def create_learner(self, learner: Learner) -> Learner:
        saved = await self.store.save_learner(learner)
        await self.store.record_event(
            EventType.LEARNER_CREATED,
            learner_id=saved.id,
            payload={"name": saved.name, "age": saved.age, "track": saved.track.value},
        )
        return saved

    async def update_learner(self, learner_id: uuid.UUID, patch: LearnerProfilePatch) -> Learner:
        """
        Change profile fields.

        Track, experience and transition enrollment only move through the pathway
        router and the completion callbacks.
        """
        locked = sorted(patch.model_fields_set - PROFILE_FIELDS)
        if locked:
            raise PathwayError(f"Fields cannot be set through a profile update: {', '.join(locked)}")
        learner = await require_learner(self.store, learner_id)
        saved = await self.store.save_learner(apply_learner_patch(learner, patch))
        await self.store.record_event(
            EventType.LEARNER_UPDATED,
            learner_id=learner_id,
            payload=patch.model_dump(mode="json", exclude_unset=True),
        )
        return saved

    async def get_learner(self, learner_id: uuid.UUID) -> Learner:
        return await require_learner(self.store, learner_id)

    async def get_progress(self, learner_id: uuid.UUID, subject_id: str) -> SubjectProgress:
        """Stored progress, or the defaults a first interaction would create."""
        learner = await require_learner(self.store, learner_id)
        progress, _ = await load_or_init_progress(self.store, learner, subject_id)
        return progress

    async def list_progress(self, learner_id: uuid.UUID) -> List[SubjectProgress]:
        await require_learner(self.store, learner_id)
        return await self.store.list_progress(learner_id)

    async def history(self, learner_id: uuid.UUID, subject_id: Optional[str] = None) -> List[ProgressEvent]:
        """Audit events for a learner, oldest first."""
        await require_learner(self.store, learner_id)
        return await self.store.list_events(learner_id, subject_id=subject_id)

    # ── catalogue ───────────────────────────────────────────────────────

    async def create_subject(self, query: str, language: str = "English") -> Subject:
        """Ask the generator to define a subject and add it to the catalogue."""
        if not query.strip():
            raise ValueError("Subject query must not be empty")
        subject = await self.generator.generate_subject(query, language)
        saved = await self.store.save_subject(subject)
        await self.store.record_event(
            EventType.SUBJECT_CREATED,
            subject_id=saved.id,
            payload={"name": saved.name, "query": query},
        )
        return saved

    async def list_subjects(self) -> List[Subject]:
        return await self.store.list_subjects()

    # ── lesson requests ─────────────────────────────────────────────────

    def _check_special_access(self, learner: Learner, progress: SubjectProgress, kind: LessonKind) -> None:
        if kind == LessonKind.RELEARN and not progress.relearn_active:
            raise PathwayError(f"Relearn is not active for {progress.subject_id}")
        if kind == LessonKind.TRANSITION and not transition_is_active(learner, self._today()):
            raise PathwayError("Learner has no active transition enrollment")

    async def request_lesson(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        language: Optional[str] = None,
        theme: Optional[str] = None,
        kind: LessonKind = LessonKind.REGULAR,
    ) -> LessonPackage:
        """
        Build a lesson request from the learner's state and generate the lesson.

        Without an explicit language the learner's preferred language is used. The
        progress record is only created once generation has succeeded.
        """
        learner = await require_learner(self.store, learner_id)
        progress, is_new = await load_or_init_progress(self.store, learner, subject_id)
        self._check_special_access(learner, progress, kind)

        sample = progress.last_score.to_sample() if progress.last_score else None
        band = select_directive(sample)
        subject = await self.store.get_subject(subject_id)

        request = LessonRequest(
            subject=subject.name if subject else subject_id,
            language=language or learner.preferred_language,
            level=progress.level.value,
            lesson_number=progress.lesson_index,
            learner_profile=LearnerProfile(
                age=learner.age,
                cultural_background=learner.cultural_background,
                accessibility_flags=learner.accessibility_flags,
            ),
            rigor_directive=directive_text(band),
            theme=theme,
            specialization_tags=progress.specializations,
            fast_track=FastTrackDirective(
                enabled=progress.is_fast_track,
                duration_minutes=progress.fast_track_duration,
            ),
            relearn_stage=(
                progress.relearn_stage.value
                if kind == LessonKind.RELEARN and progress.relearn_stage
                else None
            ),
            transition_structure=(
                learner.transition.target_structure
                if kind == LessonKind.TRANSITION and learner.transition
                else None
            ),
        )
        content = await self.generator.generate_lesson(request)

        if is_new:
            await self.store.save_progress(progress)

        logger.info(
            "Lesson requested",
            extra={"subject_id": subject_id, "level": request.level, "lesson": request.lesson_number, "rigor": band.value},
        )
        return LessonPackage(
            subject_id=subject_id,
            level=progress.level,
            lesson_number=progress.lesson_index,
            kind=kind,
            rigor_band=band,
            content=content,
        )

    async def start_exam(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        language: Optional[str] = None,
    ) -> ExamPaper:
        """Generate the level-completion exam for a subject awaiting verification."""
        learner = await require_learner(self.store, learner_id)
        progress, _ = await load_or_init_progress(self.store, learner, subject_id)
        if not progress.awaiting_verification:
            raise ProgressInvariantError(
                f"Level {progress.level.value} of {subject_id} is not awaiting verification"
            )
        subject = await self.store.get_subject(subject_id)
        questions = await self.generator.generate_exam(
            ExamRequest(
                subject=subject.name if subject else subject_id,
                language=language or learner.preferred_language,
                level=progress.level.value,
                question_count=self.settings.exam_question_count,
            )
        )
        paper = ExamPaper(
            subject_id=subject_id,
            level=progress.level.value,
            questions=questions,
            time_limit_seconds=self.settings.exam_time_limit_seconds,
            started_at=self._clock(),
        )
        self.verification.exams.open(learner_id, paper)
        return paper

    # ── completion callbacks ────────────────────────────────────────────

    async def on_lesson_complete(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        lesson_index: int,
        correct: int,
        total: int,
        xp_earned: Optional[int] = None,
        kind: LessonKind = LessonKind.REGULAR,
        exercise_indices: Optional[List[int]] = None,
    ) -> LessonCompletion:
        """
        Apply a completed exercise set.

        Special lessons (relearn, transition) issue a certificate and leave the subject's
        level and lesson index alone. Regular lessons advance the index or, on the last
        lesson of a level, mark the level as awaiting verification.
        """
        sample = PerformanceSample(correct=correct, total=total)
        learner = await require_learner(self.store, learner_id)
        progress, is_new = await load_or_init_progress(self.store, learner, subject_id)
        self._check_special_access(learner, progress, kind)

        machine = LessonStateMachine()
        machine.transition(LessonState.SCORING)
        outcome = decide_outcome(progress, lesson_index, kind, self.registry)
        machine.transition(outcome)

        earned = xp_for_session(correct, total) if xp_earned is None else xp_earned
        new_xp, new_level = award_xp(learner, earned, self.settings.xp_per_level)
        levels_gained = new_level - learner.learner_level
        learner = apply_learner_patch(learner, LearnerPatch(xp=new_xp, learner_level=new_level))

        certificate: Optional[Certificate] = None
        event_payload = {
            "lesson_index": lesson_index,
            "correct": correct,
            "total": total,
            "skill_points": sample.skill_points,
        }

        if outcome == LessonState.SPECIAL_COMPLETION:
            subject = await self.store.get_subject(subject_id)
            certificate = self._special_certificate(
                learner, progress, kind, sample, subject.name if subject else subject_id
            )
            if is_new:
                progress = await self.store.save_progress(progress)
            event_type = EventType.SPECIAL_COMPLETION
            event_payload["kind"] = kind.value
        else:
            score = ScoreRecord(correct=correct, total=total, skill_points=sample.skill_points)
            indices = exercise_indices if exercise_indices is not None else range(1, total + 1)
            keys = [f"{progress.level.value}:{progress.lesson_index}:{i}" for i in indices]
            exercises = list(dict.fromkeys([*progress.completed_exercises, *keys]))
            if outcome == LessonState.ADVANCE:
                patch = SubjectProgressPatch(
                    lesson_index=progress.lesson_index + 1,
                    last_score=score,
                    completed_exercises=exercises,
                )
                event_type = EventType.LESSON_ADVANCED
            else:
                patch = SubjectProgressPatch(
                    last_score=score,
                    completed_exercises=exercises,
                    awaiting_verification=True,
                )
                event_type = EventType.LEVEL_COMPLETE
            progress = await self.store.save_progress(
                apply_progress_patch(progress, patch, self.registry)
            )

        learner = await self.store.save_learner(learner)
        await self.store.record_event(event_type, learner_id=learner_id, subject_id=subject_id, payload=event_payload)
        if earned:
            await self.store.record_event(
                EventType.XP_AWARDED,
                learner_id=learner_id,
                payload={"earned": earned, "xp": new_xp, "learner_level": new_level},
            )
        if certificate is not None:
            await self.store.record_event(
                EventType.CERTIFICATE_ISSUED,
                learner_id=learner_id,
                subject_id=subject_id,
                payload=certificate.model_dump(mode="json"),
            )

        logger.info(
            "Lesson completed",
            extra={"subject_id": subject_id, "outcome": outcome.value, "skill_points": sample.skill_points},
        )
        return LessonCompletion(
            state=outcome,
            skill_points=sample.skill_points,
            xp_earned=earned,
            levels_gained=levels_gained,
            learner=learner,
            progress=progress,
            certificate=certificate,
        )

    def _special_certificate(
        self,
        learner: Learner,
        progress: SubjectProgress,
        kind: LessonKind,
        sample: PerformanceSample,
        subject_name: str,
    ) -> Certificate:
        if kind == LessonKind.RELEARN:
            level_label = progress.relearn_stage.value
        else:
            level_label = f"Transition {learner.transition.target_structure}"
        return self.issuer.issue(
            subject_name=subject_name,
            level=level_label,
            sample=sample,
            program_type=resolve_program_type(
                is_transition=kind == LessonKind.TRANSITION,
                is_relearn=kind == LessonKind.RELEARN,
                is_fast_track=progress.is_fast_track,
            ),
            learner_name=learner.name,
        )

    async def on_level_verification_complete(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        submission: VerificationSubmission,
    ) -> VerificationResult:
        """
        Grade a level-completion attempt and apply the outcome.

        Grading (including any evaluator call) finishes before the store is touched, and
        only starts once the level is awaiting verification, so an early attempt neither
        redeems the exam paper nor calls the evaluator.
        """
        learner = await require_learner(self.store, learner_id)
        progress, _ = await load_or_init_progress(self.store, learner, subject_id)
        self.verification.check_pending(progress)
        sample, timed_out, feedback = await self.verification.grade(learner_id, progress, submission)
        return await self.verification.resolve(
            learner_id,
            subject_id,
            sample,
            branch_choice=submission.branch_choice,
            timed_out=timed_out,
            evaluator_feedback=feedback,
        )
