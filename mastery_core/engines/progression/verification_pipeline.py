"""
Level-Completion Verification Pipeline.

Runs once a subject reaches LEVEL_COMPLETE. One of four methods produces a (score, total)
pair; the pair becomes skill points and is compared against the pass threshold:

- pass: branch to the next level, lesson 1, certificate for the completed level
- fail: nothing moves; feedback is returned and the learner may try again later

Grading happens before any store mutation, so a grading failure leaves no trace.
"""

import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from mastery_core.ai.evaluator import EssayEvaluator
from mastery_core.engines.progression.certificate_issuer import (
    CertificateIssuer,
    resolve_program_type,
)
from mastery_core.engines.progression.errors import (
    ProgressInvariantError,
    ProgressNotFoundError,
)
from mastery_core.engines.progression.grader import ExamPaper, ExamResult, Grader
from mastery_core.engines.progression.level_registry import LevelRegistry
from mastery_core.engines.progression.models import (
    BranchChoice,
    Certificate,
    CompletionMethod,
    MasteryLevel,
    PerformanceSample,
    ScoreRecord,
    SubjectProgress,
)
from mastery_core.engines.progression.patches import SubjectProgressPatch, apply_progress_patch
from mastery_core.engines.progression.progress_store import ProgressStore, require_learner
from mastery_core.kernel.models.event_log import EventType
from mastery_core.logging_config import get_logger

logger = get_logger(__name__)


class VerificationSubmission(BaseModel):
    """A learner's attempt at verifying a completed level."""

    method: CompletionMethod
    # Exam
    exam_id: Optional[uuid.UUID] = None
    answers: List[Optional[str]] = []
    # Project / performance / questionnaire
    text: Optional[str] = None
    # Only consulted where the level offers a fork
    branch_choice: Optional[BranchChoice] = None


class VerificationResult(BaseModel):
    passed: bool
    skill_points: int
    threshold: int
    grade_tier: str
    correct: int
    total: int
    from_level: MasteryLevel
    to_level: Optional[MasteryLevel] = None
    timed_out: bool = False
    feedback: str = ""
    certificate: Optional[Certificate] = None
    progress: SubjectProgress


class ExamSessions:
    """
    Exam papers handed out and not yet submitted, keyed by exam id.

    A paper is bound to one (learner, subject) and can be redeemed once.
    """

    def __init__(self):
        self._papers: Dict[uuid.UUID, Tuple[uuid.UUID, ExamPaper]] = {}

    def open(self, learner_id: uuid.UUID, paper: ExamPaper) -> None:
        self._papers[paper.id] = (learner_id, paper)

    def redeem(self, exam_id: uuid.UUID, learner_id: uuid.UUID, subject_id: str) -> ExamPaper:
        entry = self._papers.get(exam_id)
        if entry is None or entry[0] != learner_id or entry[1].subject_id != subject_id:
            raise ProgressNotFoundError(f"No open exam {exam_id} for this learner and subject")
        del self._papers[exam_id]
        return entry[1]


class VerificationPipeline:
    """Grades level-completion attempts and applies the pass / fail outcome."""

    def __init__(
        self,
        store: ProgressStore,
        registry: LevelRegistry,
        issuer: CertificateIssuer,
        evaluator: EssayEvaluator,
        exams: Optional[ExamSessions] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.registry = registry
        self.issuer = issuer
        self.evaluator = evaluator
        self.exams = exams or ExamSessions()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def check_pending(progress: SubjectProgress) -> None:
        if not progress.awaiting_verification:
            raise ProgressInvariantError(
                f"Level {progress.level.value} of {progress.subject_id} is not awaiting verification"
            )

    async def grade(
        self,
        learner_id: uuid.UUID,
        progress: SubjectProgress,
        submission: VerificationSubmission,
    ) -> Tuple[PerformanceSample, bool, str]:
        """
        Reduce a submission to a sample.

        Returns (sample, timed_out, evaluator_feedback). Raises ValueError for an empty
        free-form submission and GradingError if the evaluator fails.
        """
        if submission.method == CompletionMethod.EXAM:
            if submission.exam_id is None:
                raise ValueError("An exam submission needs an exam_id")
            paper = self.exams.redeem(submission.exam_id, learner_id, progress.subject_id)
            elapsed = (self._clock() - paper.started_at).total_seconds()
            result: ExamResult = Grader.grade_exam(
                paper.questions,
                submission.answers,
                elapsed_seconds=elapsed,
                time_limit_seconds=paper.time_limit_seconds,
            )
            return result.to_sample(), result.timed_out, ""

        text = (submission.text or "").strip()
        if not text:
            raise ValueError(f"{submission.method.value} submission is empty")
        grade = await self.evaluator.evaluate(
            text,
            subject=progress.subject_id,
            level=progress.level.value,
            method=submission.method,
        )
        return Grader.free_form_sample(grade), False, grade.feedback

    async def resolve(
        self,
        learner_id: uuid.UUID,
        subject_id: str,
        sample: PerformanceSample,
        branch_choice: Optional[BranchChoice] = None,
        timed_out: bool = False,
        evaluator_feedback: str = "",
    ) -> VerificationResult:
        """Apply a graded attempt to the subject's progress."""
        learner = await require_learner(self.store, learner_id)
        progress = await self.store.get_progress(learner_id, subject_id)
        if progress is None:
            raise ProgressNotFoundError(f"No progress for subject {subject_id}")
        self.check_pending(progress)

        skill_points = sample.skill_points
        tier = Grader.grade_tier(skill_points)
        from_level = progress.level

        if not Grader.passed(skill_points):
            await self.store.record_event(
                EventType.VERIFICATION_FAILED,
                learner_id=learner_id,
                subject_id=subject_id,
                payload={"level": from_level.value, "skill_points": skill_points, "threshold": Grader.PASS_THRESHOLD},
            )
            logger.info(
                "Verification failed",
                extra={"subject_id": subject_id, "skill_points": skill_points},
            )
            feedback = (
                f"Scored {skill_points} skill points; {Grader.PASS_THRESHOLD} are needed to pass."
            )
            return VerificationResult(
                passed=False,
                skill_points=skill_points,
                threshold=Grader.PASS_THRESHOLD,
                grade_tier=tier,
                correct=sample.correct,
                total=sample.total,
                from_level=from_level,
                timed_out=timed_out,
                feedback=f"{feedback} {evaluator_feedback}".strip(),
                progress=progress,
            )

        to_level = self.registry.next_after(from_level, branch_choice)
        updated = apply_progress_patch(
            progress,
            SubjectProgressPatch(
                level=to_level,
                lesson_index=1,
                last_score=ScoreRecord(
                    correct=sample.correct,
                    total=sample.total,
                    skill_points=skill_points,
                    grade_tier=tier,
                ),
                awaiting_verification=False,
            ),
            self.registry,
        )

        subject = await self.store.get_subject(subject_id)
        certificate = self.issuer.issue(
            subject_name=subject.name if subject else subject_id,
            level=from_level.value,
            sample=sample,
            program_type=resolve_program_type(
                is_transition=False,
                is_relearn=False,
                is_fast_track=progress.is_fast_track,
            ),
            learner_name=learner.name,
        )

        saved = await self.store.save_progress(updated)
        await self.store.record_event(
            EventType.VERIFICATION_PASSED,
            learner_id=learner_id,
            subject_id=subject_id,
            payload={"level": from_level.value, "skill_points": skill_points, "grade_tier": tier},
        )
        await self.store.record_event(
            EventType.LEVEL_ADVANCED,
            learner_id=learner_id,
            subject_id=subject_id,
            payload={"from_level": from_level.value, "to_level": to_level.value},
        )
        await self.store.record_event(
            EventType.CERTIFICATE_ISSUED,
            learner_id=learner_id,
            subject_id=subject_id,
            payload=certificate.model_dump(mode="json"),
        )
        logger.info(
            "Level advanced",
            extra={"subject_id": subject_id, "from_level": from_level.value, "to_level": to_level.value},
        )

        return VerificationResult(
            passed=True,
            skill_points=skill_points,
            threshold=Grader.PASS_THRESHOLD,
            grade_tier=tier,
            correct=sample.correct,
            total=sample.total,
            from_level=from_level,
            to_level=to_level,
            timed_out=timed_out,
            feedback=evaluator_feedback,
            certificate=certificate,
            progress=saved,
        )
