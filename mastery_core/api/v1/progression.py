"""
Subject progression endpoints.

Lesson and level progress move only through /lessons/complete and /verification.
Everything else reads state, generates content or switches a pathway.
"""

from fastapi import APIRouter, Response, status

from mastery_core.api.deps import Engine, LearnerId
from mastery_core.engines.progression.models import SubjectProgress
from mastery_core.engines.progression.verification_pipeline import (
    VerificationResult,
    VerificationSubmission,
)
from mastery_core.orchestration.progression_engine import LessonCompletion, LessonPackage
from mastery_core.schemas.progression import (
    ExamPaperResponse,
    ExamQuestionOut,
    ExamStartBody,
    FastTrackBody,
    LessonCompleteBody,
    LessonRequestBody,
    MediaCompleteBody,
    PlacementBody,
    RelearnBody,
    SpecializationsBody,
)

router = APIRouter()


@router.get("", response_model=SubjectProgress)
async def get_progress(learner_id: LearnerId, subject_id: str, engine: Engine):
    """Current progress; defaults if the learner has not started the subject."""
    return await engine.get_progress(learner_id, subject_id)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def remove_subject(learner_id: LearnerId, subject_id: str, engine: Engine):
    await engine.pathways.remove_subject(learner_id, subject_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/lessons", response_model=LessonPackage)
async def request_lesson(
    learner_id: LearnerId,
    subject_id: str,
    body: LessonRequestBody,
    engine: Engine,
):
    """Generate the learner's current lesson, pitched by recent performance."""
    return await engine.request_lesson(
        learner_id,
        subject_id,
        language=body.language,
        theme=body.theme,
        kind=body.kind,
    )


@router.post("/lessons/complete", response_model=LessonCompletion)
async def complete_lesson(
    learner_id: LearnerId,
    subject_id: str,
    body: LessonCompleteBody,
    engine: Engine,
):
    return await engine.on_lesson_complete(
        learner_id,
        subject_id,
        lesson_index=body.lesson_index,
        correct=body.correct,
        total=body.total,
        xp_earned=body.xp_earned,
        kind=body.kind,
        exercise_indices=body.exercise_indices,
    )


@router.post("/exam", response_model=ExamPaperResponse)
async def start_exam(
    learner_id: LearnerId,
    subject_id: str,
    body: ExamStartBody,
    engine: Engine,
):
    """Issue the level-completion exam. Answers are kept server-side."""
    paper = await engine.start_exam(learner_id, subject_id, language=body.language)
    return ExamPaperResponse(
        exam_id=paper.id,
        subject_id=paper.subject_id,
        level=paper.level,
        time_limit_seconds=paper.time_limit_seconds,
        started_at=paper.started_at,
        questions=[
            ExamQuestionOut(number=i, question=q.question, options=q.options)
            for i, q in enumerate(paper.questions, start=1)
        ],
    )


@router.post("/verification", response_model=VerificationResult)
async def verify_level(
    learner_id: LearnerId,
    subject_id: str,
    submission: VerificationSubmission,
    engine: Engine,
):
    return await engine.on_level_verification_complete(learner_id, subject_id, submission)


@router.put("/fast-track", response_model=SubjectProgress)
async def enable_fast_track(learner_id: LearnerId, subject_id: str, body: FastTrackBody, engine: Engine):
    return await engine.pathways.enable_fast_track(learner_id, subject_id, body.duration)


@router.delete("/fast-track", response_model=SubjectProgress)
async def disable_fast_track(learner_id: LearnerId, subject_id: str, engine: Engine):
    return await engine.pathways.disable_fast_track(learner_id, subject_id)


@router.put("/relearn", response_model=SubjectProgress)
async def start_relearn(learner_id: LearnerId, subject_id: str, body: RelearnBody, engine: Engine):
    return await engine.pathways.start_relearn(learner_id, subject_id, body.stage)


@router.delete("/relearn", response_model=SubjectProgress)
async def stop_relearn(learner_id: LearnerId, subject_id: str, engine: Engine):
    return await engine.pathways.stop_relearn(learner_id, subject_id)


@router.put("/placement", response_model=SubjectProgress)
async def apply_placement(learner_id: LearnerId, subject_id: str, body: PlacementBody, engine: Engine):
    return await engine.pathways.apply_placement(learner_id, subject_id, body.level)


@router.put("/specializations", response_model=SubjectProgress)
async def set_specializations(
    learner_id: LearnerId,
    subject_id: str,
    body: SpecializationsBody,
    engine: Engine,
):
    return await engine.pathways.set_specializations(learner_id, subject_id, body.tags)


@router.post("/media", response_model=SubjectProgress)
async def mark_media_complete(
    learner_id: LearnerId,
    subject_id: str,
    body: MediaCompleteBody,
    engine: Engine,
):
    return await engine.pathways.mark_media_complete(learner_id, subject_id, body.media_id)
