"""
FastAPI dependencies for database sessions, collaborators and the engine.
"""

import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from mastery_core.ai.evaluator import EssayEvaluator, get_essay_evaluator
from mastery_core.ai.lesson_generator import LessonGenerator, get_lesson_generator
from mastery_core.config import get_settings
from mastery_core.database import get_db
from mastery_core.engines.progression.certificate_issuer import CertificateIssuer
from mastery_core.engines.progression.progress_store import ProgressStore, SqlProgressStore
from mastery_core.engines.progression.verification_pipeline import ExamSessions
from mastery_core.orchestration.progression_engine import ProgressionEngine


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_store(db: DbSession) -> ProgressStore:
    """SQL-backed store bound to the request's session."""
    return SqlProgressStore(db)


@lru_cache
def get_certificate_issuer() -> CertificateIssuer:
    """One issuer per process so verification ids stay strictly increasing."""
    return CertificateIssuer()


@lru_cache
def get_exam_sessions() -> ExamSessions:
    return ExamSessions()


def get_generator() -> LessonGenerator:
    return get_lesson_generator(get_settings())


def get_evaluator() -> EssayEvaluator:
    return get_essay_evaluator(get_settings())


async def get_engine(
    store: Annotated[ProgressStore, Depends(get_store)],
    generator: Annotated[LessonGenerator, Depends(get_generator)],
    evaluator: Annotated[EssayEvaluator, Depends(get_evaluator)],
) -> ProgressionEngine:
    return ProgressionEngine(
        store,
        generator,
        evaluator,
        issuer=get_certificate_issuer(),
        exams=get_exam_sessions(),
        settings=get_settings(),
    )


Engine = Annotated[ProgressionEngine, Depends(get_engine)]


LearnerId = Annotated[uuid.UUID, Path(description="Learner id")]