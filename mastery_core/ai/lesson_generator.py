"""
Lesson generation collaborator.

The engine never writes lesson content itself. It builds a LessonRequest, hands it to a
LessonGenerator and validates what comes back:

- OpenAILessonGenerator: chat completions in JSON mode (gpt-4o-mini by default)
- StubLessonGenerator: deterministic offline content, used when no API key is set

Anything structurally unusable raises MalformedGenerationError; transport failures raise
GenerationError. Neither is retried.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from mastery_core.config import Settings, get_settings
from mastery_core.engines.progression.errors import GenerationError, MalformedGenerationError
from mastery_core.engines.progression.grader import ExamQuestion
from mastery_core.engines.progression.models import Subject
from mastery_core.logging_config import get_logger

logger = get_logger(__name__)


# ── Request / response types ─────────────────────────────────────────

class LearnerProfile(BaseModel):
    age: int
    cultural_background: str = "Global"
    accessibility_flags: List[str] = []


class FastTrackDirective(BaseModel):
    enabled: bool = False
    duration_minutes: int = 30


class LessonRequest(BaseModel):
    """Everything the generator needs to produce one lesson."""

    subject: str
    language: str = "English"
    level: str
    lesson_number: int
    learner_profile: LearnerProfile
    rigor_directive: str
    theme: Optional[str] = None
    specialization_tags: List[str] = []
    fast_track: FastTrackDirective = FastTrackDirective()
    relearn_stage: Optional[str] = None
    transition_structure: Optional[str] = None


class Exercise(BaseModel):
    question: str
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str = ""
    hint: str = ""


class LessonContent(BaseModel):
    title: str
    explanation: str
    timeline_points: List[str] = []
    examples: List[str] = []
    exercises: List[Exercise]


class ExamRequest(BaseModel):
    subject: str
    language: str = "English"
    level: str
    question_count: int = 15


# ── Validation ───────────────────────────────────────────────────────

def validate_lesson_payload(payload: Any) -> LessonContent:
    """Turn a raw generator payload into LessonContent or raise MalformedGenerationError."""
    if not isinstance(payload, dict):
        raise MalformedGenerationError("Lesson payload is not an object")
    try:
        content = LessonContent.model_validate(payload)
    except ValidationError as exc:
        raise MalformedGenerationError(f"Lesson payload failed validation: {exc}") from exc
    if not content.title.strip():
        raise MalformedGenerationError("Lesson has an empty title")
    if not content.explanation.strip():
        raise MalformedGenerationError("Lesson has an empty explanation")
    if not content.exercises:
        raise MalformedGenerationError("Lesson has no exercises")
    return content


def validate_exam_payload(payload: Any, expected_count: int) -> List[ExamQuestion]:
    if not isinstance(payload, dict) or not isinstance(payload.get("questions"), list):
        raise MalformedGenerationError("Exam payload has no question list")
    try:
        questions = [ExamQuestion.model_validate(q) for q in payload["questions"]]
    except ValidationError as exc:
        raise MalformedGenerationError(f"Exam question failed validation: {exc}") from exc
    if len(questions) != expected_count:
        raise MalformedGenerationError(
            f"Exam has {len(questions)} questions, expected {expected_count}"
        )
    for q in questions:
        if not q.question.strip() or not q.correct_answer.strip():
            raise MalformedGenerationError("Exam question is missing its text or answer")
    return questions


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "subject"


def validate_subject_payload(payload: Any, query: str) -> Subject:
    if not isinstance(payload, dict):
        raise MalformedGenerationError("Subject payload is not an object")
    name = str(payload.get("name") or "").strip()
    if not name:
        raise MalformedGenerationError("Subject has no name")
    subtopics = payload.get("subtopics") or []
    if not isinstance(subtopics, list):
        raise MalformedGenerationError("Subject subtopics must be a list")
    return Subject(
        id=slugify(name),
        name=name,
        category=str(payload.get("category") or "Custom"),
        description=str(payload.get("description") or f"Study of {query}"),
        subtopics=[str(s) for s in subtopics],
        is_user_generated=True,
    )


# ── Generators ───────────────────────────────────────────────────────

class LessonGenerator(ABC):
    """Content-generation collaborator."""

    @abstractmethod
    async def generate_lesson(self, request: LessonRequest) -> LessonContent:
        ...

    @abstractmethod
    async def generate_exam(self, request: ExamRequest) -> List[ExamQuestion]:
        ...

    @abstractmethod
    async def generate_subject(self, query: str, language: str = "English") -> Subject:
        ...


def _lesson_prompt(request: LessonRequest) -> str:
    lines = [
        "You are a curriculum designer writing one lesson of an adaptive mastery course.",
        f"SUBJECT: {request.subject}",
        f"LEVEL: {request.level}",
        f"LESSON NUMBER: {request.lesson_number}",
        f"LANGUAGE: {request.language}",
        f"LEARNER AGE: {request.learner_profile.age}",
        f"CULTURAL BACKGROUND: {request.learner_profile.cultural_background}",
        f"RIGOR: {request.rigor_directive}",
    ]
    if request.learner_profile.accessibility_flags:
        lines.append(f"ACCESSIBILITY NEEDS: {', '.join(request.learner_profile.accessibility_flags)}")
    if request.theme:
        lines.append(f"THEME: {request.theme}")
    if request.specialization_tags:
        lines.append(f"SPECIALIZATION FOCUS: {', '.join(request.specialization_tags)}")
    if request.fast_track.enabled:
        lines.append(
            f"PACING: fast-track session of {request.fast_track.duration_minutes} minutes; "
            "keep it dense and skip warm-up material."
        )
    if request.relearn_stage:
        lines.append(f"RELEARN STAGE: review the {request.relearn_stage} foundations of this subject.")
    if request.transition_structure:
        lines.append(f"TRANSITION: bridge the learner into a {request.transition_structure} school structure.")
    lines.append(
        'Return JSON: {"title": str, "explanation": str, "timeline_points": [str], '
        '"examples": [str], "exercises": [{"question": str, "options": [str] | null, '
        '"correct_answer": str, "explanation": str, "hint": str}]}'
    )
    return "\n".join(lines)


class OpenAILessonGenerator(LessonGenerator):
    """
    OpenAI-backed generator.

    Usage:
        generator = OpenAILessonGenerator(get_settings())
        lesson = await generator.generate_lesson(request)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def _complete_json(self, prompt: str, max_tokens: int = 2500) -> Dict[str, Any]:
        from openai import AsyncOpenAI

        client = AsyncOpenAI(
            api_key=self.settings.openai_api_key.strip(),
            timeout=self.settings.generation_timeout_seconds,
        )
        try:
            response = await client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                max_tokens=max_tokens,
                temperature=0.4,
            )
        except Exception as exc:
            logger.warning("Generation request failed: %s", exc)
            raise GenerationError(f"Generation request failed: {exc}") from exc

        text = (response.choices[0].message.content or "").strip()
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedGenerationError("Generator returned invalid JSON") from exc

    async def generate_lesson(self, request: LessonRequest) -> LessonContent:
        payload = await self._complete_json(_lesson_prompt(request))
        content = validate_lesson_payload(payload)
        logger.info(
            "Lesson generated",
            extra={"subject": request.subject, "level": request.level, "lesson": request.lesson_number},
        )
        return content

    async def generate_exam(self, request: ExamRequest) -> List[ExamQuestion]:
        prompt = (
            f"Write a {request.question_count}-question multiple-choice mastery exam for "
            f"{request.subject} at level {request.level}, in {request.language}. "
            'Return JSON: {"questions": [{"question": str, "options": [str], '
            '"correct_answer": str, "explanation": str}]}'
        )
        payload = await self._complete_json(prompt, max_tokens=4000)
        return validate_exam_payload(payload, request.question_count)

    async def generate_subject(self, query: str, language: str = "English") -> Subject:
        prompt = (
            f"Define a study subject for the request '{query}' in {language}. "
            'Return JSON: {"name": str, "category": str, "description": str, "subtopics": [str]}'
        )
        payload = await self._complete_json(prompt, max_tokens=600)
        return validate_subject_payload(payload, query)


class StubLessonGenerator(LessonGenerator):
    """Deterministic offline generator."""

    EXERCISES_PER_LESSON = 4

    async def generate_lesson(self, request: LessonRequest) -> LessonContent:
        exercises = [
            Exercise(
                question=f"{request.subject} level {request.level}, lesson {request.lesson_number}: question {i}",
                options=["A", "B", "C", "D"],
                correct_answer="A",
                explanation="Option A applies the rule from this lesson.",
                hint="Re-read the worked example.",
            )
            for i in range(1, self.EXERCISES_PER_LESSON + 1)
        ]
        return LessonContent(
            title=f"{request.subject}: Level {request.level}, Lesson {request.lesson_number}",
            explanation=f"Core ideas of {request.subject} at level {request.level}. {request.rigor_directive}",
            timeline_points=["Introduction", "Worked example", "Practice"],
            examples=[f"An example from {request.subject}"],
            exercises=exercises,
        )

    async def generate_exam(self, request: ExamRequest) -> List[ExamQuestion]:
        return [
            ExamQuestion(
                question=f"{request.subject} level {request.level} exam question {i}",
                options=["A", "B", "C", "D"],
                correct_answer="A",
            )
            for i in range(1, request.question_count + 1)
        ]

    async def generate_subject(self, query: str, language: str = "English") -> Subject:
        return validate_subject_payload(
            {"name": query.strip().title(), "subtopics": ["Foundations", "Practice"]},
            query,
        )


def get_lesson_generator(settings: Optional[Settings] = None) -> LessonGenerator:
    """OpenAI generator when a real key is configured, stub otherwise."""
    settings = settings or get_settings()
    if settings.ai_configured:
        return OpenAILessonGenerator(settings)
    logger.info("No OpenAI key configured, using stub lesson generator")
    return StubLessonGenerator()
