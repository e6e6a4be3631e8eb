"""
Grader - exam auto-grading, grade tiers and free-form grade reduction.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from mastery_core.engines.progression.models import PerformanceSample


class ExamQuestion(BaseModel):
    """A multiple-choice exam question as issued to the learner."""

    question: str
    options: List[str] = []
    correct_answer: str
    explanation: str = ""


class ExamPaper(BaseModel):
    """A generated exam for one subject level."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    subject_id: str
    level: str
    questions: List[ExamQuestion]
    time_limit_seconds: int
    started_at: datetime


class ExamResult(BaseModel):
    correct: int
    total: int
    timed_out: bool = False
    per_question: List[bool] = []

    def to_sample(self) -> PerformanceSample:
        return PerformanceSample(correct=self.correct, total=self.total)


class EssayGrade(BaseModel):
    """Evaluator output for a project, performance or questionnaire submission."""

    clarity: float = Field(ge=0, le=100)
    coherence: float = Field(ge=0, le=100)
    relevance: float = Field(ge=0, le=100)
    feedback: str = ""


class Grader:
    """
    Reduces every completion method to a (score, total) pair and labels the result.

    Exams are graded by exact answer match with no partial credit. Free-form methods
    take the evaluator's relevance score out of 100.
    """

    PASS_THRESHOLD = 60
    FREE_FORM_TOTAL = 100

    # Inclusive lower bounds, evaluated top-down
    GRADE_TIERS = (
        (100, "exemplary"),
        (80, "high"),
        (60, "medium-high"),
        (40, "medium"),
        (20, "medium-low"),
        (0, "low"),
    )

    CAREER_READINESS = (
        (80, "advanced-role-ready"),
        (70, "intermediate-role-ready"),
        (60, "entry-role-ready"),
        (0, "not-yet-ready"),
    )

    @staticmethod
    def _normalize(answer: Optional[str]) -> str:
        return " ".join((answer or "").split()).lower()

    @classmethod
    def grade_exam(
        cls,
        questions: List[ExamQuestion],
        answers: List[Optional[str]],
        elapsed_seconds: Optional[float] = None,
        time_limit_seconds: Optional[int] = None,
    ) -> ExamResult:
        """
        Grade an exam submission.

        Unanswered questions (missing or None) count as wrong. A submission past the
        time limit is still graded as submitted and flagged timed_out.
        """
        if not questions:
            raise ValueError("Exam has no questions")
        per_question = []
        for index, question in enumerate(questions):
            answer = answers[index] if index < len(answers) else None
            per_question.append(
                answer is not None
                and cls._normalize(answer) == cls._normalize(question.correct_answer)
            )
        timed_out = (
            elapsed_seconds is not None
            and time_limit_seconds is not None
            and elapsed_seconds > time_limit_seconds
        )
        return ExamResult(
            correct=sum(per_question),
            total=len(questions),
            timed_out=timed_out,
            per_question=per_question,
        )

    @classmethod
    def free_form_sample(cls, grade: EssayGrade) -> PerformanceSample:
        # int(x + 0.5) rounds half up for the non-negative relevance range
        score = int(grade.relevance + 0.5)
        return PerformanceSample(correct=min(score, cls.FREE_FORM_TOTAL), total=cls.FREE_FORM_TOTAL)

    @classmethod
    def passed(cls, skill_points: int) -> bool:
        return skill_points >= cls.PASS_THRESHOLD

    @classmethod
    def grade_tier(cls, skill_points: int) -> str:
        for lower_bound, label in cls.GRADE_TIERS:
            if skill_points >= lower_bound:
                return label
        return "low"

    @classmethod
    def career_readiness(cls, skill_points: int) -> str:
        for lower_bound, label in cls.CAREER_READINESS:
            if skill_points >= lower_bound:
                return label
        return "not-yet-ready"
