"""
Free-form submission evaluator (project, performance, questionnaire).
"""

import json
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from mastery_core.config import Settings, get_settings
from mastery_core.engines.progression.errors import GradingError
from mastery_core.engines.progression.grader import EssayGrade
from mastery_core.engines.progression.models import CompletionMethod
from mastery_core.logging_config import get_logger

logger = get_logger(__name__)


class EssayEvaluator(ABC):
    @abstractmethod
    async def evaluate(
        self,
        submission: str,
        subject: str,
        level: str,
        method: CompletionMethod,
    ) -> EssayGrade:
        """Score a submission 0-100 on clarity, coherence and relevance."""


class OpenAIEssayEvaluator(EssayEvaluator):
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def evaluate(
        self,
        submission: str,
        subject: str,
        level: str,
        method: CompletionMethod,
    ) -> EssayGrade:
        from openai import AsyncOpenAI

        client = AsyncOpenAI(
            api_key=self.settings.openai_api_key.strip(),
            timeout=self.settings.generation_timeout_seconds,
        )
        prompt = f"""You are grading a {method.value} submission for {subject} at mastery level {level}.
Score it from 0 to 100 on clarity, coherence and relevance to the level's material.

SUBMISSION:
{submission}

Return JSON: {{"clarity": number, "coherence": number, "relevance": number, "feedback": str}}"""

        try:
            response = await client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                max_tokens=600,
                temperature=0.2,
            )
        except Exception as exc:
            logger.warning("Evaluation request failed: %s", exc)
            raise GradingError(f"Evaluation request failed: {exc}") from exc

        text = (response.choices[0].message.content or "").strip()
        try:
            return EssayGrade.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise GradingError("Evaluator returned an unusable grade") from exc


class StubEssayEvaluator(EssayEvaluator):
    """
    Offline evaluator: relevance grows with submission length, capped at 100.

    Roughly 2 points per word, so a 30-word answer clears the pass threshold.
    """

    async def evaluate(
        self,
        submission: str,
        subject: str,
        level: str,
        method: CompletionMethod,
    ) -> EssayGrade:
        words = len(submission.split())
        relevance = float(min(100, words * 2))
        return EssayGrade(
            clarity=relevance,
            coherence=relevance,
            relevance=relevance,
            feedback=f"Offline estimate from {words} words.",
        )


def get_essay_evaluator(settings: Optional[Settings] = None) -> EssayEvaluator:
    settings = settings or get_settings()
    if settings.ai_configured:
        return OpenAIEssayEvaluator(settings)
    return StubEssayEvaluator()
