"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from mastery_core.config import Settings
from mastery_core.engines.progression.grader import Grader
from mastery_core.engines.progression.models import CompletionMethod, MasteryLevel
from mastery_core.engines.progression.verification_pipeline import VerificationSubmission


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.xp_per_level == 1000
        assert settings.exam_question_count == 15
        assert settings.exam_time_limit_seconds == 1800

    def test_pass_threshold_is_not_a_setting(self, monkeypatch):
        monkeypatch.setenv("PASS_THRESHOLD", "40")
        settings = Settings(_env_file=None)
        assert not hasattr(settings, "pass_threshold")
        assert Grader.PASS_THRESHOLD == 60

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_xp_per_level_must_be_positive(self, monkeypatch, value):
        monkeypatch.setenv("XP_PER_LEVEL", value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_ai_configured(self):
        assert Settings(_env_file=None, openai_api_key="").ai_configured is False
        assert Settings(_env_file=None, openai_api_key="sk-your-key-here").ai_configured is False
        assert Settings(_env_file=None, openai_api_key="sk-live-123").ai_configured is True


class TestFixedThreshold:
    async def test_environment_cannot_lower_the_bar(self, monkeypatch, engine, learner, place):
        monkeypatch.setenv("PASS_THRESHOLD", "40")
        await place(learner, "math", MasteryLevel.C, lesson_index=12, awaiting_verification=True)

        # The stub evaluator scores roughly two points per word
        result = await engine.on_level_verification_complete(
            learner.id,
            "math",
            VerificationSubmission(method=CompletionMethod.PROJECT, text=" ".join(["word"] * 25)),
        )

        assert result.threshold == 60
        assert result.skill_points == 50
        assert result.passed is False
