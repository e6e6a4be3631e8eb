"""Unit tests for skill points, grade tiers, exam grading and free-form reduction."""

import pytest
from pydantic import ValidationError

from mastery_core.engines.progression.grader import EssayGrade, ExamQuestion, Grader
from mastery_core.engines.progression.models import PerformanceSample


def _questions(n: int = 15):
    return [ExamQuestion(question=f"Q{i}", options=["A", "B"], correct_answer="A") for i in range(n)]


class TestPerformanceSample:
    def test_seven_of_ten_is_seventy(self):
        sample = PerformanceSample(correct=7, total=10)
        assert sample.skill_points == 70
        assert sample.momentum == 0.7

    def test_rounds_half_up(self):
        # 1/8 = 12.5% -> 13, 5/8 = 62.5% -> 63
        assert PerformanceSample(correct=1, total=8).skill_points == 13
        assert PerformanceSample(correct=5, total=8).skill_points == 63

    def test_rounds_down_below_half(self):
        assert PerformanceSample(correct=2, total=3).skill_points == 67
        assert PerformanceSample(correct=1, total=3).skill_points == 33

    def test_zero_total_rejected(self):
        with pytest.raises(ValidationError):
            PerformanceSample(correct=0, total=0)

    def test_correct_above_total_rejected(self):
        with pytest.raises(ValidationError):
            PerformanceSample(correct=11, total=10)


class TestGradeTiers:
    @pytest.mark.parametrize(
        "points,tier",
        [
            (100, "exemplary"),
            (99, "high"),
            (80, "high"),
            (79, "medium-high"),
            (60, "medium-high"),
            (59, "medium"),
            (40, "medium"),
            (39, "medium-low"),
            (20, "medium-low"),
            (19, "low"),
            (0, "low"),
        ],
    )
    def test_tier_boundaries(self, points, tier):
        assert Grader.grade_tier(points) == tier

    def test_pass_threshold_is_inclusive(self):
        assert Grader.passed(60)
        assert not Grader.passed(59)

    def test_seventy_passes_with_medium_high(self):
        points = PerformanceSample(correct=7, total=10).skill_points
        assert Grader.passed(points)
        assert Grader.grade_tier(points) == "medium-high"

    @pytest.mark.parametrize(
        "points,label",
        [(85, "advanced-role-ready"), (72, "intermediate-role-ready"), (60, "entry-role-ready"), (45, "not-yet-ready")],
    )
    def test_career_readiness(self, points, label):
        assert Grader.career_readiness(points) == label


class TestExamGrading:
    def test_exact_match_ignoring_case_and_whitespace(self):
        result = Grader.grade_exam(_questions(3), ["a", "  A ", "B"])
        assert result.correct == 2
        assert result.total == 3
        assert result.per_question == [True, True, False]

    def test_unanswered_questions_count_wrong(self):
        result = Grader.grade_exam(_questions(15), ["A"] * 9 + [None])
        assert result.correct == 9
        assert result.total == 15

    def test_late_submission_is_graded_and_flagged(self):
        result = Grader.grade_exam(_questions(15), ["A"] * 15, elapsed_seconds=1801, time_limit_seconds=1800)
        assert result.timed_out is True
        assert result.correct == 15

    def test_on_time_submission_not_flagged(self):
        result = Grader.grade_exam(_questions(15), ["A"] * 15, elapsed_seconds=1800, time_limit_seconds=1800)
        assert result.timed_out is False

    def test_empty_exam_rejected(self):
        with pytest.raises(ValueError):
            Grader.grade_exam([], [])


class TestFreeForm:
    def test_relevance_becomes_score_out_of_100(self):
        sample = Grader.free_form_sample(EssayGrade(clarity=90, coherence=90, relevance=72.5))
        assert (sample.correct, sample.total) == (73, 100)
        assert sample.skill_points == 73

    def test_relevance_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            EssayGrade(clarity=50, coherence=50, relevance=120)
