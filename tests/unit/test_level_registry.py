"""Unit tests for the level registry: ordering, metadata and branch rules."""

import pytest

from mastery_core.engines.progression.errors import LevelConfigurationError
from mastery_core.engines.progression.level_registry import (
    STANDARD_ORDER,
    LevelMetadata,
    LevelRegistry,
)
from mastery_core.engines.progression.models import (
    BranchChoice,
    LevelClassification,
    MasteryLevel,
)


class TestOrdering:
    """Standard levels form a strict total order."""

    def test_index_is_strictly_increasing(self, registry: LevelRegistry):
        indices = [registry.index_of(level) for level in STANDARD_ORDER]
        assert indices == list(range(20))

    def test_level_at_index_inverts_index_of(self, registry: LevelRegistry):
        for level in STANDARD_ORDER:
            assert registry.level_at_index(registry.index_of(level)) == level

    def test_maintenance_levels_are_outside_the_order(self, registry: LevelRegistry):
        with pytest.raises(LevelConfigurationError):
            registry.index_of(MasteryLevel.BEYOND_P)

    def test_level_at_index_out_of_range(self, registry: LevelRegistry):
        with pytest.raises(LevelConfigurationError):
            registry.level_at_index(20)


class TestMetadata:
    def test_standard_levels_have_twelve_chapters(self, registry: LevelRegistry):
        for level in STANDARD_ORDER:
            assert registry.chapter_count(level) == 12

    def test_maintenance_levels_have_one_chapter(self, registry: LevelRegistry):
        assert registry.chapter_count(MasteryLevel.BEYOND_P) == 1
        assert registry.chapter_count(MasteryLevel.BEYOND_T) == 1

    def test_classifications(self, registry: LevelRegistry):
        assert registry.metadata_of(MasteryLevel.A).classification == LevelClassification.MANDATORY
        assert registry.metadata_of(MasteryLevel.P).classification == LevelClassification.MANDATORY
        assert registry.metadata_of(MasteryLevel.Q).classification == LevelClassification.OPTIONAL
        assert registry.metadata_of(MasteryLevel.BEYOND_T).classification == LevelClassification.MAINTENANCE

    def test_equivalency_labels(self, registry: LevelRegistry):
        assert registry.metadata_of(MasteryLevel.B).equivalency == "Pre-Kindergarten"
        assert registry.metadata_of(MasteryLevel.J).equivalency == "Primary School"
        assert registry.metadata_of(MasteryLevel.P).equivalency == "High School"
        assert registry.metadata_of(MasteryLevel.T).equivalency == "University"
        assert registry.metadata_of(MasteryLevel.BEYOND_P).equivalency == "Post-High School Mastery"

    def test_non_maintenance_level_with_zero_chapters_is_rejected(self):
        metadata = {
            MasteryLevel.A: LevelMetadata(
                level=MasteryLevel.A,
                equivalency="Pre-Kindergarten",
                duration="1-2 weeks",
                chapter_count=0,
                classification=LevelClassification.MANDATORY,
            ),
        }
        with pytest.raises(LevelConfigurationError):
            LevelRegistry(order=[MasteryLevel.A], metadata=metadata, branch_rules={})


class TestBranchRules:
    """next_after covers every standard level, both forks and the maintenance loops."""

    def test_linear_successor(self, registry: LevelRegistry):
        for level in STANDARD_ORDER[:15]:
            expected = STANDARD_ORDER[STANDARD_ORDER.index(level) + 1]
            assert registry.next_after(level) == expected

    def test_p_continue_goes_to_q(self, registry: LevelRegistry):
        assert registry.next_after(MasteryLevel.P, BranchChoice.CONTINUE) == MasteryLevel.Q

    def test_p_divert_goes_to_beyond_p(self, registry: LevelRegistry):
        assert registry.next_after(MasteryLevel.P, BranchChoice.DIVERT) == MasteryLevel.BEYOND_P

    def test_p_without_choice_defaults_to_continue(self, registry: LevelRegistry):
        assert registry.next_after(MasteryLevel.P) == MasteryLevel.Q

    def test_t_always_goes_to_beyond_t(self, registry: LevelRegistry):
        assert registry.next_after(MasteryLevel.T) == MasteryLevel.BEYOND_T
        assert registry.next_after(MasteryLevel.T, BranchChoice.DIVERT) == MasteryLevel.BEYOND_T

    def test_maintenance_levels_loop(self, registry: LevelRegistry):
        assert registry.next_after(MasteryLevel.BEYOND_P) == MasteryLevel.BEYOND_P
        assert registry.next_after(MasteryLevel.BEYOND_T) == MasteryLevel.BEYOND_T

    def test_q_to_s_advance_linearly(self, registry: LevelRegistry):
        assert registry.next_after(MasteryLevel.Q) == MasteryLevel.R
        assert registry.next_after(MasteryLevel.S) == MasteryLevel.T

    def test_only_p_requires_a_choice(self, registry: LevelRegistry):
        assert registry.requires_choice(MasteryLevel.P)
        assert not registry.requires_choice(MasteryLevel.T)
        assert not registry.requires_choice(MasteryLevel.C)

    def test_missing_successor_raises(self):
        """A registry with no rule past its last level fails loudly instead of staying put."""
        registry = LevelRegistry(
            order=[MasteryLevel.A, MasteryLevel.B],
            branch_rules={},
        )
        assert registry.next_after(MasteryLevel.A) == MasteryLevel.B
        with pytest.raises(LevelConfigurationError):
            registry.next_after(MasteryLevel.B)
