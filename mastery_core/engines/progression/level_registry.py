"""
Level Registry - static ordered catalogue of mastery levels.

Standard levels A..T form a strict total order. Two maintenance levels sit outside it
and are reachable only by branching:

- P (highest foundation) -> Q on CONTINUE, Beyond P on DIVERT
- T (highest advanced)   -> Beyond T, always
- Beyond P / Beyond T    -> themselves (continuous maintenance)
- any other standard     -> its immediate successor
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from mastery_core.engines.progression.errors import LevelConfigurationError
from mastery_core.engines.progression.models import (
    BranchChoice,
    LevelClassification,
    MasteryLevel,
)


class LevelMetadata(BaseModel):
    """Static per-level metadata."""

    level: MasteryLevel
    equivalency: str
    duration: str
    chapter_count: int
    classification: LevelClassification


# A branch rule maps a choice (None = no choice offered / default) to a target level
BranchRule = Dict[Optional[BranchChoice], MasteryLevel]

STANDARD_ORDER: Tuple[MasteryLevel, ...] = (
    MasteryLevel.A, MasteryLevel.B, MasteryLevel.C, MasteryLevel.D, MasteryLevel.E,
    MasteryLevel.F, MasteryLevel.G, MasteryLevel.H, MasteryLevel.I, MasteryLevel.J,
    MasteryLevel.K, MasteryLevel.L, MasteryLevel.M, MasteryLevel.N, MasteryLevel.O,
    MasteryLevel.P, MasteryLevel.Q, MasteryLevel.R, MasteryLevel.S, MasteryLevel.T,
)
MAINTENANCE_LEVELS: Tuple[MasteryLevel, ...] = (MasteryLevel.BEYOND_P, MasteryLevel.BEYOND_T)

HIGHEST_FOUNDATION = MasteryLevel.P
FIRST_ADVANCED = MasteryLevel.Q
HIGHEST_ADVANCED = MasteryLevel.T

CHAPTERS_PER_LEVEL = 12

_EQUIVALENCIES = {
    MasteryLevel.A: "Pre-Kindergarten",
    MasteryLevel.B: "Pre-Kindergarten",
    MasteryLevel.C: "Kindergarten",
    MasteryLevel.D: "Kindergarten",
    MasteryLevel.E: "Primary School",
    MasteryLevel.F: "Primary School",
    MasteryLevel.G: "Primary School",
    MasteryLevel.H: "Primary School",
    MasteryLevel.I: "Primary School",
    MasteryLevel.J: "Primary School",
    MasteryLevel.K: "Middle School",
    MasteryLevel.L: "Middle School",
    MasteryLevel.M: "Middle School",
    MasteryLevel.N: "High School",
    MasteryLevel.O: "High School",
    MasteryLevel.P: "High School",
    MasteryLevel.Q: "University",
    MasteryLevel.R: "University",
    MasteryLevel.S: "University",
    MasteryLevel.T: "University",
}


def _default_metadata() -> Dict[MasteryLevel, LevelMetadata]:
    table: Dict[MasteryLevel, LevelMetadata] = {}
    for level in STANDARD_ORDER:
        advanced = STANDARD_ORDER.index(level) >= STANDARD_ORDER.index(FIRST_ADVANCED)
        table[level] = LevelMetadata(
            level=level,
            equivalency=_EQUIVALENCIES[level],
            duration="2-4 weeks" if advanced else "1-2 weeks",
            chapter_count=CHAPTERS_PER_LEVEL,
            classification=LevelClassification.OPTIONAL if advanced else LevelClassification.MANDATORY,
        )
    table[MasteryLevel.BEYOND_P] = LevelMetadata(
        level=MasteryLevel.BEYOND_P,
        equivalency="Post-High School Mastery",
        duration="Continuous",
        chapter_count=1,
        classification=LevelClassification.MAINTENANCE,
    )
    table[MasteryLevel.BEYOND_T] = LevelMetadata(
        level=MasteryLevel.BEYOND_T,
        equivalency="University Mastery",
        duration="Continuous",
        chapter_count=1,
        classification=LevelClassification.MAINTENANCE,
    )
    return table


def _default_branch_rules() -> Dict[MasteryLevel, BranchRule]:
    return {
        HIGHEST_FOUNDATION: {
            None: FIRST_ADVANCED,
            BranchChoice.CONTINUE: FIRST_ADVANCED,
            BranchChoice.DIVERT: MasteryLevel.BEYOND_P,
        },
        HIGHEST_ADVANCED: {None: MasteryLevel.BEYOND_T},
        MasteryLevel.BEYOND_P: {None: MasteryLevel.BEYOND_P},
        MasteryLevel.BEYOND_T: {None: MasteryLevel.BEYOND_T},
    }


class LevelRegistry:
    """
    Ordered level catalogue with branch rules.

    Built from explicit tables so a misconfigured registry can be constructed and
    must fail loudly on use.
    """

    def __init__(
        self,
        order: Sequence[MasteryLevel] = STANDARD_ORDER,
        metadata: Optional[Mapping[MasteryLevel, LevelMetadata]] = None,
        branch_rules: Optional[Mapping[MasteryLevel, BranchRule]] = None,
    ):
        self._order: List[MasteryLevel] = list(order)
        self._metadata: Dict[MasteryLevel, LevelMetadata] = dict(
            metadata if metadata is not None else _default_metadata()
        )
        self._branch_rules: Dict[MasteryLevel, BranchRule] = dict(
            branch_rules if branch_rules is not None else _default_branch_rules()
        )
        self._validate()

    def _validate(self) -> None:
        if len(set(self._order)) != len(self._order):
            raise LevelConfigurationError("Standard level order contains duplicates")
        for level, meta in self._metadata.items():
            if meta.classification != LevelClassification.MAINTENANCE and meta.chapter_count <= 0:
                raise LevelConfigurationError(
                    f"Level {level.value} must have a positive chapter count, got {meta.chapter_count}"
                )
        for level in self._order:
            if level not in self._metadata:
                raise LevelConfigurationError(f"Level {level.value} has no metadata")

    @property
    def standard_levels(self) -> List[MasteryLevel]:
        return list(self._order)

    def index_of(self, level: MasteryLevel) -> int:
        """Position of a standard level in the total order."""
        try:
            return self._order.index(level)
        except ValueError:
            raise LevelConfigurationError(
                f"Level {level.value} is not part of the standard order"
            ) from None

    def level_at_index(self, index: int) -> MasteryLevel:
        if not 0 <= index < len(self._order):
            raise LevelConfigurationError(f"No standard level at index {index}")
        return self._order[index]

    def metadata_of(self, level: MasteryLevel) -> LevelMetadata:
        try:
            return self._metadata[level]
        except KeyError:
            raise LevelConfigurationError(f"Level {level.value} has no metadata") from None

    def chapter_count(self, level: MasteryLevel) -> int:
        return self.metadata_of(level).chapter_count

    def is_maintenance(self, level: MasteryLevel) -> bool:
        return self.metadata_of(level).classification == LevelClassification.MAINTENANCE

    def requires_choice(self, level: MasteryLevel) -> bool:
        """True where passing offers the learner a CONTINUE / DIVERT fork."""
        rule = self._branch_rules.get(level, {})
        return any(choice is not None for choice in rule)

    def next_after(
        self,
        level: MasteryLevel,
        choice: Optional[BranchChoice] = None,
    ) -> MasteryLevel:
        """Level reached by passing verification at `level`."""
        rule = self._branch_rules.get(level)
        if rule is not None:
            if choice in rule:
                return rule[choice]
            if None in rule:
                return rule[None]
            raise LevelConfigurationError(
                f"Branch rule for level {level.value} has no default target"
            )

        if level in self._order:
            index = self._order.index(level)
            if index + 1 < len(self._order):
                return self._order[index + 1]

        raise LevelConfigurationError(
            f"Level {level.value} has no successor and no branch rule"
        )


_default_registry: Optional[LevelRegistry] = None


def get_level_registry() -> LevelRegistry:
    """Shared default registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = LevelRegistry()
    return _default_registry
