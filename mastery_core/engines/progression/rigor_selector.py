"""
Adaptive Rigor Selector - maps recent performance to a content-difficulty directive.
"""

from enum import Enum
from typing import Optional

from mastery_core.engines.progression.models import PerformanceSample


class RigorBand(str, Enum):
    """Difficulty bands, hardest first."""
    STRETCH = "stretch"
    STEADY = "steady"
    REINFORCEMENT = "reinforcement"
    REMEDIATION = "remediation"


# Momentum assumed when a subject has no recorded sample yet
DEFAULT_MOMENTUM = 0.75

# Inclusive lower bounds, evaluated top-down
_BANDS = (
    (0.9, RigorBand.STRETCH),
    (0.7, RigorBand.STEADY),
    (0.5, RigorBand.REINFORCEMENT),
)

_DIRECTIVES = {
    RigorBand.STRETCH: (
        "Stretch: reduce scaffolding, raise the level of abstraction and require "
        "synthesis-level reasoning that combines ideas from this and earlier lessons."
    ),
    RigorBand.STEADY: (
        "Steady: standard rigor for this level, with 1-2 stretch problems at the end "
        "of the exercise set."
    ),
    RigorBand.REINFORCEMENT: (
        "Reinforcement: application-focused practice built on concrete examples. "
        "No difficulty increase over the previous lesson."
    ),
    RigorBand.REMEDIATION: (
        "Remediation: recall and understanding only, with maximal scaffolding. Break "
        "each idea into small steps and give a hint with every exercise."
    ),
}


def band_for_momentum(momentum: float) -> RigorBand:
    for lower_bound, band in _BANDS:
        if momentum >= lower_bound:
            return band
    return RigorBand.REMEDIATION


def select_directive(sample: Optional[PerformanceSample]) -> RigorBand:
    """
    Pick a rigor band from the most recent performance sample.

    A missing sample counts as momentum 0.75, which lands in STEADY.
    """
    momentum = sample.momentum if sample is not None else DEFAULT_MOMENTUM
    return band_for_momentum(momentum)


def directive_text(band: RigorBand) -> str:
    return _DIRECTIVES[band]
