"""
Progression errors.

User-recoverable failures (generation, grading, pathway eligibility) and programming or
configuration defects (level configuration, invalid transitions) share one root so the
HTTP layer can map them in one place.
"""


class ProgressionError(Exception):
    """Base class for all progression-core errors."""


class LevelConfigurationError(ProgressionError):
    """The level registry has no successor or branch rule for a level."""


class ProgressInvariantError(ProgressionError):
    """A mutation would break level / lesson-index consistency."""


class InvalidTransitionError(ProgressionError):
    """The lesson state machine was asked for a transition it does not allow."""


class PathwayError(ProgressionError):
    """Fast-track, relearn or transition enrollment request is not eligible."""


class LearnerNotFoundError(ProgressionError):
    """No learner record exists for the given id."""


class GenerationError(ProgressionError):
    """The content-generation collaborator failed (network, timeout, parse)."""


class MalformedGenerationError(GenerationError):
    """The collaborator answered, but the payload is structurally invalid."""


class GradingError(ProgressionError):
    """The external evaluator failed to grade a free-form submission."""


class ProgressNotFoundError(ProgressionError):
    """No progress record exists for the given (learner, subject)."""
