"""
Progression engine: levels, progress records, rigor, verification, certificates and pathways.
"""

from mastery_core.engines.progression.errors import (
    GenerationError,
    GradingError,
    InvalidTransitionError,
    LearnerNotFoundError,
    LevelConfigurationError,
    MalformedGenerationError,
    PathwayError,
    ProgressInvariantError,
    ProgressionError,
    ProgressNotFoundError,
)
from mastery_core.engines.progression.models import (
    BranchChoice,
    Certificate,
    CompletionMethod,
    EducationalStage,
    EnrollmentTrack,
    Learner,
    MasteryLevel,
    PerformanceSample,
    ProgramType,
    SubjectProgress,
)
