"""
Kernel Data Models

SQLAlchemy models backing the SQL progress store.
"""

from mastery_core.kernel.models.base import (
    Base,
    RevisionMixin,
    TimestampMixin,
    UuidPrimaryKeyMixin,
    generate_uuid,
)
from mastery_core.kernel.models.learner import LearnerRecord
from mastery_core.kernel.models.progress import SubjectProgressRecord
from mastery_core.kernel.models.subject import SubjectRecord
from mastery_core.kernel.models.event_log import EventLog, EventType

__all__ = [
    "Base",
    "TimestampMixin",
    "UuidPrimaryKeyMixin",
    "RevisionMixin",
    "generate_uuid",
    "LearnerRecord",
    "SubjectProgressRecord",
    "SubjectRecord",
    "EventLog",
    "EventType",
]
