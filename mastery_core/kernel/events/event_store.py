"""
Event Store service for append-only progression audit logging.

Events are added to the caller's session and committed with the state change they
describe.
"""

import uuid
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from mastery_core.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.LEVEL_ADVANCED,
            learner_id=learner.id,
            subject_id="math",
            payload={"from_level": "C", "to_level": "D"},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        learner_id: Optional[uuid.UUID] = None,
        subject_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        Caller is responsible for committing the session.
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=event_type.value,
            learner_id=learner_id,
            subject_id=subject_id,
            payload=payload or {},
        )
        self.session.add(event)
        return event

    async def get_learner_history(
        self,
        learner_id: uuid.UUID,
        subject_id: Optional[str] = None,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """
        Get progression events for a learner, newest first.

        Ordered by write sequence, so events from one transaction keep their order.

        Args:
            learner_id: The learner ID
            subject_id: Restrict to one subject
            event_types: Optional filter for specific event types
            limit: Maximum number of events
        """
        query = select(EventLog).where(EventLog.learner_id == learner_id)
        if subject_id is not None:
            query = query.where(EventLog.subject_id == subject_id)
        if event_types:
            query = query.where(EventLog.event_type.in_([t.value for t in event_types]))

        query = query.order_by(desc(EventLog.sequence)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Ensure payload is JSON-serializable."""
        result = {}
        for key, value in payload.items():
            if isinstance(value, uuid.UUID):
                result[key] = str(value)
            elif isinstance(value, Enum):
                result[key] = value.value
            elif isinstance(value, date):
                result[key] = value.isoformat()
            elif isinstance(value, dict):
                result[key] = self._serialize_payload(value)
            elif isinstance(value, (list, tuple)):
                result[key] = [
                    str(v) if isinstance(v, uuid.UUID)
                    else v.value if isinstance(v, Enum)
                    else v
                    for v in value
                ]
            else:
                result[key] = value
        return result
