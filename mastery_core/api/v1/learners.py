"""
Learner endpoints - profile, experience, enrollment track, transition, audit history.
"""

from typing import List

from fastapi import APIRouter, status

from mastery_core.api.deps import Engine, LearnerId
from mastery_core.engines.progression.models import Learner, SubjectProgress
from mastery_core.engines.progression.patches import LearnerProfilePatch
from mastery_core.engines.progression.pathway_router import eligible_structures
from mastery_core.engines.progression.progress_store import ProgressEvent
from mastery_core.schemas.progression import (
    LearnerCreate,
    LearnerProfileUpdate,
    TrackChangeBody,
    TrackChangeResponse,
    TransitionBody,
    TransitionOptionsResponse,
)

router = APIRouter()


@router.post("", response_model=Learner, status_code=status.HTTP_201_CREATED)
async def create_learner(body: LearnerCreate, engine: Engine):
    """Register a learner."""
    return await engine.create_learner(Learner(**body.model_dump()))


@router.get("/{learner_id}", response_model=Learner)
async def get_learner(learner_id: LearnerId, engine: Engine):
    return await engine.get_learner(learner_id)


@router.patch("/{learner_id}", response_model=Learner)
async def update_learner(learner_id: LearnerId, body: LearnerProfileUpdate, engine: Engine):
    """
    Update profile fields. Only fields present in the body change.

    Unknown fields (track, xp, transition, ...) are rejected with 422.
    """
    patch = LearnerProfilePatch(**body.model_dump(exclude_unset=True))
    return await engine.update_learner(learner_id, patch)


@router.get("/{learner_id}/progress", response_model=List[SubjectProgress])
async def list_progress(learner_id: LearnerId, engine: Engine):
    return await engine.list_progress(learner_id)


@router.put("/{learner_id}/track", response_model=TrackChangeResponse)
async def change_track(learner_id: LearnerId, body: TrackChangeBody, engine: Engine):
    """Move the learner and every subject to another enrollment track."""
    updated = await engine.pathways.change_track(learner_id, body.track)
    return TrackChangeResponse(track=body.track, subjects_updated=updated)


@router.get("/{learner_id}/transition/options", response_model=TransitionOptionsResponse)
async def transition_options(learner_id: LearnerId, engine: Engine):
    learner = await engine.get_learner(learner_id)
    return TransitionOptionsResponse(age=learner.age, structures=eligible_structures(learner.age))


@router.post("/{learner_id}/transition", response_model=Learner)
async def enroll_transition(learner_id: LearnerId, body: TransitionBody, engine: Engine):
    return await engine.pathways.enroll_transition(
        learner_id,
        body.target_structure,
        source_program=body.source_program,
    )


@router.get("/{learner_id}/events", response_model=List[ProgressEvent])
async def learner_history(learner_id: LearnerId, engine: Engine):
    return await engine.history(learner_id)
