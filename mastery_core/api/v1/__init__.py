"""
API v1 routes.
"""

from fastapi import APIRouter, status

from mastery_core.api.v1 import learners, progression, subjects
from mastery_core.schemas.common import ErrorResponse

# Error bodies produced by the domain exception handlers in main.py
_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Ineligible pathway or rejected input"},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Unknown learner, progress or exam"},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "Stale or out-of-order progression call"},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse, "description": "Content generation or grading failed"},
}

router = APIRouter()

router.include_router(subjects.router, tags=["Catalogue"], responses=_ERROR_RESPONSES)
router.include_router(
    learners.router,
    prefix="/learners",
    tags=["Learners"],
    responses=_ERROR_RESPONSES,
)
router.include_router(
    progression.router,
    prefix="/learners/{learner_id}/subjects/{subject_id}",
    tags=["Progression"],
    responses=_ERROR_RESPONSES,
)
