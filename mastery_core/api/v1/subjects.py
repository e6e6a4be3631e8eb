"""
Subject catalogue and level reference endpoints.
"""

from typing import List

from fastapi import APIRouter, status

from mastery_core.api.deps import Engine
from mastery_core.engines.progression.level_registry import (
    MAINTENANCE_LEVELS,
    LevelMetadata,
    get_level_registry,
)
from mastery_core.engines.progression.models import Subject
from mastery_core.schemas.progression import SubjectCreateBody

router = APIRouter()


@router.get("/subjects", response_model=List[Subject])
async def list_subjects(engine: Engine):
    return await engine.list_subjects()


@router.post("/subjects", response_model=Subject, status_code=status.HTTP_201_CREATED)
async def create_subject(body: SubjectCreateBody, engine: Engine):
    """Define a new subject from a free-text query via the content generator."""
    return await engine.create_subject(body.query, language=body.language)


@router.get("/levels", response_model=List[LevelMetadata])
async def list_levels():
    """Level catalogue: standard levels in order, then the maintenance levels."""
    registry = get_level_registry()
    levels = registry.standard_levels + list(MAINTENANCE_LEVELS)
    return [registry.metadata_of(level) for level in levels]
