"""Encounter router - FastAPI endpoints for manual encounter CRUD"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...enums import BusinessType
from .repository import EncounterRepository
from .schemas import EncounterCreate, EncounterResponse, EncounterUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/encounters", tags=["Encounters"])


def get_encounter_repository(db: Session = Depends(get_db)) -> EncounterRepository:
    """Dependency injection for EncounterRepository"""
    return EncounterRepository(db)


@router.post("", response_model=EncounterResponse)
async def create_encounter(
    data: EncounterCreate,
    actor: Actor = Depends(get_current_actor),
    repository: EncounterRepository = Depends(get_encounter_repository),
):
    """Create a new encounter"""
    return repository.create(actor.user_id, data)


@router.get("/patients/{patient_id}", response_model=list[EncounterResponse])
async def list_patient_encounters(
    patient_id: str,
    business_type: Optional[BusinessType] = Query(None, description="Filter by business type"),
    actor: Actor = Depends(get_current_actor),
    repository: EncounterRepository = Depends(get_encounter_repository),
):
    """Get a patient's encounters, newest first"""
    return repository.list_by_patient(actor.user_id, patient_id, business_type)


@router.get("/{encounter_id}", response_model=EncounterResponse)
async def get_encounter(
    encounter_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: EncounterRepository = Depends(get_encounter_repository),
):
    return repository.get_by_id(actor.user_id, encounter_id)


@router.patch("/{encounter_id}", response_model=EncounterResponse)
async def update_encounter(
    encounter_id: str,
    data: EncounterUpdate,
    actor: Actor = Depends(get_current_actor),
    repository: EncounterRepository = Depends(get_encounter_repository),
):
    """Update an encounter"""
    return repository.update(actor.user_id, encounter_id, data)


@router.delete("/{encounter_id}")
async def delete_encounter(
    encounter_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: EncounterRepository = Depends(get_encounter_repository),
):
    """Delete a manual encounter"""
    repository.delete(actor.user_id, encounter_id)
    return {"message": "Encounter deleted successfully"}
