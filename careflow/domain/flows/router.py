"""Flow router - FastAPI endpoints for order and coaching flows"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...errors import AuthorizationError
from ..access import PROVIDER_ROLES
from ..linking.schemas import OrderSummary
from .factory import FlowFactory
from .schemas import (
    CoachingFlowRequest,
    FlowCreationRequest,
    FlowResult,
    FlowStatus,
    LinkAppointmentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])


def get_flow_factory(db: Session = Depends(get_db)) -> FlowFactory:
    """Dependency injection for FlowFactory"""
    return FlowFactory(db)


def require_provider(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role not in PROVIDER_ROLES:
        logger.warning(f"⚠️ User {actor.user_id} ({actor.role}) denied provider-only flow endpoint")
        raise AuthorizationError("Provider access required")
    return actor


def visible_status(status: FlowStatus, actor: Actor, factory: FlowFactory) -> FlowStatus:
    """Flow ids are only shown to callers with access to the encounter's patient"""
    if status.encounter_id and not factory.encounters.verify_encounter_access(
        actor.user_id, status.encounter_id
    ):
        logger.warning(f"⚠️ User {actor.user_id} denied flow status for encounter {status.encounter_id}")
        raise AuthorizationError("Patient not found or access denied")
    return status


# ============================================================================
# ORDER FLOWS
# ============================================================================


@router.post("/orders", response_model=FlowResult)
async def create_order_flow(
    data: FlowCreationRequest,
    actor: Actor = Depends(get_current_actor),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Create the async or sync flow for an order"""
    return factory.create_order_flow(data.model_copy(update={"user_id": actor.user_id}))


@router.get("/orders/pending", response_model=list[FlowCreationRequest])
async def get_orders_needing_flow_creation(
    provider_id: Optional[str] = Query(None),
    actor: Actor = Depends(require_provider),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Pending orders with no encounter yet"""
    return factory.get_orders_needing_flow_creation(provider_id)


@router.get("/orders/sync-pending", response_model=list[OrderSummary])
async def get_sync_orders_needing_appointments(
    actor: Actor = Depends(require_provider),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Unlinked orders that look like they need a live visit"""
    return factory.get_sync_orders_needing_appointments()


@router.get("/orders/{order_id}/status", response_model=FlowStatus)
async def get_order_flow_status(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    factory: FlowFactory = Depends(get_flow_factory),
):
    return visible_status(factory.get_order_flow_status(order_id), actor, factory)


@router.post("/orders/{order_id}/link-appointment", response_model=FlowResult)
async def link_appointment_to_order(
    order_id: str,
    data: LinkAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Link a booked appointment onto a sync order's encounter"""
    return factory.link_appointment_to_sync_order(data.appointment_id, order_id, actor.user_id)


@router.delete("/orders/{order_id}/link-appointment/{appointment_id}", response_model=FlowResult)
async def unlink_appointment_from_order(
    order_id: str,
    appointment_id: str,
    actor: Actor = Depends(require_provider),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Reverse an erroneous appointment link"""
    return factory.unlink_appointment_from_order(appointment_id, order_id, actor.user_id)


# ============================================================================
# COACHING FLOWS
# ============================================================================


@router.post("/coaching", response_model=FlowResult)
async def create_coaching_flow(
    data: CoachingFlowRequest,
    actor: Actor = Depends(get_current_actor),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Create a coaching encounter from an appointment, or ad-hoc"""
    return factory.create_coaching_flow(data.model_copy(update={"user_id": actor.user_id}))


@router.get("/coaching/status", response_model=FlowStatus)
async def get_coaching_flow_status(
    appointment_id: Optional[str] = Query(None),
    encounter_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    factory: FlowFactory = Depends(get_flow_factory),
):
    return visible_status(
        factory.get_coaching_flow_status(appointment_id, encounter_id), actor, factory
    )


@router.get("/coaching/pending", response_model=list[CoachingFlowRequest])
async def get_coaching_appointments_needing_flow_creation(
    provider_id: Optional[str] = Query(None),
    actor: Actor = Depends(require_provider),
    factory: FlowFactory = Depends(get_flow_factory),
):
    """Scheduled coaching appointments with no encounter yet"""
    return factory.get_coaching_appointments_needing_flow_creation(provider_id)
