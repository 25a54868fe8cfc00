"""
Flow factory - top-level entry point for order and coaching flows

Classifies an order through the order-type registry and routes it:
async orders get their encounter immediately, sync orders get a placeholder
encounter that a later appointment is linked onto. Coaching flows are
appointment-based or ad-hoc. Status and discovery helpers are read-only and
degrade to "nothing found" on store errors.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...clock import Clock, utcnow
from ...config import ASYNC_PROVIDER_NAME, ORDER_PLACEHOLDER_PROVIDER
from ...enums import BusinessType, EncounterStatus, EncounterType, FlowProgress, FlowType
from ...errors import CareFlowError, InvalidOrderType
from ...models import Order
from ...models_encounter import Encounter
from ..access import AccessResolver
from ..appointments.repository import AppointmentRepository
from ..appointments.schemas import EncounterLinkResult
from ..coaching.service import CoachingFlowService
from ..encounters.repository import EncounterRepository
from ..encounters.schemas import EncounterCreate
from ..linking.service import AppointmentLinkingService
from ..orders import registry
from ..orders.classification import classify_order_type, infer_session_type
from ..orders.repository import OrderRepository
from .schemas import CoachingFlowRequest, FlowCreationRequest, FlowResult, FlowStatus

logger = logging.getLogger(__name__)


def derive_flow_progress(encounter: Optional[Encounter]) -> FlowProgress:
    """pending iff no encounter; completed iff the encounter is; otherwise in progress"""
    if encounter is None:
        return FlowProgress.PENDING
    if encounter.status == EncounterStatus.COMPLETED.value:
        return FlowProgress.COMPLETED
    return FlowProgress.IN_PROGRESS


def resolve_order_type(order: Order) -> str:
    """Recorded order type, or the line-item heuristic when none was recorded"""
    if order.order_type:
        return order.order_type
    return classify_order_type(item.name for item in order.line_items)


class FlowFactory:
    """Service layer orchestrating order and coaching flows"""

    def __init__(
        self,
        db: Session,
        clock: Clock = utcnow,
        encounters: Optional[EncounterRepository] = None,
    ):
        self.db = db
        self.clock = clock
        self.encounters = encounters or EncounterRepository(db, AccessResolver(db), clock)
        self.linking = AppointmentLinkingService(db, self.encounters, clock)
        self.coaching = CoachingFlowService(db, self.encounters, clock)

    # ------------------------------------------------------------------
    # Order flows
    # ------------------------------------------------------------------

    def create_order_flow(self, data: FlowCreationRequest) -> FlowResult:
        """Create the async or sync flow for an order, based on its registry entry"""
        order_type = data.order_type
        if not order_type:
            try:
                order = OrderRepository.get_order_by_id(self.db, data.order_id)
            except SQLAlchemyError as e:
                logger.error(f"❌ Failed to load order {data.order_id}: {e}")
                return FlowResult(success=False, error=str(e), flow_type=FlowType.ASYNC)
            if not order:
                return FlowResult(success=False, error="Order not found", flow_type=FlowType.ASYNC)
            order_type = resolve_order_type(order)

        try:
            config = registry.require(order_type)
        except InvalidOrderType as e:
            logger.warning(f"⚠️ Order {data.order_id} has unknown order type '{e.order_type}'")
            return FlowResult(success=False, error=e.message, flow_type=FlowType.ASYNC)

        flow_type = FlowType.SYNC if config.requires_appointment else FlowType.ASYNC

        if not data.user_id:
            return FlowResult(success=False, error="Acting user is required", flow_type=flow_type)

        existing = self.encounters.find_by_order_id(data.order_id)
        if existing:
            return FlowResult(
                success=True,
                encounter_id=existing.id,
                appointment_id=existing.appointment_id,
                flow_type=flow_type,
            )

        title = f"Order Review: {data.order_id[:8]}"
        provider_name = ASYNC_PROVIDER_NAME
        if flow_type == FlowType.SYNC:
            # Appointment is scheduled separately and linked onto this encounter later
            title = f"{title} (Appointment Required)"
            provider_name = ORDER_PLACEHOLDER_PROVIDER

        encounter_data = EncounterCreate(
            patient_id=data.patient_id,
            title=title,
            date=self.clock(),
            type=EncounterType.CONSULTATION,
            provider_name=provider_name,
            provider_id=data.provider_id,
            business_type=config.business_type,
            order_id=data.order_id,
        )

        try:
            encounter = self.encounters.create(data.user_id, encounter_data)
        except CareFlowError as e:
            logger.error(f"❌ Failed to create {flow_type.value} flow for order {data.order_id}: {e.message}")
            return FlowResult(success=False, error=e.message, flow_type=flow_type)

        logger.info(f"✅ {flow_type.value} flow created for order {data.order_id}: encounter {encounter.id}")
        return FlowResult(success=True, encounter_id=encounter.id, flow_type=flow_type)

    def link_appointment_to_sync_order(
        self, appointment_id: str, order_id: str, user_id: str
    ) -> FlowResult:
        """Link a booked appointment onto a sync order's encounter"""
        try:
            appointment = AppointmentRepository.get_appointment_by_id(self.db, appointment_id)
            if not appointment:
                return FlowResult(success=False, error="Appointment not found", flow_type=FlowType.SYNC)

            order = OrderRepository.get_order_by_id(self.db, order_id)
            if not order:
                return FlowResult(success=False, error="Order not found", flow_type=FlowType.SYNC)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load appointment {appointment_id} / order {order_id}: {e}")
            return FlowResult(success=False, error=str(e), flow_type=FlowType.SYNC)

        try:
            config = registry.require(resolve_order_type(order))
        except InvalidOrderType as e:
            return FlowResult(success=False, error=e.message, flow_type=FlowType.SYNC)
        if not config.requires_appointment:
            return FlowResult(
                success=False,
                error="Order does not require an appointment",
                flow_type=FlowType.ASYNC,
            )

        result = self.linking.link(appointment, order, user_id)
        return FlowResult(
            success=result.success,
            encounter_id=result.encounter_id,
            appointment_id=appointment.id,
            error=result.error,
            flow_type=FlowType.SYNC,
        )

    def unlink_appointment_from_order(
        self, appointment_id: str, order_id: str, user_id: str
    ) -> FlowResult:
        encounter = self.encounters.find_by_order_id(order_id)
        if encounter and not self.encounters.verify_patient_access(user_id, encounter.patient_id):
            return FlowResult(
                success=False, error="Patient not found or access denied", flow_type=FlowType.SYNC
            )

        result = self.linking.unlink(appointment_id, order_id)
        return FlowResult(
            success=result.success,
            encounter_id=result.encounter_id,
            appointment_id=appointment_id,
            error=result.error,
            flow_type=FlowType.SYNC,
        )

    def get_order_flow_status(self, order_id: str) -> FlowStatus:
        """Derive flow status from what exists; never writes"""
        encounter = self.encounters.find_by_order_id(order_id)
        if encounter is None:
            return FlowStatus(
                flow_type=FlowType.ASYNC,
                has_encounter=False,
                has_appointment=False,
                status=FlowProgress.PENDING,
            )

        flow_type = (
            FlowType.SYNC
            if encounter.business_type == BusinessType.ORDER_BASED_SYNC.value
            else FlowType.ASYNC
        )
        return FlowStatus(
            flow_type=flow_type,
            has_encounter=True,
            has_appointment=bool(encounter.appointment_id),
            encounter_id=encounter.id,
            appointment_id=encounter.appointment_id,
            status=derive_flow_progress(encounter),
        )

    def get_orders_needing_flow_creation(
        self, provider_id: Optional[str] = None
    ) -> list[FlowCreationRequest]:
        """Pending orders that have no encounter yet"""
        try:
            orders = OrderRepository.get_pending_orders(self.db)
            candidates = []
            for order in orders:
                if self.encounters.find_by_order_id(order.id):
                    continue

                candidates.append(
                    FlowCreationRequest(
                        order_id=order.id,
                        patient_id=order.patient_id,
                        order_type=resolve_order_type(order),
                        user_id=order.patient.user_id if order.patient else None,
                        provider_id=provider_id,
                    )
                )
            return candidates
        except SQLAlchemyError as e:
            logger.error(f"❌ Error getting orders needing flow creation: {e}")
            return []

    def get_sync_orders_needing_appointments(self):
        return self.linking.get_sync_orders_needing_appointments()

    # ------------------------------------------------------------------
    # Coaching flows
    # ------------------------------------------------------------------

    def create_coaching_flow(self, data: CoachingFlowRequest) -> FlowResult:
        """Appointment-based when an appointment is given, ad-hoc otherwise"""
        if not data.user_id:
            return FlowResult(success=False, error="Acting user is required", flow_type=FlowType.COACHING)

        if data.appointment_id:
            result = self.coaching.create_from_appointment(
                data.user_id, data.appointment_id, data.session_type
            )
        else:
            result = self.coaching.create_ad_hoc(
                data.user_id,
                data.patient_id,
                title=data.title,
                date=data.date,
                session_type=data.session_type,
            )
        return self._coaching_result(result)

    @staticmethod
    def _coaching_result(result: EncounterLinkResult) -> FlowResult:
        return FlowResult(
            success=result.success,
            encounter_id=result.encounter_id,
            appointment_id=result.appointment_id,
            error=result.error,
            flow_type=FlowType.COACHING,
        )

    def get_coaching_flow_status(
        self, appointment_id: Optional[str] = None, encounter_id: Optional[str] = None
    ) -> FlowStatus:
        encounter = None
        if encounter_id:
            candidate = self.encounters.get(encounter_id)
            if candidate and candidate.business_type == BusinessType.COACHING.value:
                encounter = candidate
        elif appointment_id:
            encounter = self.coaching.find_by_appointment_id(appointment_id)

        if encounter is None:
            return FlowStatus(
                flow_type=FlowType.COACHING,
                has_encounter=False,
                has_appointment=bool(appointment_id),
                appointment_id=appointment_id,
                status=FlowProgress.PENDING,
            )

        return FlowStatus(
            flow_type=FlowType.COACHING,
            has_encounter=True,
            has_appointment=bool(encounter.appointment_id),
            encounter_id=encounter.id,
            appointment_id=encounter.appointment_id or appointment_id,
            status=derive_flow_progress(encounter),
        )

    def get_coaching_appointments_needing_flow_creation(
        self, provider_id: Optional[str] = None
    ) -> list[CoachingFlowRequest]:
        """Scheduled coaching appointments that have no encounter yet"""
        try:
            appointments = self.coaching.get_coaching_appointments(provider_id)
            candidates = []
            for appointment in appointments:
                if self.encounters.find_by_appointment_id(appointment.id):
                    continue

                candidates.append(
                    CoachingFlowRequest(
                        appointment_id=appointment.id,
                        patient_id=appointment.patient_id,
                        user_id=appointment.patient.user_id if appointment.patient else None,
                        provider_id=appointment.provider_id,
                        session_type=infer_session_type(appointment.reason),
                        title=appointment.reason,
                        date=appointment.datetime,
                    )
                )
            return candidates
        except SQLAlchemyError as e:
            logger.error(f"❌ Error getting coaching appointments needing flow creation: {e}")
            return []
