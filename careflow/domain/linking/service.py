"""
Appointment ↔ Order linking.

Reconciles one order with one appointment into a single encounter. An
appointment is often booked before its order is finalized, and a sync order
flow may have created a placeholder encounter before any appointment exists,
so every path looks for existing rows first and merges instead of inserting a
second encounter. Unique constraints on the encounters table catch the
remaining check-then-insert race; a conflict resolves to the winning row.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...clock import Clock, utcnow
from ...config import LINKED_PROVIDER_PLACEHOLDER
from ...enums import BusinessType, EncounterStatus, EncounterType
from ...models import Appointment, Order
from ...models_encounter import Encounter
from ..access import AccessResolver
from ..appointments.repository import AppointmentRepository
from ..encounters.repository import EncounterRepository
from ..orders.classification import requires_live_visit
from ..orders.repository import OrderRepository
from .schemas import LinkResult, OrderSummary

logger = logging.getLogger(__name__)

LINK_CONFLICT = "Encounter link conflict"


def order_title(order: Order) -> str:
    return f"Order #{order.id[:8]}"


class AppointmentLinkingService:
    """Service layer binding sync orders to their appointments"""

    def __init__(
        self,
        db: Session,
        encounters: Optional[EncounterRepository] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.encounters = encounters or EncounterRepository(db, AccessResolver(db), clock)
        self.access = self.encounters.access

    def link(self, appointment: Appointment, order: Order, actor_id: str) -> LinkResult:
        """Find or create the single encounter for this (order, appointment) pair"""
        if appointment.patient_id != order.patient_id:
            return LinkResult(
                success=False, error="Appointment and order belong to different patients"
            )

        if not self.encounters.verify_patient_access(actor_id, order.patient_id):
            return LinkResult(success=False, error="Patient not found or access denied")

        try:
            # 1. The order already has an encounter
            order_encounter = self.encounters.find_by_order_id(order.id)
            if order_encounter:
                return self._link_existing_order_encounter(order_encounter, appointment)

            # 2. The appointment already has an encounter but no order yet: merge in place
            appointment_encounter = self._appointment_encounter_without_order(appointment.id)
            if appointment_encounter:
                if not self.encounters.claim_for_order(appointment_encounter, order.id):
                    self.db.rollback()
                    logger.warning(
                        f"⚠️ Appointment encounter {appointment_encounter.id} was claimed by another order"
                    )
                    return LinkResult(success=False, error=LINK_CONFLICT)
                AppointmentRepository.set_encounter_reference(
                    self.db, appointment.id, appointment_encounter.id
                )
                self.db.commit()
                logger.info(
                    f"✅ Order {order.id} merged into appointment encounter {appointment_encounter.id}"
                )
                return LinkResult(success=True, encounter_id=appointment_encounter.id)

            # 3. Neither exists: create, then point the appointment back at it
            encounter = self.encounters.add(
                patient_id=order.patient_id,
                provider_id=appointment.provider_id,
                title=f"Appointment with Order Review: {order_title(order)}",
                encounter_date=appointment.datetime,
                encounter_type=EncounterType.CONSULTATION.value,
                business_type=BusinessType.ORDER_BASED_SYNC.value,
                appointment_id=appointment.id,
                order_id=order.id,
                provider_name=LINKED_PROVIDER_PLACEHOLDER,
            )
            AppointmentRepository.set_encounter_reference(self.db, appointment.id, encounter.id)
            self.db.commit()
            logger.info(f"✅ Encounter {encounter.id} created for order {order.id} / appointment {appointment.id}")
            return LinkResult(success=True, encounter_id=encounter.id)

        except IntegrityError:
            self.db.rollback()
            return self._resolve_conflict(appointment, order)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to link appointment {appointment.id} to order {order.id}: {e}")
            return LinkResult(success=False, error=str(e))

    def _resolve_conflict(self, appointment: Appointment, order: Order) -> LinkResult:
        """Finish the link against the row a concurrent writer committed first"""
        existing = self.encounters.find_by_order_id(order.id)
        if not existing:
            return LinkResult(success=False, error=LINK_CONFLICT)

        logger.info(f"ℹ️ Concurrent link for order {order.id} resolved to {existing.id}")
        try:
            result = self._link_existing_order_encounter(existing, appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to link appointment {appointment.id} to order {order.id}: {e}")
            return LinkResult(success=False, error=str(e))

        if result.success:
            return result.model_copy(update={"already_exists": True})
        return result

    def _appointment_encounter_without_order(self, appointment_id: str) -> Optional[Encounter]:
        encounter = self.encounters.find_by_appointment_id(appointment_id)
        if encounter and not encounter.order_id:
            return encounter
        return None

    def _link_existing_order_encounter(
        self, encounter: Encounter, appointment: Appointment
    ) -> LinkResult:
        if encounter.appointment_id:
            if encounter.appointment_id != appointment.id:
                logger.warning(
                    f"⚠️ Order encounter {encounter.id} is already linked to appointment "
                    f"{encounter.appointment_id}; leaving it unchanged"
                )
            return LinkResult(success=True, encounter_id=encounter.id, already_exists=True)

        provider = self.access.get_provider(appointment.provider_id)
        provider_name = provider.full_name if provider else None

        appointment_encounter = self._appointment_encounter_without_order(appointment.id)
        if appointment_encounter is None:
            # Placeholder from a sync order flow: attach the appointment in place
            self.encounters.attach_appointment(encounter, appointment, provider_name)
            self.db.commit()
            logger.info(f"✅ Appointment {appointment.id} attached to order encounter {encounter.id}")
            return LinkResult(success=True, encounter_id=encounter.id)

        if not self._is_blank_placeholder(encounter):
            return LinkResult(
                success=False,
                encounter_id=encounter.id,
                error="Order and appointment already have separate encounters with clinical content",
            )

        # Fold the untouched placeholder into the appointment's encounter
        order_id, placeholder_id = encounter.order_id, encounter.id
        self.encounters.remove(encounter)
        if not self.encounters.claim_for_order(appointment_encounter, order_id):
            self.db.rollback()
            return LinkResult(success=False, encounter_id=placeholder_id, error=LINK_CONFLICT)
        AppointmentRepository.set_encounter_reference(
            self.db, appointment.id, appointment_encounter.id
        )
        self.db.commit()
        logger.info(
            f"✅ Placeholder for order {order_id} folded into appointment encounter {appointment_encounter.id}"
        )
        return LinkResult(success=True, encounter_id=appointment_encounter.id)

    @staticmethod
    def _is_blank_placeholder(encounter: Encounter) -> bool:
        return (
            encounter.status == EncounterStatus.UPCOMING.value
            and not encounter.provider_notes
            and encounter.finalized_at is None
        )

    def unlink(self, appointment_id: str, order_id: str) -> LinkResult:
        """Reverse an erroneous link: drop the order's encounter and the appointment pointer"""
        encounter = self.encounters.find_by_order_id(order_id)
        if not encounter:
            return LinkResult(success=False, error="No encounter found for this order")

        try:
            encounter_id = encounter.id
            self.encounters.remove(encounter)
            AppointmentRepository.set_encounter_reference(self.db, appointment_id, None)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to unlink appointment {appointment_id} from order {order_id}: {e}")
            return LinkResult(success=False, error=str(e))

        logger.info(f"🔗 Unlinked appointment {appointment_id} from order {order_id}")
        return LinkResult(success=True, encounter_id=encounter_id)

    def get_encounter_by_order_id(self, order_id: str) -> Optional[Encounter]:
        return self.encounters.find_by_order_id(order_id)

    def get_encounter_by_appointment_id(self, appointment_id: str) -> Optional[Encounter]:
        return self.encounters.find_by_appointment_id(appointment_id)

    def get_sync_orders_needing_appointments(self) -> list[OrderSummary]:
        """Pending, unlinked orders whose line items look like they need a live visit"""
        try:
            orders = OrderRepository.get_pending_orders(self.db)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching sync orders: {e}")
            return []

        sync_orders = []
        for order in orders:
            if self.encounters.find_by_order_id(order.id):
                continue

            if requires_live_visit(item.name for item in order.line_items):
                sync_orders.append(
                    OrderSummary(
                        id=order.id,
                        patient_id=order.patient_id,
                        order_type="sync",
                        title=order_title(order),
                        status=order.status,
                    )
                )

        return sync_orders
