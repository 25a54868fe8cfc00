"""
Encounter status rules.

Encounter statuses: upcoming → in_progress → completed

Transitions are driven by provider actions (call start, note signing) and
never move backwards. Completion additionally waits for a linked appointment
to have taken place.
"""

from datetime import datetime
from typing import Optional

from ...clock import ensure_aware
from ...enums import APPOINTMENT_SCHEDULED, EncounterStatus
from ...models import Appointment

STATUS_RANK = {
    EncounterStatus.UPCOMING.value: 0,
    EncounterStatus.IN_PROGRESS.value: 1,
    EncounterStatus.COMPLETED.value: 2,
}


def validate_status_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if an encounter status transition is allowed

    Args:
        current_status: Current encounter status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    if new_status not in STATUS_RANK:
        return False

    # Allow same status (no-op)
    if current_status == new_status:
        return True

    return STATUS_RANK[new_status] > STATUS_RANK.get(current_status, 0)


def appointment_blocks_completion(appointment: Optional[Appointment], now: datetime) -> bool:
    """A still-scheduled appointment in the future keeps the encounter open"""
    if appointment is None or appointment.status != APPOINTMENT_SCHEDULED:
        return False
    return ensure_aware(appointment.datetime) > ensure_aware(now)
