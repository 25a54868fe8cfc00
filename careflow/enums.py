"""
Closed enumerations shared by encounters, orders and flows.
"""

from enum import Enum


class EncounterStatus(str, Enum):
    """Encounter lifecycle: upcoming → in_progress → completed"""

    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class EncounterType(str, Enum):
    ROUTINE = "routine"
    FOLLOW_UP = "follow_up"
    URGENT = "urgent"
    CONSULTATION = "consultation"


class BusinessType(str, Enum):
    """Why an encounter exists. Decides which linking rules apply."""

    MANUAL = "manual"
    APPOINTMENT_BASED = "appointment_based"
    ORDER_BASED_ASYNC = "order_based_async"
    ORDER_BASED_SYNC = "order_based_sync"
    COACHING = "coaching"


class OrderCategory(str, Enum):
    TRT = "trt"
    CONTROLLED_SUBSTANCE = "controlled_substance"
    WEIGHT_LOSS = "weight_loss"
    MENTAL_HEALTH = "mental_health"
    MEDICATION = "medication"
    SUPPLEMENT = "supplement"
    LAB = "lab"


class SessionType(str, Enum):
    LIFE_COACHING = "life_coaching"
    WELLNESS_COACHING = "wellness_coaching"
    CAREER_COACHING = "career_coaching"


class FlowType(str, Enum):
    ASYNC = "async"
    SYNC = "sync"
    COACHING = "coaching"


class FlowProgress(str, Enum):
    """Derived flow status, never stored"""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Appointment and order status values written by the scheduling and ordering apps
APPOINTMENT_SCHEDULED = "scheduled"
ORDER_PENDING = "pending"
