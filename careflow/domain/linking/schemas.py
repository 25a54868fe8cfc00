"""Linking domain schemas"""

from typing import Optional

from pydantic import BaseModel


class LinkResult(BaseModel):
    """Outcome of reconciling an order with an appointment"""

    success: bool
    encounter_id: Optional[str] = None
    already_exists: bool = False
    error: Optional[str] = None


class OrderSummary(BaseModel):
    """A pending order that still needs a flow"""

    id: str
    patient_id: str
    order_type: str
    title: str
    status: str
