"""
Order type registry.

Static rule table mapping an order-type code to whether a live appointment is
required before fulfillment, the encounter business type that follows from
it, and the clinical category. Unknown codes resolve to None; callers treat
that as an error rather than guessing a route.
"""

from dataclasses import dataclass
from typing import Optional

from ...enums import BusinessType, OrderCategory
from ...errors import InvalidOrderType


@dataclass(frozen=True)
class OrderTypeConfig:
    order_type: str
    requires_appointment: bool
    business_type: BusinessType
    category: OrderCategory
    label: str


def _sync(order_type: str, category: OrderCategory, label: str) -> OrderTypeConfig:
    return OrderTypeConfig(order_type, True, BusinessType.ORDER_BASED_SYNC, category, label)


def _async(order_type: str, category: OrderCategory, label: str) -> OrderTypeConfig:
    return OrderTypeConfig(order_type, False, BusinessType.ORDER_BASED_ASYNC, category, label)


ORDER_TYPES = {
    config.order_type: config
    for config in (
        # Controlled-substance-like categories need a live visit
        _sync("TRT", OrderCategory.TRT, "TRT"),
        _sync("controlled_medication", OrderCategory.CONTROLLED_SUBSTANCE, "Controlled Medication"),
        _sync("weight_loss", OrderCategory.WEIGHT_LOSS, "Weight Loss"),
        _sync("mental_health", OrderCategory.MENTAL_HEALTH, "Mental Health"),
        _async("medication", OrderCategory.MEDICATION, "Medication"),
        _async("supplement", OrderCategory.SUPPLEMENT, "Supplement"),
        _async("lab_test", OrderCategory.LAB, "Lab Test"),
    )
}


def lookup(order_type: Optional[str]) -> Optional[OrderTypeConfig]:
    """Return the rule for an order type, or None if the code is unknown"""
    if not order_type:
        return None
    return ORDER_TYPES.get(order_type)


def require(order_type: Optional[str]) -> OrderTypeConfig:
    """Like lookup, but an unknown code raises InvalidOrderType"""
    config = lookup(order_type)
    if config is None:
        raise InvalidOrderType(order_type)
    return config


def requires_appointment(order_type: Optional[str]) -> bool:
    config = lookup(order_type)
    return bool(config and config.requires_appointment)


def business_type_for(order_type: Optional[str]) -> Optional[BusinessType]:
    config = lookup(order_type)
    return config.business_type if config else None


def known_order_types() -> list[str]:
    return list(ORDER_TYPES)
