"""
Keyword heuristics over free text.

Best-effort classifiers for orders whose type was never recorded and for
coaching appointments booked with only a reason string. The registry stays
authoritative whenever an order type is known directly.
"""

from typing import Iterable, Optional

from ...enums import SessionType

# Checked in order; first match wins
ORDER_TYPE_KEYWORDS = (
    ("TRT", ("trt", "testosterone")),
    ("weight_loss", ("weight loss", "weight-loss", "weightloss", "semaglutide", "ozempic", "wegovy")),
    ("controlled_medication", ("controlled", "adhd")),
    ("mental_health", ("mental health", "anxiety", "depression")),
    ("lab_test", ("lab",)),
    ("supplement", ("supplement", "vitamin")),
)
DEFAULT_ORDER_TYPE = "medication"

LIVE_VISIT_KEYWORDS = ("trt", "testosterone", "controlled", "weight loss")

SESSION_TYPE_KEYWORDS = (
    (SessionType.CAREER_COACHING, ("career", "job", "professional")),
    (SessionType.WELLNESS_COACHING, ("wellness", "health", "fitness")),
)


def _normalize(names: Iterable[Optional[str]]) -> list[str]:
    return [(name or "").lower() for name in names]


def classify_order_type(line_item_names: Iterable[Optional[str]]) -> str:
    """Infer a registry order type from line item names, defaulting to medication"""
    names = _normalize(line_item_names)
    for order_type, keywords in ORDER_TYPE_KEYWORDS:
        if any(keyword in name for name in names for keyword in keywords):
            return order_type
    return DEFAULT_ORDER_TYPE


def requires_live_visit(line_item_names: Iterable[Optional[str]]) -> bool:
    """True if any line item looks like it needs a synchronous appointment"""
    return any(
        keyword in name for name in _normalize(line_item_names) for keyword in LIVE_VISIT_KEYWORDS
    )


def infer_session_type(reason: Optional[str]) -> SessionType:
    """Infer the coaching session category from an appointment reason"""
    if not reason:
        return SessionType.LIFE_COACHING

    reason_lower = reason.lower()
    for session_type, keywords in SESSION_TYPE_KEYWORDS:
        if any(keyword in reason_lower for keyword in keywords):
            return session_type

    return SessionType.LIFE_COACHING
