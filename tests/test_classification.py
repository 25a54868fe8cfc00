import pytest

from careflow.domain.orders.classification import (
    classify_order_type,
    infer_session_type,
    requires_live_visit,
)
from careflow.enums import SessionType


@pytest.mark.parametrize(
    "names, expected",
    [
        (["Testosterone Cypionate 200mg"], "TRT"),
        (["Semaglutide 0.25mg"], "weight_loss"),
        (["ADHD evaluation"], "controlled_medication"),
        (["Anxiety support plan"], "mental_health"),
        (["Basic Lab Panel"], "lab_test"),
        (["Vitamin D3"], "supplement"),
        (["Amoxicillin 500mg"], "medication"),
    ],
)
def test_classify_order_type(names, expected):
    assert classify_order_type(names) == expected


def test_classify_defaults_to_medication():
    assert classify_order_type([]) == "medication"
    assert classify_order_type([None]) == "medication"


def test_classify_first_keyword_group_wins():
    assert classify_order_type(["Vitamin D3", "TRT starter kit"]) == "TRT"


def test_requires_live_visit():
    assert requires_live_visit(["Weight Loss Program"]) is True
    assert requires_live_visit(["Controlled Substance Refill"]) is True
    assert requires_live_visit(["Vitamin D3", None]) is False


@pytest.mark.parametrize(
    "reason, expected",
    [
        (None, SessionType.LIFE_COACHING),
        ("", SessionType.LIFE_COACHING),
        ("Career change planning", SessionType.CAREER_COACHING),
        ("Fitness goals", SessionType.WELLNESS_COACHING),
        ("Relationship check-in", SessionType.LIFE_COACHING),
    ],
)
def test_infer_session_type(reason, expected):
    assert infer_session_type(reason) == expected
