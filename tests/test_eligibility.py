from uuid import uuid4

import pytest

from rewardhub_api.services.rewards import (
    ClaimRejectionReason,
    EligibilityStatus,
    RewardDefinition,
    classify,
    points_shortfall,
    rejection_reason_for,
)
from rewardhub_api.services.rewards.eligibility import ELIGIBILITY_RULES


def _reward(*, points_required: int = 100, stock_quantity: int | None = None) -> RewardDefinition:
    return RewardDefinition(
        id=uuid4(),
        title="Gift Card",
        description="",
        points_required=points_required,
        category="gift_card",
        image_url=None,
        is_active=True,
        stock_quantity=stock_quantity,
        display_order=0,
    )


@pytest.mark.parametrize(
    ("claimed", "stock", "balance", "expected"),
    [
        (True, 0, 0, EligibilityStatus.CLAIMED),
        (True, None, 1000, EligibilityStatus.CLAIMED),
        (False, 0, 0, EligibilityStatus.UNAVAILABLE),
        (False, 0, 1000, EligibilityStatus.UNAVAILABLE),
        (False, -1, 1000, EligibilityStatus.UNAVAILABLE),
        (False, 5, 99, EligibilityStatus.INSUFFICIENT_POINTS),
        (False, None, 99, EligibilityStatus.INSUFFICIENT_POINTS),
        (False, 1, 100, EligibilityStatus.AVAILABLE),
        (False, None, 5000, EligibilityStatus.AVAILABLE),
    ],
)
def test_classify_applies_precedence(claimed, stock, balance, expected) -> None:
    reward = _reward(points_required=100, stock_quantity=stock)
    claimed_ids = {reward.id} if claimed else set()

    assert classify(reward, balance, claimed_ids) is expected


def test_classify_ignores_claims_of_other_rewards() -> None:
    reward = _reward()

    assert classify(reward, 500, {uuid4(), uuid4()}) is EligibilityStatus.AVAILABLE


def test_free_reward_is_available_at_zero_balance() -> None:
    assert classify(_reward(points_required=0), 0, ()) is EligibilityStatus.AVAILABLE


def test_rule_table_order_is_claimed_unavailable_insufficient() -> None:
    assert [rule.status for rule in ELIGIBILITY_RULES] == [
        EligibilityStatus.CLAIMED,
        EligibilityStatus.UNAVAILABLE,
        EligibilityStatus.INSUFFICIENT_POINTS,
    ]


def test_rejection_reasons_follow_classifier_outcomes() -> None:
    assert rejection_reason_for(EligibilityStatus.CLAIMED) is ClaimRejectionReason.ALREADY_CLAIMED
    assert rejection_reason_for(EligibilityStatus.UNAVAILABLE) is ClaimRejectionReason.OUT_OF_STOCK
    assert rejection_reason_for(EligibilityStatus.INSUFFICIENT_POINTS) is ClaimRejectionReason.INSUFFICIENT_POINTS
    assert rejection_reason_for(EligibilityStatus.AVAILABLE) is None


def test_points_shortfall_never_negative() -> None:
    reward = _reward(points_required=750)

    assert points_shortfall(reward, 500) == 250
    assert points_shortfall(reward, 750) == 0
    assert points_shortfall(reward, 2000) == 0
