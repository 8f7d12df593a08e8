"""Claim eligibility classification.

The rule order below is a contract shared by the catalog and the claim
transaction: the first matching rule wins, and the claim processor maps the
same outcome onto its rejection reasons. Reordering the rules changes what
members see and what the transaction enforces.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from typing import NamedTuple
from uuid import UUID

from .domain import ClaimRejectionReason, EligibilityStatus, RewardDefinition


class _Rule(NamedTuple):
    status: EligibilityStatus
    matches: Callable[[RewardDefinition, int, Collection[UUID]], bool]


def _already_claimed(reward: RewardDefinition, balance: int, claimed: Collection[UUID]) -> bool:
    return reward.id in claimed


def _out_of_stock(reward: RewardDefinition, balance: int, claimed: Collection[UUID]) -> bool:
    return reward.stock_quantity is not None and reward.stock_quantity <= 0


def _short_on_points(reward: RewardDefinition, balance: int, claimed: Collection[UUID]) -> bool:
    return balance < reward.points_required


ELIGIBILITY_RULES: tuple[_Rule, ...] = (
    _Rule(EligibilityStatus.CLAIMED, _already_claimed),
    _Rule(EligibilityStatus.UNAVAILABLE, _out_of_stock),
    _Rule(EligibilityStatus.INSUFFICIENT_POINTS, _short_on_points),
)

_REJECTION_FOR_STATUS: dict[EligibilityStatus, ClaimRejectionReason] = {
    EligibilityStatus.CLAIMED: ClaimRejectionReason.ALREADY_CLAIMED,
    EligibilityStatus.UNAVAILABLE: ClaimRejectionReason.OUT_OF_STOCK,
    EligibilityStatus.INSUFFICIENT_POINTS: ClaimRejectionReason.INSUFFICIENT_POINTS,
}


def classify(
    reward: RewardDefinition,
    balance: int,
    claimed_reward_ids: Collection[UUID],
) -> EligibilityStatus:
    """Return the eligibility status of ``reward`` for a member."""

    for rule in ELIGIBILITY_RULES:
        if rule.matches(reward, balance, claimed_reward_ids):
            return rule.status
    return EligibilityStatus.AVAILABLE


def rejection_reason_for(status: EligibilityStatus) -> ClaimRejectionReason | None:
    """Map a classifier outcome to the claim rejection it implies (``None`` when claimable)."""

    return _REJECTION_FOR_STATUS.get(status)


def points_shortfall(reward: RewardDefinition, balance: int) -> int:
    return max(reward.points_required - balance, 0)


__all__ = ["ELIGIBILITY_RULES", "classify", "points_shortfall", "rejection_reason_for"]
