"""Exceptions raised by the rewards core."""

from __future__ import annotations

from uuid import UUID


class RewardsError(RuntimeError):
    """Base exception for reward catalog and claim failures."""


class StoreUnavailableError(RewardsError):
    """Raised when the ledger store cannot serve a read; no partial results are returned."""


class ClaimTransientError(RewardsError):
    """Raised when every bounded claim attempt failed at the transaction layer.

    The claim may or may not have committed; callers resolve the outcome by
    looking up the claim record rather than assuming failure.
    """

    def __init__(self, user_id: UUID, reward_id: UUID, attempts: int) -> None:
        super().__init__(
            f"Claim of reward {reward_id} for user {user_id} failed after {attempts} attempt(s)"
        )
        self.user_id = user_id
        self.reward_id = reward_id
        self.attempts = attempts


class ClaimantNotFoundError(RewardsError):
    """Raised when a claim is requested for an unknown user account."""


class RewardMappingError(RewardsError):
    """Raised when a stored reward row is missing fields or holds malformed values."""
