"""Atomic reward claim transaction."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID, uuid4

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub_api.core.logging import claim_log_context
from rewardhub_api.core.settings import get_settings
from rewardhub_api.db.session import SessionFactory
from rewardhub_api.models.rewards import Reward, RewardClaim
from rewardhub_api.models.user import User
from rewardhub_api.observability.rewards import RewardsObservabilityStore, get_rewards_store
from rewardhub_api.services.notifications import ClaimNotificationOutbox, RewardClaimedEvent

from .domain import (
    ClaimRecord,
    ClaimRejected,
    ClaimRejectionReason,
    ClaimResult,
    ClaimSuccess,
    reward_definition_from_row,
)
from .eligibility import classify, rejection_reason_for
from .errors import ClaimantNotFoundError, ClaimTransientError, StoreUnavailableError
from .profile_sync import BalanceChangeEvent, ProfileSync, get_profile_sync


# Errors raised by the driver or pool for lock conflicts, uniqueness races,
# deadlocks and lost connections. The whole attempt is replayed on these.
TRANSIENT_STORE_ERRORS: tuple[type[Exception], ...] = (DBAPIError, PoolTimeoutError)


@dataclass(slots=True)
class _CommittedClaim:
    result: ClaimSuccess
    notification: RewardClaimedEvent


class ClaimProcessor:
    """Run claim attempts as single serialized transactions with bounded retry."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        max_attempts: int | None = None,
        read_session_factory: SessionFactory | None = None,
        outbox: ClaimNotificationOutbox | None = None,
        profile_sync: ProfileSync | None = None,
        observability: RewardsObservabilityStore | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._read_session_factory = read_session_factory or session_factory
        attempts = max_attempts if max_attempts is not None else get_settings().claim_max_attempts
        self._max_attempts = min(max(int(attempts), 1), 3)
        self._outbox = outbox
        self._profile_sync = profile_sync or get_profile_sync()
        self._observability = observability or get_rewards_store()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def claim(self, user_id: UUID, reward_id: UUID) -> ClaimResult:
        """Claim ``reward_id`` for ``user_id``.

        Returns ``ClaimSuccess`` or ``ClaimRejected``; raises ``ClaimTransientError``
        once every attempt failed at the transaction layer and
        ``ClaimantNotFoundError`` for unknown users.
        """

        with claim_log_context(user_id, reward_id):
            return await self._claim(user_id, reward_id)

    async def _claim(self, user_id: UUID, reward_id: UUID) -> ClaimResult:
        attempt = 0
        while True:
            attempt += 1
            try:
                outcome = await self._attempt(user_id, reward_id)
            except TRANSIENT_STORE_ERRORS as exc:
                if attempt < self._max_attempts:
                    self._observability.record_claim_retry()
                    logger.warning(
                        "Claim transaction failed; retrying",
                        attempt=attempt,
                        error=str(exc),
                    )
                    continue
                self._observability.record_claim_transient_failure()
                logger.error(
                    "Claim transaction failed after bounded retries",
                    attempts=attempt,
                    error=str(exc),
                )
                raise ClaimTransientError(user_id, reward_id, attempt) from exc
            break

        if isinstance(outcome, ClaimRejected):
            self._observability.record_claim_rejection(outcome.reason.value)
            logger.info("Claim rejected", reason=outcome.reason.value)
            return outcome

        self._observability.record_claim_success()
        logger.info(
            "Reward claimed",
            claim_id=str(outcome.result.claim_id),
            new_balance=outcome.result.new_balance,
            attempts=attempt,
        )
        self._after_commit(user_id, outcome)
        return outcome.result

    async def get_claim(self, user_id: UUID, reward_id: UUID) -> ClaimRecord | None:
        """Look up the claim record for a pair, e.g. after a timed-out claim request."""

        stmt = select(RewardClaim).where(
            RewardClaim.user_id == user_id,
            RewardClaim.reward_id == reward_id,
        )
        try:
            async with self._read_session_factory() as session:
                record = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Unable to read claim state") from exc

        if record is None:
            return None
        return ClaimRecord(
            claim_id=record.id,
            user_id=record.user_id,
            reward_id=record.reward_id,
            points_spent=record.points_spent,
            claimed_at=record.claimed_at,
        )

    async def _attempt(self, user_id: UUID, reward_id: UUID) -> ClaimRejected | _CommittedClaim:
        async with self._session_factory() as session:
            outcome = await self._check_and_apply(session, user_id, reward_id)
            if isinstance(outcome, ClaimRejected):
                await session.rollback()
            else:
                await session.commit()
            return outcome

    async def _check_and_apply(
        self,
        session: AsyncSession,
        user_id: UUID,
        reward_id: UUID,
    ) -> ClaimRejected | _CommittedClaim:
        # Lock order is user then reward for every claim.
        user = (
            await session.execute(
                select(User)
                .where(User.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if user is None:
            raise ClaimantNotFoundError(f"User {user_id} not found")

        reward_row = (
            await session.execute(
                select(Reward)
                .where(Reward.id == reward_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if reward_row is None or not reward_row.is_active:
            return ClaimRejected(ClaimRejectionReason.REWARD_NOT_FOUND_OR_INACTIVE)

        reward = reward_definition_from_row(reward_row)
        existing_claim = (
            await session.execute(
                select(RewardClaim.id)
                .where(RewardClaim.user_id == user_id, RewardClaim.reward_id == reward_id)
                .limit(1)
            )
        ).scalar_one_or_none()

        balance = int(user.points_balance or 0)
        claimed = {reward.id} if existing_claim is not None else set()
        reason = rejection_reason_for(classify(reward, balance, claimed))
        if reason is not None:
            return ClaimRejected(reason)

        new_balance = balance - reward.points_required
        user.points_balance = new_balance
        if reward.stock_quantity is not None:
            reward_row.stock_quantity = reward.stock_quantity - 1

        claimed_at = datetime.now(timezone.utc)
        claim = RewardClaim(
            id=uuid4(),
            user_id=user_id,
            reward_id=reward_id,
            points_spent=reward.points_required,
            claimed_at=claimed_at,
        )
        session.add(claim)
        await session.flush()

        return _CommittedClaim(
            result=ClaimSuccess(
                claim_id=claim.id,
                reward_id=reward_id,
                new_balance=new_balance,
                claimed_at=claimed_at,
            ),
            notification=RewardClaimedEvent(
                user_id=user_id,
                email=user.email,
                display_name=user.display_name,
                reward_id=reward_id,
                reward_title=reward.title,
                claim_id=claim.id,
                new_balance=new_balance,
            ),
        )

    def _after_commit(self, user_id: UUID, committed: _CommittedClaim) -> None:
        self._profile_sync.publish(
            BalanceChangeEvent(
                user_id=user_id,
                new_balance=committed.result.new_balance,
                observed_at=committed.result.claimed_at,
            )
        )
        if self._outbox is not None:
            self._outbox.enqueue(committed.notification)


__all__ = ["ClaimProcessor", "TRANSIENT_STORE_ERRORS"]
