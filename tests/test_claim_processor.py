import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from rewardhub_api.observability.rewards import get_rewards_store
from rewardhub_api.services.notifications import (
    ClaimNotificationOutbox,
    InMemoryEmailBackend,
    NotificationService,
)
from rewardhub_api.services.rewards import (
    ClaimantNotFoundError,
    ClaimProcessor,
    ClaimRejected,
    ClaimRejectionReason,
    ClaimSuccess,
    ClaimTransientError,
    get_profile_sync,
)


def _flaky(factory, failures: int):
    calls = {"count": 0}

    def make_session():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
        return factory()

    return make_session, calls


class ExplodingBackend:
    async def send_email(self, recipient, subject, body_text, *, body_html=None, reply_to=None) -> None:
        raise RuntimeError("smtp relay unavailable")


@pytest.mark.asyncio
async def test_successful_claim_debits_balance_and_stock(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=1000)
    reward = await seed.reward(points_required=300, stock_quantity=4)

    result = await ClaimProcessor(claim_session_factory).claim(user.id, reward.id)

    assert isinstance(result, ClaimSuccess)
    assert result.new_balance == 700
    assert result.reward_id == reward.id
    assert await seed.balance(user.id) == 700
    assert await seed.stock(reward.id) == 3
    assert await seed.claim_count(user_id=user.id, reward_id=reward.id) == 1
    assert get_rewards_store().snapshot().claims["succeeded"] == 1


@pytest.mark.asyncio
async def test_untracked_stock_stays_unlimited(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=500)
    reward = await seed.reward(points_required=500, stock_quantity=None)

    result = await ClaimProcessor(claim_session_factory).claim(user.id, reward.id)

    assert isinstance(result, ClaimSuccess)
    assert result.new_balance == 0
    assert await seed.stock(reward.id) is None


@pytest.mark.asyncio
async def test_second_claim_is_rejected_without_mutation(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=1000)
    reward = await seed.reward(points_required=200, stock_quantity=10)
    processor = ClaimProcessor(claim_session_factory)

    first = await processor.claim(user.id, reward.id)
    second = await processor.claim(user.id, reward.id)

    assert isinstance(first, ClaimSuccess)
    assert second == ClaimRejected(ClaimRejectionReason.ALREADY_CLAIMED)
    assert await seed.balance(user.id) == 800
    assert await seed.stock(reward.id) == 9
    assert await seed.claim_count(user_id=user.id) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("balance", "cost", "stock", "is_active", "reason"),
    [
        (50, 100, None, True, ClaimRejectionReason.INSUFFICIENT_POINTS),
        (1000, 100, 0, True, ClaimRejectionReason.OUT_OF_STOCK),
        (0, 100, 0, True, ClaimRejectionReason.OUT_OF_STOCK),
        (1000, 100, 5, False, ClaimRejectionReason.REWARD_NOT_FOUND_OR_INACTIVE),
    ],
)
async def test_validation_failures_leave_state_untouched(
    seed, claim_session_factory, balance, cost, stock, is_active, reason
) -> None:
    user = await seed.user(points_balance=balance)
    reward = await seed.reward(points_required=cost, stock_quantity=stock, is_active=is_active)

    result = await ClaimProcessor(claim_session_factory).claim(user.id, reward.id)

    assert result == ClaimRejected(reason)
    assert await seed.balance(user.id) == balance
    assert await seed.stock(reward.id) == stock
    assert await seed.claim_count(user_id=user.id) == 0
    assert get_rewards_store().snapshot().rejections == {reason.value: 1}


@pytest.mark.asyncio
async def test_unknown_reward_is_rejected(seed, claim_session_factory) -> None:
    user = await seed.user()

    result = await ClaimProcessor(claim_session_factory).claim(user.id, uuid4())

    assert result == ClaimRejected(ClaimRejectionReason.REWARD_NOT_FOUND_OR_INACTIVE)


@pytest.mark.asyncio
async def test_unknown_user_raises(seed, claim_session_factory) -> None:
    reward = await seed.reward()

    with pytest.raises(ClaimantNotFoundError):
        await ClaimProcessor(claim_session_factory).claim(uuid4(), reward.id)


@pytest.mark.asyncio
async def test_concurrent_duplicate_claims_yield_exactly_one_success(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=1000)
    reward = await seed.reward(points_required=100, stock_quantity=1)
    processor = ClaimProcessor(claim_session_factory)

    results = await asyncio.gather(*(processor.claim(user.id, reward.id) for _ in range(8)))

    successes = [result for result in results if isinstance(result, ClaimSuccess)]
    rejections = [result for result in results if isinstance(result, ClaimRejected)]
    assert len(successes) == 1
    assert {rejection.reason for rejection in rejections} == {ClaimRejectionReason.ALREADY_CLAIMED}
    assert await seed.balance(user.id) == 900
    assert await seed.stock(reward.id) == 0
    assert await seed.claim_count(reward_id=reward.id) == 1


@pytest.mark.asyncio
async def test_concurrent_members_never_oversell_stock(seed, claim_session_factory) -> None:
    reward = await seed.reward(points_required=100, stock_quantity=2)
    users = [await seed.user(points_balance=500) for _ in range(5)]
    processor = ClaimProcessor(claim_session_factory)

    results = await asyncio.gather(*(processor.claim(user.id, reward.id) for user in users))

    assert sum(isinstance(result, ClaimSuccess) for result in results) == 2
    assert [result for result in results if isinstance(result, ClaimRejected)] == [
        ClaimRejected(ClaimRejectionReason.OUT_OF_STOCK)
    ] * 3
    assert await seed.stock(reward.id) == 0
    assert await seed.claim_count(reward_id=reward.id) == 2


@pytest.mark.asyncio
async def test_concurrent_claims_never_overdraw_balance(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=250)
    rewards = [await seed.reward(title=f"Reward {index}", points_required=100) for index in range(5)]
    processor = ClaimProcessor(claim_session_factory)

    results = await asyncio.gather(*(processor.claim(user.id, reward.id) for reward in rewards))

    successes = [result for result in results if isinstance(result, ClaimSuccess)]
    assert len(successes) == 2
    assert sorted(result.new_balance for result in successes) == [50, 150]
    assert all(
        result == ClaimRejected(ClaimRejectionReason.INSUFFICIENT_POINTS)
        for result in results
        if not isinstance(result, ClaimSuccess)
    )
    assert await seed.balance(user.id) == 50


@pytest.mark.asyncio
async def test_transient_failure_is_retried(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=400)
    reward = await seed.reward(points_required=100)
    factory, calls = _flaky(claim_session_factory, failures=1)

    result = await ClaimProcessor(factory, max_attempts=2).claim(user.id, reward.id)

    assert isinstance(result, ClaimSuccess)
    assert calls["count"] == 2
    assert get_rewards_store().snapshot().claims["retried"] == 1
    assert await seed.balance(user.id) == 300


@pytest.mark.asyncio
async def test_exhausted_retries_raise_transient_error(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=400)
    reward = await seed.reward(points_required=100)
    factory, calls = _flaky(claim_session_factory, failures=10)

    with pytest.raises(ClaimTransientError) as excinfo:
        await ClaimProcessor(factory, max_attempts=2).claim(user.id, reward.id)

    assert excinfo.value.attempts == 2
    assert calls["count"] == 2
    assert get_rewards_store().snapshot().claims["transient_failures"] == 1
    assert await seed.balance(user.id) == 400
    assert await seed.claim_count(user_id=user.id) == 0


@pytest.mark.asyncio
async def test_max_attempts_is_clamped(claim_session_factory) -> None:
    assert ClaimProcessor(claim_session_factory, max_attempts=0).max_attempts == 1
    assert ClaimProcessor(claim_session_factory, max_attempts=9).max_attempts == 3


@pytest.mark.asyncio
async def test_get_claim_resolves_outcome(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=400)
    reward = await seed.reward(points_required=150)
    processor = ClaimProcessor(claim_session_factory)

    assert await processor.get_claim(user.id, reward.id) is None
    result = await processor.claim(user.id, reward.id)
    record = await processor.get_claim(user.id, reward.id)

    assert record is not None
    assert record.claim_id == result.claim_id
    assert record.points_spent == 150


@pytest.mark.asyncio
async def test_get_claim_reads_through_the_read_factory(seed, session_factory) -> None:
    user = await seed.user()
    reward = await seed.reward()
    claimed = await seed.claim(user, reward, claimed_at=datetime.now(timezone.utc))

    def claim_factory_must_not_be_used():
        raise AssertionError("claim lookups must not open a claim session")

    processor = ClaimProcessor(claim_factory_must_not_be_used, read_session_factory=session_factory)
    record = await processor.get_claim(user.id, reward.id)

    assert record is not None
    assert record.claim_id == claimed.id


@pytest.mark.asyncio
async def test_get_claim_is_not_blocked_by_an_open_claim_transaction(
    seed, session_factory, claim_session_factory
) -> None:
    user = await seed.user()
    reward = await seed.reward()
    processor = ClaimProcessor(claim_session_factory, read_session_factory=session_factory)

    async with claim_session_factory() as writer:
        # BEGIN IMMEDIATE holds the database write lock until rollback.
        await writer.execute(text("SELECT 1"))
        record = await asyncio.wait_for(processor.get_claim(user.id, reward.id), timeout=5)
        await writer.rollback()

    assert record is None


@pytest.mark.asyncio
async def test_success_publishes_balance_and_enqueues_notification(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=900, email="ada@example.com", display_name="Ada")
    reward = await seed.reward(title="Cinema Voucher", points_required=400)
    backend = InMemoryEmailBackend()
    outbox = ClaimNotificationOutbox(NotificationService(backend))

    result = await ClaimProcessor(claim_session_factory, outbox=outbox).claim(user.id, reward.id)

    assert isinstance(result, ClaimSuccess)
    assert get_profile_sync().current_balance(user.id) == 500
    assert outbox.pending == 1
    assert await outbox.drain() == 1
    message = backend.sent_messages[0]
    assert message["To"] == "ada@example.com"
    assert "Cinema Voucher" in message["Subject"]


@pytest.mark.asyncio
async def test_notification_failure_does_not_affect_claim(seed, claim_session_factory) -> None:
    user = await seed.user(points_balance=900)
    reward = await seed.reward(points_required=400)
    outbox = ClaimNotificationOutbox(NotificationService(ExplodingBackend()))

    result = await ClaimProcessor(claim_session_factory, outbox=outbox).claim(user.id, reward.id)
    delivered = await outbox.drain()

    assert isinstance(result, ClaimSuccess)
    assert delivered == 0
    assert await seed.balance(user.id) == 500
    notifications = get_rewards_store().snapshot().notifications
    assert notifications["enqueued"] == 1
    assert notifications["failed"] == 1
