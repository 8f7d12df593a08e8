import json
from uuid import uuid4

import pytest
from loguru import logger

from rewardhub_api.core.logging import claim_log_context, configure_logging
from rewardhub_api.services.notifications import ClaimNotificationOutbox, NotificationService, RewardClaimedEvent
from rewardhub_api.services.rewards import ClaimProcessor, ClaimSuccess


class ExplodingBackend:
    async def send_email(self, recipient, subject, body_text, *, body_html=None, reply_to=None) -> None:
        raise RuntimeError("smtp relay unavailable")


@pytest.fixture
def log_lines():
    lines: list[str] = []
    configure_logging(service_name="rewardhub-api", environment="test", version="9.9.9", writer=lines.append)
    try:
        yield lines
    finally:
        logger.remove()


def _documents(lines: list[str]) -> list[dict]:
    return [json.loads(line) for line in lines]


def test_claim_context_is_grouped_apart_from_other_fields(log_lines) -> None:
    user_id, reward_id, claim_id = uuid4(), uuid4(), uuid4()

    with claim_log_context(user_id, reward_id, claim_id=claim_id):
        logger.info("Reward claimed", new_balance=250)
    logger.info("Outside any claim")

    inside, outside = _documents(log_lines)
    assert inside["event"] == "Reward claimed"
    assert inside["level"] == "info"
    assert inside["service"] == {"name": "rewardhub-api", "environment": "test", "version": "9.9.9"}
    assert inside["claim"] == {
        "user_id": str(user_id),
        "reward_id": str(reward_id),
        "claim_id": str(claim_id),
    }
    assert inside["context"] == {"new_balance": 250}
    assert "claim" not in outside
    assert "context" not in outside
    assert "trace" not in outside


def test_exceptions_are_summarised_as_error_fields(log_lines) -> None:
    try:
        raise ValueError("bad payload")
    except ValueError:
        logger.exception("Delivery failed")

    (document,) = _documents(log_lines)
    assert document["level"] == "error"
    assert document["error"] == {"type": "ValueError", "message": "bad payload"}


@pytest.mark.asyncio
async def test_claim_processor_lines_carry_claim_identifiers(seed, claim_session_factory, log_lines) -> None:
    user = await seed.user(points_balance=500)
    reward = await seed.reward(points_required=100)

    result = await ClaimProcessor(claim_session_factory).claim(user.id, reward.id)

    assert isinstance(result, ClaimSuccess)
    claimed = next(doc for doc in _documents(log_lines) if doc["event"] == "Reward claimed")
    assert claimed["claim"] == {
        "user_id": str(user.id),
        "reward_id": str(reward.id),
        "claim_id": str(result.claim_id),
    }
    assert claimed["context"]["new_balance"] == 400


@pytest.mark.asyncio
async def test_outbox_failures_carry_claim_identifiers(log_lines) -> None:
    event = RewardClaimedEvent(
        user_id=uuid4(),
        email="member@example.com",
        display_name="Grace",
        reward_id=uuid4(),
        reward_title="Cinema Voucher",
        claim_id=uuid4(),
        new_balance=100,
    )
    outbox = ClaimNotificationOutbox(NotificationService(ExplodingBackend()))
    outbox.enqueue(event)

    assert await outbox.drain() == 0
    failed = next(doc for doc in _documents(log_lines) if doc["event"] == "Claim notification delivery failed")
    assert failed["claim"] == {
        "user_id": str(event.user_id),
        "reward_id": str(event.reward_id),
        "claim_id": str(event.claim_id),
    }
    assert failed["error"]["type"] == "RuntimeError"
