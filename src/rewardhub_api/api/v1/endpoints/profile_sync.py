"""Internal push endpoint for the profile replication feed."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from loguru import logger

from rewardhub_api.api.dependencies.security import require_internal_api_key
from rewardhub_api.schemas.rewards import BalanceChangeRequest, BalanceChangeResponse
from rewardhub_api.services.rewards import BalanceChangeEvent, get_profile_sync


router = APIRouter(prefix="/profile-sync", tags=["profile-sync"])


@router.post(
    "/balances",
    response_model=BalanceChangeResponse,
    dependencies=[Depends(require_internal_api_key)],
    summary="Publish a member balance change",
)
async def publish_balance(payload: BalanceChangeRequest) -> BalanceChangeResponse:
    if payload.observedAt is not None:
        event = BalanceChangeEvent(
            user_id=payload.userId,
            new_balance=payload.newBalance,
            observed_at=payload.observedAt,
        )
    else:
        event = BalanceChangeEvent(user_id=payload.userId, new_balance=payload.newBalance)

    sync = get_profile_sync()
    applied = sync.publish(event)
    logger.info(
        "Balance change received",
        user_id=str(payload.userId),
        new_balance=payload.newBalance,
        applied=applied,
    )
    return BalanceChangeResponse(
        userId=payload.userId,
        applied=applied,
        pointsBalance=sync.current_balance(payload.userId),
    )
