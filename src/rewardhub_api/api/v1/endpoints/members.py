"""Member profile endpoint with the realtime points balance."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub_api.api.dependencies.session import require_member_session
from rewardhub_api.db.session import get_session
from rewardhub_api.models.user import User
from rewardhub_api.schemas.rewards import MemberProfileResponse
from rewardhub_api.services.rewards import CatalogQueryService, StoreUnavailableError


router = APIRouter(prefix="/members", tags=["members"])


@router.get("/me", response_model=MemberProfileResponse, summary="Current member profile")
async def get_member_profile(
    member: User = Depends(require_member_session),
    session: AsyncSession = Depends(get_session),
) -> MemberProfileResponse:
    try:
        balance = await CatalogQueryService(session).member_balance(member.id)
    except StoreUnavailableError as error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error)) from error
    return MemberProfileResponse(
        id=member.id,
        email=member.email,
        displayName=member.display_name,
        pointsBalance=balance,
    )
