"""Member-facing reward catalog, claim and history endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub_api.api.dependencies.session import require_member_session
from rewardhub_api.core.settings import settings
from rewardhub_api.db.session import (
    SessionFactory,
    get_read_session_factory,
    get_session,
    get_session_factory,
)
from rewardhub_api.models.user import User
from rewardhub_api.schemas.rewards import (
    CatalogPageResponse,
    CategoryListResponse,
    ClaimResponse,
    ClaimStateResponse,
    HistoryEntryResponse,
    RewardViewResponse,
)
from rewardhub_api.services.rewards import (
    CatalogFilter,
    CatalogQueryService,
    ClaimantNotFoundError,
    ClaimProcessor,
    ClaimRejected,
    ClaimRejectionReason,
    ClaimTransientError,
    StoreUnavailableError,
)


router = APIRouter(prefix="/rewards", tags=["rewards"])


REJECTION_MESSAGES: dict[ClaimRejectionReason, str] = {
    ClaimRejectionReason.ALREADY_CLAIMED: "You have already claimed this reward",
    ClaimRejectionReason.INSUFFICIENT_POINTS: "You do not have enough points for this reward",
    ClaimRejectionReason.OUT_OF_STOCK: "This reward is out of stock",
    ClaimRejectionReason.REWARD_NOT_FOUND_OR_INACTIVE: "Reward not found or no longer available",
}


def _store_unavailable(error: StoreUnavailableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))


@router.get("", response_model=CatalogPageResponse, summary="Browse the reward catalog")
async def list_rewards(
    search: Optional[str] = Query(None, description="Case-insensitive title or description match"),
    category: Optional[str] = Query(None, description="Exact category tag"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    member: User = Depends(require_member_session),
    session: AsyncSession = Depends(get_session),
) -> CatalogPageResponse:
    catalog_filter = CatalogFilter(
        search=search,
        category=category,
        page=page,
        page_size=page_size or settings.catalog_default_page_size,
    )
    service = CatalogQueryService(session)
    try:
        catalog_page = await service.query_catalog(member.id, catalog_filter)
        balance = await service.member_balance(member.id)
    except StoreUnavailableError as error:
        raise _store_unavailable(error) from error
    return CatalogPageResponse.from_page(catalog_page, points_balance=balance)


@router.get("/categories", response_model=CategoryListResponse, summary="Categories with active rewards")
async def list_categories(session: AsyncSession = Depends(get_session)) -> CategoryListResponse:
    try:
        categories = await CatalogQueryService(session).list_categories()
    except StoreUnavailableError as error:
        raise _store_unavailable(error) from error
    return CategoryListResponse(categories=categories)


@router.get("/history", response_model=list[HistoryEntryResponse], summary="Claimed rewards, newest first")
async def list_history(
    member: User = Depends(require_member_session),
    session: AsyncSession = Depends(get_session),
) -> list[HistoryEntryResponse]:
    try:
        entries = await CatalogQueryService(session).query_history(member.id)
    except StoreUnavailableError as error:
        raise _store_unavailable(error) from error
    return [HistoryEntryResponse.from_entry(entry) for entry in entries]


@router.get("/{reward_id}", response_model=RewardViewResponse, summary="Single reward for the member")
async def get_reward(
    reward_id: UUID,
    member: User = Depends(require_member_session),
    session: AsyncSession = Depends(get_session),
) -> RewardViewResponse:
    try:
        view = await CatalogQueryService(session).get_reward_view(member.id, reward_id)
    except StoreUnavailableError as error:
        raise _store_unavailable(error) from error
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reward not found")
    return RewardViewResponse.from_view(view)


@router.post(
    "/{reward_id}/claim",
    response_model=ClaimResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Claim a reward with the member's points",
)
async def claim_reward(
    reward_id: UUID,
    request: Request,
    member: User = Depends(require_member_session),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> ClaimResponse:
    processor = ClaimProcessor(
        session_factory,
        outbox=getattr(request.app.state, "notification_outbox", None),
    )
    try:
        result = await processor.claim(member.id, reward_id)
    except ClaimantNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session user not found") from error
    except ClaimTransientError as error:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "reason": "transient_failure",
                "message": "The claim could not be completed, please try again",
            },
        ) from error

    if isinstance(result, ClaimRejected):
        status_code = (
            status.HTTP_404_NOT_FOUND
            if result.reason is ClaimRejectionReason.REWARD_NOT_FOUND_OR_INACTIVE
            else status.HTTP_409_CONFLICT
        )
        raise HTTPException(
            status_code=status_code,
            detail={"reason": result.reason.value, "message": REJECTION_MESSAGES[result.reason]},
        )
    return ClaimResponse.from_success(result)


@router.get("/{reward_id}/claim", response_model=ClaimStateResponse, summary="Resolve the member's claim state")
async def get_claim_state(
    reward_id: UUID,
    member: User = Depends(require_member_session),
    session_factory: SessionFactory = Depends(get_session_factory),
    read_session_factory: SessionFactory = Depends(get_read_session_factory),
) -> ClaimStateResponse:
    processor = ClaimProcessor(session_factory, read_session_factory=read_session_factory)
    try:
        record = await processor.get_claim(member.id, reward_id)
    except StoreUnavailableError as error:
        raise _store_unavailable(error) from error
    return ClaimStateResponse.from_record(record)
