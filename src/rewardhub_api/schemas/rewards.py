"""Response and request payloads for the reward catalog APIs."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from rewardhub_api.services.rewards import (
    CatalogPage,
    ClaimRecord,
    ClaimSuccess,
    HistoryEntry,
    RewardDefinition,
    RewardView,
)


class RewardResponse(BaseModel):
    id: UUID
    title: str
    description: str
    pointsRequired: int
    category: str
    imageUrl: Optional[str]
    isActive: bool
    stockQuantity: Optional[int]
    displayOrder: int

    @classmethod
    def from_definition(cls, reward: RewardDefinition) -> "RewardResponse":
        return cls(
            id=reward.id,
            title=reward.title,
            description=reward.description,
            pointsRequired=reward.points_required,
            category=reward.category,
            imageUrl=reward.image_url,
            isActive=reward.is_active,
            stockQuantity=reward.stock_quantity,
            displayOrder=reward.display_order,
        )


class RewardViewResponse(BaseModel):
    reward: RewardResponse
    status: str = Field(..., description="available, claimed, insufficient_points or unavailable")
    claimedAt: Optional[datetime]
    pointsShortfall: int

    @classmethod
    def from_view(cls, view: RewardView) -> "RewardViewResponse":
        return cls(
            reward=RewardResponse.from_definition(view.reward),
            status=view.status.value,
            claimedAt=view.claimed_at,
            pointsShortfall=view.points_shortfall,
        )


class CatalogPageResponse(BaseModel):
    items: List[RewardViewResponse]
    totalCount: int
    page: int
    pageSize: int
    totalPages: int
    pointsBalance: int

    @classmethod
    def from_page(cls, page: CatalogPage, *, points_balance: int) -> "CatalogPageResponse":
        return cls(
            items=[RewardViewResponse.from_view(item) for item in page.items],
            totalCount=page.total_count,
            page=page.page,
            pageSize=page.page_size,
            totalPages=page.total_pages,
            pointsBalance=points_balance,
        )


class CategoryListResponse(BaseModel):
    categories: List[str]


class ClaimResponse(BaseModel):
    success: bool = True
    claimId: UUID
    rewardId: UUID
    newBalance: int
    claimedAt: datetime

    @classmethod
    def from_success(cls, result: ClaimSuccess) -> "ClaimResponse":
        return cls(
            claimId=result.claim_id,
            rewardId=result.reward_id,
            newBalance=result.new_balance,
            claimedAt=result.claimed_at,
        )


class ClaimStateResponse(BaseModel):
    claimed: bool
    claimId: Optional[UUID] = None
    pointsSpent: Optional[int] = None
    claimedAt: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: ClaimRecord | None) -> "ClaimStateResponse":
        if record is None:
            return cls(claimed=False)
        return cls(
            claimed=True,
            claimId=record.claim_id,
            pointsSpent=record.points_spent,
            claimedAt=record.claimed_at,
        )


class HistoryEntryResponse(BaseModel):
    claimId: UUID
    reward: RewardResponse
    claimedAt: datetime
    pointsSpent: int
    status: str = "claimed"

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryEntryResponse":
        return cls(
            claimId=entry.claim_id,
            reward=RewardResponse.from_definition(entry.reward),
            claimedAt=entry.claimed_at,
            pointsSpent=entry.points_spent,
        )


class MemberProfileResponse(BaseModel):
    id: UUID
    email: str
    displayName: Optional[str]
    pointsBalance: int


class BalanceChangeRequest(BaseModel):
    userId: UUID
    newBalance: int = Field(..., ge=0, description="Balance reported by the profile feed")
    observedAt: Optional[datetime] = Field(None, description="When the balance was observed upstream")


class BalanceChangeResponse(BaseModel):
    userId: UUID
    applied: bool
    pointsBalance: Optional[int]


__all__ = [
    "BalanceChangeRequest",
    "BalanceChangeResponse",
    "CatalogPageResponse",
    "CategoryListResponse",
    "ClaimResponse",
    "ClaimStateResponse",
    "HistoryEntryResponse",
    "MemberProfileResponse",
    "RewardResponse",
    "RewardViewResponse",
]
