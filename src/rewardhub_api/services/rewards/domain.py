"""Typed domain records shared by the classifier, claim processor and catalog."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union
from uuid import UUID

from rewardhub_api.models.rewards import Reward

from .errors import RewardMappingError


class EligibilityStatus(str, Enum):
    """Whether a member may currently claim a reward."""

    AVAILABLE = "available"
    CLAIMED = "claimed"
    INSUFFICIENT_POINTS = "insufficient_points"
    UNAVAILABLE = "unavailable"


class ClaimRejectionReason(str, Enum):
    """Stable reason codes for rejected claims."""

    ALREADY_CLAIMED = "already_claimed"
    INSUFFICIENT_POINTS = "insufficient_points"
    OUT_OF_STOCK = "out_of_stock"
    REWARD_NOT_FOUND_OR_INACTIVE = "reward_not_found_or_inactive"


@dataclass(frozen=True, slots=True)
class RewardDefinition:
    """Immutable snapshot of a catalog row."""

    id: UUID
    title: str
    description: str
    points_required: int
    category: str
    image_url: str | None
    is_active: bool
    stock_quantity: int | None
    display_order: int

    @property
    def stock_tracked(self) -> bool:
        return self.stock_quantity is not None


@dataclass(frozen=True, slots=True)
class ClaimSuccess:
    claim_id: UUID
    reward_id: UUID
    new_balance: int
    claimed_at: datetime


@dataclass(frozen=True, slots=True)
class ClaimRejected:
    reason: ClaimRejectionReason


ClaimResult = Union[ClaimSuccess, ClaimRejected]


@dataclass(frozen=True, slots=True)
class RewardView:
    """Catalog entry annotated for a specific member."""

    reward: RewardDefinition
    status: EligibilityStatus
    claimed_at: datetime | None
    points_shortfall: int


@dataclass(frozen=True, slots=True)
class CatalogFilter:
    """Search, category and page window for catalog queries."""

    search: str | None = None
    category: str | None = None
    page: int = 1
    page_size: int = 12

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be > 0")

    @property
    def search_term(self) -> str | None:
        if self.search is None:
            return None
        term = self.search.strip()
        return term or None

    @property
    def category_tag(self) -> str | None:
        if self.category is None:
            return None
        tag = self.category.strip()
        return tag or None


@dataclass(frozen=True, slots=True)
class CatalogPage:
    items: list[RewardView]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return -(-self.total_count // self.page_size)


@dataclass(frozen=True, slots=True)
class ClaimRecord:
    claim_id: UUID
    user_id: UUID
    reward_id: UUID
    points_spent: int
    claimed_at: datetime


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    claim_id: UUID
    reward: RewardDefinition
    claimed_at: datetime
    points_spent: int


_REQUIRED_REWARD_FIELDS = ("id", "title", "points_required", "category", "is_active", "display_order")


def _require_int(value: Any, field_name: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RewardMappingError(f"Reward field {field_name!r} must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise RewardMappingError(f"Reward field {field_name!r} must be >= {minimum}, got {value}")
    return value


def reward_definition_from_row(row: Reward) -> RewardDefinition:
    """Map a ``Reward`` row into a ``RewardDefinition``, failing on bad data."""

    missing = [name for name in _REQUIRED_REWARD_FIELDS if getattr(row, name, None) is None]
    if missing:
        raise RewardMappingError(f"Reward row is missing required fields: {', '.join(missing)}")

    if not isinstance(row.title, str) or not row.title.strip():
        raise RewardMappingError(f"Reward {row.id} has an empty title")
    if not isinstance(row.is_active, bool):
        raise RewardMappingError(f"Reward {row.id} has a non-boolean is_active flag")

    stock_quantity = row.stock_quantity
    if stock_quantity is not None:
        stock_quantity = _require_int(stock_quantity, "stock_quantity")

    return RewardDefinition(
        id=row.id,
        title=row.title,
        description=row.description or "",
        points_required=_require_int(row.points_required, "points_required", minimum=0),
        category=str(row.category),
        image_url=row.image_url,
        is_active=row.is_active,
        stock_quantity=stock_quantity,
        display_order=_require_int(row.display_order, "display_order"),
    )


__all__ = [
    "CatalogFilter",
    "CatalogPage",
    "ClaimRecord",
    "ClaimRejected",
    "ClaimRejectionReason",
    "ClaimResult",
    "ClaimSuccess",
    "EligibilityStatus",
    "HistoryEntry",
    "RewardDefinition",
    "RewardView",
    "reward_definition_from_row",
]
