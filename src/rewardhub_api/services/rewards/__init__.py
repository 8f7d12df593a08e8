from .catalog import CatalogQueryService
from .claims import ClaimProcessor
from .domain import (
    CatalogFilter,
    CatalogPage,
    ClaimRecord,
    ClaimRejected,
    ClaimRejectionReason,
    ClaimResult,
    ClaimSuccess,
    EligibilityStatus,
    HistoryEntry,
    RewardDefinition,
    RewardView,
)
from .eligibility import classify, points_shortfall, rejection_reason_for
from .errors import (
    ClaimantNotFoundError,
    ClaimTransientError,
    RewardMappingError,
    RewardsError,
    StoreUnavailableError,
)
from .profile_sync import BalanceChangeEvent, ProfileSync, get_profile_sync

__all__ = [
    "BalanceChangeEvent",
    "CatalogFilter",
    "CatalogPage",
    "CatalogQueryService",
    "ClaimProcessor",
    "ClaimRecord",
    "ClaimRejected",
    "ClaimRejectionReason",
    "ClaimResult",
    "ClaimSuccess",
    "ClaimTransientError",
    "ClaimantNotFoundError",
    "EligibilityStatus",
    "HistoryEntry",
    "ProfileSync",
    "RewardDefinition",
    "RewardMappingError",
    "RewardView",
    "RewardsError",
    "StoreUnavailableError",
    "classify",
    "get_profile_sync",
    "points_shortfall",
    "rejection_reason_for",
]
