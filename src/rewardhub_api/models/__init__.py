"""SQLAlchemy models package."""

from .rewards import Reward, RewardClaim  # noqa: F401
from .user import User  # noqa: F401
