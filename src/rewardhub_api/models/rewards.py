"""Reward catalog and claim models."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from rewardhub_api.db.base import Base


class Reward(Base):
    """Redeemable catalog entry. Managed by catalog tooling, read-only to claims."""

    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("points_required >= 0", name="ck_rewards_points_required_non_negative"),
        CheckConstraint(
            "stock_quantity IS NULL OR stock_quantity >= 0",
            name="ck_rewards_stock_quantity_non_negative",
        ),
        Index("ix_rewards_active_display_order", "is_active", "display_order", "id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="", server_default="")
    points_required = Column(Integer, nullable=False)
    category = Column(String, nullable=False, default="general", server_default="general", index=True)
    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    stock_quantity = Column(Integer, nullable=True)
    display_order = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    claims = relationship("RewardClaim", back_populates="reward")


class RewardClaim(Base):
    """Redemption record; one per member and reward."""

    __tablename__ = "reward_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "reward_id", name="uq_reward_claims_user_reward"),
        Index("ix_reward_claims_user_claimed_at", "user_id", "claimed_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reward_id = Column(UUID(as_uuid=True), ForeignKey("rewards.id"), nullable=False)
    points_spent = Column(Integer, nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="claims")
    reward = relationship("Reward", back_populates="claims")
