"""Read-side queries: annotated catalog pages, single reward views and claim history."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub_api.core.settings import get_settings
from rewardhub_api.models.rewards import Reward, RewardClaim
from rewardhub_api.models.user import User
from rewardhub_api.observability.rewards import RewardsObservabilityStore, get_rewards_store

from .domain import (
    CatalogFilter,
    CatalogPage,
    HistoryEntry,
    RewardDefinition,
    RewardView,
    reward_definition_from_row,
)
from .eligibility import classify, points_shortfall
from .errors import StoreUnavailableError
from .profile_sync import ProfileSync, get_profile_sync


class CatalogQueryService:
    """Serve catalog and history reads for a member without taking locks."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        profile_sync: ProfileSync | None = None,
        observability: RewardsObservabilityStore | None = None,
        max_page_size: int | None = None,
    ) -> None:
        self._session = session
        self._profile_sync = profile_sync or get_profile_sync()
        self._observability = observability or get_rewards_store()
        self._max_page_size = max_page_size or get_settings().catalog_max_page_size

    async def query_catalog(self, user_id: UUID, catalog_filter: CatalogFilter) -> CatalogPage:
        """Return one page of active rewards annotated for ``user_id``."""

        page_size = min(catalog_filter.page_size, self._max_page_size)
        offset = (catalog_filter.page - 1) * page_size
        base = self._filtered_rewards(catalog_filter)

        try:
            total_count = (
                await self._session.execute(select(func.count()).select_from(base.subquery()))
            ).scalar_one()
            rows = (
                await self._session.execute(
                    base.order_by(Reward.display_order.asc(), Reward.id.asc())
                    .offset(offset)
                    .limit(page_size)
                )
            ).scalars().all()
            rewards = [reward_definition_from_row(row) for row in rows]
            balance = await self._balance_for(user_id)
            claimed_at = await self._claims_for(user_id, [reward.id for reward in rewards])
        except SQLAlchemyError as exc:
            logger.error("Catalog query failed", user_id=str(user_id), error=str(exc))
            raise StoreUnavailableError("Reward catalog is unavailable") from exc

        items = [self._annotate(reward, balance, claimed_at) for reward in rewards]
        self._observability.record_catalog_query(
            len(items),
            filtered=catalog_filter.search_term is not None or catalog_filter.category_tag is not None,
        )
        logger.debug(
            "Catalog page served",
            user_id=str(user_id),
            page=catalog_filter.page,
            page_size=page_size,
            total_count=total_count,
        )
        return CatalogPage(
            items=items,
            total_count=int(total_count),
            page=catalog_filter.page,
            page_size=page_size,
        )

    async def list_categories(self) -> list[str]:
        stmt = (
            select(Reward.category)
            .where(Reward.is_active.is_(True))
            .distinct()
            .order_by(Reward.category.asc())
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Reward categories are unavailable") from exc
        return [category for category in result.scalars().all() if category]

    async def get_reward_view(self, user_id: UUID, reward_id: UUID) -> RewardView | None:
        """Annotated view of a single active reward, ``None`` when missing or inactive."""

        stmt = select(Reward).where(Reward.id == reward_id, Reward.is_active.is_(True))
        try:
            row = (await self._session.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            reward = reward_definition_from_row(row)
            balance = await self._balance_for(user_id)
            claimed_at = await self._claims_for(user_id, [reward.id])
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Reward catalog is unavailable") from exc
        return self._annotate(reward, balance, claimed_at)

    async def query_history(self, user_id: UUID) -> list[HistoryEntry]:
        """Every claim of ``user_id``, newest first."""

        stmt = (
            select(RewardClaim, Reward)
            .join(Reward, Reward.id == RewardClaim.reward_id)
            .where(RewardClaim.user_id == user_id)
            .order_by(RewardClaim.claimed_at.desc(), RewardClaim.id.desc())
        )
        try:
            rows = (await self._session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            logger.error("History query failed", user_id=str(user_id), error=str(exc))
            raise StoreUnavailableError("Claim history is unavailable") from exc

        return [
            HistoryEntry(
                claim_id=claim.id,
                reward=reward_definition_from_row(reward),
                claimed_at=claim.claimed_at,
                points_spent=claim.points_spent,
            )
            for claim, reward in rows
        ]

    async def member_balance(self, user_id: UUID) -> int:
        """Display balance for ``user_id``: synced value first, stored value otherwise."""

        try:
            return await self._balance_for(user_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Member profile is unavailable") from exc

    def _filtered_rewards(self, catalog_filter: CatalogFilter) -> Select:
        stmt = select(Reward).where(Reward.is_active.is_(True))
        term = catalog_filter.search_term
        if term is not None:
            needle = term.lower()
            stmt = stmt.where(
                or_(
                    func.lower(Reward.title).contains(needle, autoescape=True),
                    func.lower(Reward.description).contains(needle, autoescape=True),
                )
            )
        category = catalog_filter.category_tag
        if category is not None:
            stmt = stmt.where(Reward.category == category)
        return stmt

    async def _balance_for(self, user_id: UUID) -> int:
        stored = (
            await self._session.execute(select(User.points_balance).where(User.id == user_id))
        ).scalar_one_or_none()
        return self._profile_sync.resolve_balance(user_id, int(stored or 0))

    async def _claims_for(self, user_id: UUID, reward_ids: Sequence[UUID]) -> dict[UUID, datetime]:
        if not reward_ids:
            return {}
        stmt = select(RewardClaim.reward_id, RewardClaim.claimed_at).where(
            RewardClaim.user_id == user_id,
            RewardClaim.reward_id.in_(list(reward_ids)),
        )
        result = await self._session.execute(stmt)
        return {reward_id: claimed_at for reward_id, claimed_at in result.all()}

    @staticmethod
    def _annotate(
        reward: RewardDefinition,
        balance: int,
        claimed_at: dict[UUID, datetime],
    ) -> RewardView:
        status = classify(reward, balance, claimed_at.keys())
        return RewardView(
            reward=reward,
            status=status,
            claimed_at=claimed_at.get(reward.id),
            points_shortfall=points_shortfall(reward, balance),
        )


__all__ = ["CatalogQueryService"]
