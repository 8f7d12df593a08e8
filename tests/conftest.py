import os
from datetime import datetime
from uuid import UUID, uuid4

os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from rewardhub_api.app import create_app
from rewardhub_api.db.base import Base
from rewardhub_api.db.session import (
    build_claim_session_factory,
    build_engine,
    build_session_factory,
    get_session,
    get_read_session_factory,
    get_session_factory,
)
from rewardhub_api.models import Reward, RewardClaim, User
from rewardhub_api.observability.rewards import get_rewards_store
from rewardhub_api.services.rewards import get_profile_sync


@pytest.fixture(autouse=True)
def reset_process_state():
    get_rewards_store().reset()
    get_profile_sync().reset()
    yield
    get_rewards_store().reset()
    get_profile_sync().reset()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    # File-backed so concurrent claims run on separate connections.
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rewardhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def claim_session_factory(db_engine):
    return build_claim_session_factory(db_engine)


class Seeder:
    """Insert and read back fixture rows outside the code under test."""

    def __init__(self, factory) -> None:
        self._factory = factory

    async def user(
        self,
        *,
        points_balance: int = 1000,
        email: str | None = None,
        display_name: str | None = "Test Member",
    ) -> User:
        user = User(
            id=uuid4(),
            email=email or f"member-{uuid4().hex[:10]}@example.com",
            display_name=display_name,
            points_balance=points_balance,
        )
        async with self._factory() as session:
            session.add(user)
            await session.commit()
        return user

    async def reward(
        self,
        *,
        title: str = "Reward",
        description: str = "",
        points_required: int = 100,
        category: str = "general",
        stock_quantity: int | None = None,
        is_active: bool = True,
        display_order: int = 0,
        reward_id: UUID | None = None,
    ) -> Reward:
        reward = Reward(
            id=reward_id or uuid4(),
            title=title,
            description=description,
            points_required=points_required,
            category=category,
            stock_quantity=stock_quantity,
            is_active=is_active,
            display_order=display_order,
        )
        async with self._factory() as session:
            session.add(reward)
            await session.commit()
        return reward

    async def claim(self, user: User, reward: Reward, *, claimed_at: datetime) -> RewardClaim:
        claim = RewardClaim(
            id=uuid4(),
            user_id=user.id,
            reward_id=reward.id,
            points_spent=reward.points_required,
            claimed_at=claimed_at,
        )
        async with self._factory() as session:
            session.add(claim)
            await session.commit()
        return claim

    async def balance(self, user_id: UUID) -> int:
        async with self._factory() as session:
            return (await session.execute(select(User.points_balance).where(User.id == user_id))).scalar_one()

    async def stock(self, reward_id: UUID) -> int | None:
        async with self._factory() as session:
            return (
                await session.execute(select(Reward.stock_quantity).where(Reward.id == reward_id))
            ).scalar_one()

    async def claim_count(self, *, user_id: UUID | None = None, reward_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(RewardClaim)
        if user_id is not None:
            stmt = stmt.where(RewardClaim.user_id == user_id)
        if reward_id is not None:
            stmt = stmt.where(RewardClaim.reward_id == reward_id)
        async with self._factory() as session:
            return (await session.execute(stmt)).scalar_one()


@pytest_asyncio.fixture
async def seed(session_factory):
    return Seeder(session_factory)


@pytest_asyncio.fixture
async def app_with_db(session_factory, claim_session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: claim_session_factory
    app.dependency_overrides[get_read_session_factory] = lambda: session_factory

    outbox = app.state.notification_outbox
    if outbox is not None:
        outbox.notification_service.use_in_memory_backend()

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
