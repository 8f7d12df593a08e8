"""Seed a demo member and a reward catalog into the API database."""

from __future__ import annotations

import asyncio
import os
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub_api.db.base import Base
from rewardhub_api.db.session import build_engine, build_session_factory
from rewardhub_api.models import Reward, User


class SeedReward(TypedDict):
    title: str
    description: str
    points_required: int
    category: str
    stock_quantity: int | None


DEMO_MEMBER_EMAIL = os.getenv("REWARDHUB_DEMO_EMAIL", "member@rewardhub.dev").lower()
DEMO_MEMBER_POINTS = int(os.getenv("REWARDHUB_DEMO_POINTS", "2500"))

CATALOG: list[SeedReward] = [
    {
        "title": "Coffee Shop Gift Card",
        "description": "A $10 gift card for your favourite coffee shop.",
        "points_required": 500,
        "category": "gift_card",
        "stock_quantity": 50,
    },
    {
        "title": "Online Store Gift Card",
        "description": "A $25 gift card usable across the online store.",
        "points_required": 1200,
        "category": "gift_card",
        "stock_quantity": 20,
    },
    {
        "title": "Music Streaming - 1 Month",
        "description": "One month of premium music streaming.",
        "points_required": 800,
        "category": "subscription",
        "stock_quantity": None,
    },
    {
        "title": "Branded Water Bottle",
        "description": "Insulated steel bottle shipped to your address.",
        "points_required": 1500,
        "category": "physical",
        "stock_quantity": 5,
    },
    {
        "title": "Cinema Voucher",
        "description": "One standard cinema ticket voucher.",
        "points_required": 900,
        "category": "voucher",
        "stock_quantity": 0,
    },
    {
        "title": "Charity Donation",
        "description": "We donate on your behalf to a partner charity.",
        "points_required": 300,
        "category": "general",
        "stock_quantity": None,
    },
]


async def seed_member(session: AsyncSession) -> User:
    existing = await session.execute(select(User).where(User.email == DEMO_MEMBER_EMAIL))
    member = existing.scalar_one_or_none()
    if member is None:
        member = User(email=DEMO_MEMBER_EMAIL, display_name="Demo Member", points_balance=DEMO_MEMBER_POINTS)
        session.add(member)
    else:
        member.points_balance = DEMO_MEMBER_POINTS
    await session.flush()
    return member


async def seed_catalog(session: AsyncSession) -> int:
    created = 0
    for position, entry in enumerate(CATALOG):
        existing = await session.execute(select(Reward).where(Reward.title == entry["title"]))
        record = existing.scalar_one_or_none()
        if record is None:
            session.add(Reward(display_order=position, is_active=True, **entry))
            created += 1
        else:
            record.description = entry["description"]
            record.points_required = entry["points_required"]
            record.category = entry["category"]
            record.stock_quantity = entry["stock_quantity"]
            record.display_order = position
    return created


async def main() -> None:
    engine = build_engine()
    session_factory = build_session_factory(engine)

    try:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        async with session_factory() as session:
            member = await seed_member(session)
            created = await seed_catalog(session)
            await session.commit()
        print(f"Seeded {created} new rewards; demo member {member.email} ({member.id}) ready")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
