from fastapi import APIRouter

from .endpoints import health, members, observability, profile_sync, rewards

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(rewards.router)
router.include_router(members.router)
router.include_router(profile_sync.router)
router.include_router(observability.router)
