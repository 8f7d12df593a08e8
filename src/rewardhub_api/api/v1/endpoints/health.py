from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub_api.core.settings import settings
from rewardhub_api.db.session import get_session


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error", "degraded"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as error:
        logger.warning("Readiness database probe failed", error=str(error))
        components["database"] = ComponentStatus(status="error", detail=f"Database unreachable ({error})")
        status = "error"
    else:
        components["database"] = ComponentStatus(status="ready")

    outbox = getattr(request.app.state, "notification_outbox", None)
    if settings.notifications_enabled and outbox is not None:
        running = bool(getattr(outbox, "is_running", False))
        outbox_status: Literal["ready", "starting", "disabled", "error"] = "ready" if running else "starting"
        detail = f"{outbox.pending} notifications pending"
        if not running:
            detail = "Claim notification dispatcher not running"
            status = "degraded" if status != "error" else status
        components["claim_notifications"] = ComponentStatus(status=outbox_status, detail=detail)
    else:
        components["claim_notifications"] = ComponentStatus(
            status="disabled",
            detail="Claim notifications disabled via settings",
        )

    return ReadinessPayload(status=status, components=components)
