"""High-level notification service for claim confirmations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from loguru import logger

from rewardhub_api.core.settings import get_settings

from .backend import EmailBackend, InMemoryEmailBackend, SMTPEmailBackend
from .templates import RenderedTemplate, render_reward_claimed


@dataclass(frozen=True)
class RewardClaimedEvent:
    """Outbound event emitted after a claim commits."""

    user_id: UUID
    email: str | None
    display_name: str | None
    reward_id: UUID
    reward_title: str
    claim_id: UUID
    new_balance: int | None = None


@dataclass
class NotificationEvent:
    """Representation of a notification that was sent."""

    recipient: str
    subject: str
    body_text: str
    body_html: str | None
    event_type: str
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationService:
    """Coordinates notification delivery via pluggable backends."""

    def __init__(self, backend: Optional[EmailBackend] = None) -> None:
        self._backend = backend or self._build_default_backend()
        self._events: list[NotificationEvent] = []

    @property
    def sent_events(self) -> list[NotificationEvent]:
        """Expose events (useful for tests when using in-memory backend)."""
        return self._events

    @property
    def has_backend(self) -> bool:
        return self._backend is not None

    def use_in_memory_backend(self) -> InMemoryEmailBackend:
        """Replace backend with in-memory implementation (useful for tests)."""
        backend = InMemoryEmailBackend()
        self._backend = backend
        return backend

    async def send_reward_claimed(self, event: RewardClaimedEvent) -> bool:
        """Send the claim confirmation. Returns False when there is nothing to send to."""

        if self._backend is None:
            return False
        if not event.email:
            logger.info("Skipping claim notification without recipient", user_id=str(event.user_id))
            return False

        template = render_reward_claimed(
            reward_title=event.reward_title,
            contact_name=event.display_name,
            new_balance=event.new_balance,
            brand_name=get_settings().notification_brand_name,
        )
        await self._deliver(
            event.email,
            template,
            event_type="reward_claimed",
            metadata={
                "user_id": str(event.user_id),
                "reward_id": str(event.reward_id),
                "claim_id": str(event.claim_id),
            },
        )
        return True

    def _build_default_backend(self) -> Optional[EmailBackend]:
        settings = get_settings()
        if not settings.smtp_host or not settings.smtp_sender_email:
            return None

        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            sender_email=settings.smtp_sender_email,
        )

    async def _deliver(
        self,
        recipient: str,
        template: RenderedTemplate,
        *,
        event_type: str,
        metadata: dict[str, Any],
    ) -> None:
        """Send using active backend and record emitted event."""
        if self._backend is None:
            return

        await self._backend.send_email(
            recipient,
            template.subject,
            template.text_body,
            body_html=template.html_body,
        )
        self._events.append(
            NotificationEvent(
                recipient=recipient,
                subject=template.subject,
                body_text=template.text_body,
                body_html=template.html_body,
                event_type=event_type,
                metadata=metadata,
            )
        )
