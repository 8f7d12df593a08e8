"""Notification service package."""

from .backend import EmailBackend, InMemoryEmailBackend, SMTPEmailBackend
from .outbox import ClaimNotificationOutbox
from .service import NotificationEvent, NotificationService, RewardClaimedEvent

__all__ = [
    "EmailBackend",
    "SMTPEmailBackend",
    "InMemoryEmailBackend",
    "NotificationService",
    "NotificationEvent",
    "RewardClaimedEvent",
    "ClaimNotificationOutbox",
]
