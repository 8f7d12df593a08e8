"""Latest-known member balances pushed by the profile replication feed."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from uuid import UUID

from loguru import logger

from rewardhub_api.core.settings import get_settings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class BalanceChangeEvent:
    user_id: UUID
    new_balance: int
    observed_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.new_balance < 0:
            raise ValueError("new_balance must be non-negative")


class ProfileSync:
    """Display-side cache of member balances.

    The claim transaction never reads from here; it always re-reads the stored
    balance. Events older than the one already held for a member are ignored.
    At most ``max_entries`` members are held; publishing for a new member past
    that evicts the least recently updated one, which then falls back to its
    stored balance.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        limit = max_entries if max_entries is not None else get_settings().profile_sync_max_entries
        if limit < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = limit
        self._lock = Lock()
        self._balances: OrderedDict[UUID, BalanceChangeEvent] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._balances)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def publish(self, event: BalanceChangeEvent) -> bool:
        """Record ``event`` unless a newer balance is already held. Returns whether it was applied."""

        observed_at = _as_aware(event.observed_at)
        with self._lock:
            current = self._balances.get(event.user_id)
            if current is not None and _as_aware(current.observed_at) > observed_at:
                logger.debug(
                    "Ignoring stale balance event",
                    user_id=str(event.user_id),
                    observed_at=observed_at.isoformat(),
                )
                return False
            self._balances[event.user_id] = event
            self._balances.move_to_end(event.user_id)
            while len(self._balances) > self._max_entries:
                evicted, _ = self._balances.popitem(last=False)
                logger.debug("Evicted cached balance", user_id=str(evicted))
        return True

    def current_balance(self, user_id: UUID) -> int | None:
        with self._lock:
            event = self._balances.get(user_id)
        return event.new_balance if event else None

    def resolve_balance(self, user_id: UUID, stored_balance: int) -> int:
        """Prefer the pushed balance, falling back to the stored one."""

        pushed = self.current_balance(user_id)
        return stored_balance if pushed is None else pushed

    def invalidate(self, user_id: UUID) -> None:
        with self._lock:
            self._balances.pop(user_id, None)

    def reset(self) -> None:
        with self._lock:
            self._balances.clear()


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_PROFILE_SYNC = ProfileSync()


def get_profile_sync() -> ProfileSync:
    return _PROFILE_SYNC


__all__ = ["BalanceChangeEvent", "ProfileSync", "get_profile_sync"]
