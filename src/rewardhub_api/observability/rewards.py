from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class RewardsSnapshot:
    claims: Dict[str, int]
    rejections: Dict[str, int]
    catalog: Dict[str, int]
    notifications: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "claims": dict(self.claims),
            "rejections": dict(self.rejections),
            "catalog": dict(self.catalog),
            "notifications": dict(self.notifications),
        }


class RewardsObservabilityStore:
    """Collect claim, catalog and notification telemetry for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._claims: Dict[str, int] = defaultdict(int)
        self._rejections: Dict[str, int] = defaultdict(int)
        self._catalog: Dict[str, int] = defaultdict(int)
        self._notifications: Dict[str, int] = defaultdict(int)

    def record_claim_success(self) -> None:
        with self._lock:
            self._claims["succeeded"] += 1

    def record_claim_rejection(self, reason: str) -> None:
        with self._lock:
            self._claims["rejected"] += 1
            self._rejections[reason] += 1

    def record_claim_retry(self) -> None:
        with self._lock:
            self._claims["retried"] += 1

    def record_claim_transient_failure(self) -> None:
        with self._lock:
            self._claims["transient_failures"] += 1

    def record_catalog_query(self, results_returned: int, *, filtered: bool) -> None:
        with self._lock:
            self._catalog["queries"] += 1
            self._catalog["results_returned"] += results_returned
            if filtered:
                self._catalog["filtered_queries"] += 1
            if results_returned == 0:
                self._catalog["empty_results"] += 1

    def record_notification(self, outcome: str) -> None:
        with self._lock:
            self._notifications[outcome] += 1

    def snapshot(self) -> RewardsSnapshot:
        with self._lock:
            return RewardsSnapshot(
                claims=dict(self._claims),
                rejections=dict(self._rejections),
                catalog=dict(self._catalog),
                notifications=dict(self._notifications),
            )

    def reset(self) -> None:
        with self._lock:
            self._claims.clear()
            self._rejections.clear()
            self._catalog.clear()
            self._notifications.clear()


_STORE = RewardsObservabilityStore()


def get_rewards_store() -> RewardsObservabilityStore:
    return _STORE


__all__ = ["get_rewards_store", "RewardsObservabilityStore", "RewardsSnapshot"]
