"""Observability endpoints for reward claim telemetry and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from rewardhub_api.api.dependencies.security import require_internal_api_key
from rewardhub_api.observability.rewards import get_rewards_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/rewards",
    dependencies=[Depends(require_internal_api_key)],
    summary="Reward claim observability snapshot",
)
async def get_rewards_snapshot() -> dict[str, object]:
    """Aggregated claim, catalog and notification counters (requires internal API key)."""
    return get_rewards_store().snapshot().as_dict()


def _format_metric(
    name: str,
    description: str,
    value: int | float,
    labels: dict[str, str] | None = None,
    *,
    metric_type: str = "counter",
) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} {metric_type}",
        f"{name}{label_fragment} {value}",
    ]


@router.get(
    "/prometheus",
    dependencies=[Depends(require_internal_api_key)],
    summary="Prometheus-formatted observability metrics",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_rewards_store().snapshot()
    lines: list[str] = []

    claims = snapshot.claims
    lines.extend(
        _format_metric("rewardhub_claims_succeeded_total", "Reward claims committed", claims.get("succeeded", 0))
    )
    lines.extend(
        _format_metric("rewardhub_claims_rejected_total", "Reward claims rejected by validation", claims.get("rejected", 0))
    )
    lines.extend(
        _format_metric("rewardhub_claims_retried_total", "Claim attempts retried after a transaction failure", claims.get("retried", 0))
    )
    lines.extend(
        _format_metric(
            "rewardhub_claims_transient_failures_total",
            "Claims that exhausted their retry budget",
            claims.get("transient_failures", 0),
        )
    )

    for reason, value in sorted(snapshot.rejections.items()):
        lines.extend(
            _format_metric(
                "rewardhub_claim_rejections_total",
                "Claim rejections grouped by reason",
                value,
                labels={"reason": reason},
            )
        )

    catalog = snapshot.catalog
    lines.extend(_format_metric("rewardhub_catalog_queries_total", "Catalog pages served", catalog.get("queries", 0)))
    lines.extend(
        _format_metric(
            "rewardhub_catalog_empty_results_total",
            "Catalog pages served without results",
            catalog.get("empty_results", 0),
        )
    )

    for outcome, value in sorted(snapshot.notifications.items()):
        lines.extend(
            _format_metric(
                "rewardhub_claim_notifications_total",
                "Claim notifications grouped by outcome",
                value,
                labels={"outcome": outcome},
            )
        )

    return PlainTextResponse("\n".join(lines) + "\n")
