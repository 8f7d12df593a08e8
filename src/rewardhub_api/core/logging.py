"""Structured JSON logging for the rewards service.

Every line carries the service identity, the active trace, and (when logged
inside ``claim_log_context``) a ``claim`` object with the member, reward and
claim identifiers so a single claim can be followed across the processor,
the outbox and the request logs.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from loguru import logger
from opentelemetry import trace


CLAIM_FIELDS = ("user_id", "reward_id", "claim_id")

# Attributes every stdlib LogRecord has; anything else was passed via ``extra=``.
_STDLIB_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

_QUIET_LOGGERS = ("uvicorn.access", "aiosqlite")

LineWriter = Callable[[str], None]


class InterceptHandler(logging.Handler):
    """Forward stdlib records (uvicorn, sqlalchemy, alembic) to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so Loguru reports the real caller.
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        extra = {key: value for key, value in vars(record).items() if key not in _STDLIB_RECORD_FIELDS}
        logger.bind(**extra).opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


@contextmanager
def claim_log_context(
    user_id: UUID | str,
    reward_id: UUID | str,
    *,
    claim_id: UUID | str | None = None,
) -> Iterator[None]:
    """Attach claim identifiers to every log line emitted in this block."""

    fields = {"user_id": str(user_id), "reward_id": str(reward_id)}
    if claim_id is not None:
        fields["claim_id"] = str(claim_id)
    with logger.contextualize(**fields):
        yield


def build_payload(record: Mapping[str, Any], metadata: Mapping[str, str]) -> dict[str, Any]:
    """Lay out one Loguru record as the service's JSON log document."""

    extra = dict(record["extra"])
    payload: dict[str, Any] = {
        "ts": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "event": record["message"],
        "logger": record["name"],
        "service": {
            "name": metadata["service_name"],
            "environment": metadata["environment"],
            "version": metadata["version"],
        },
    }

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        payload["trace"] = {
            "trace_id": f"{span_context.trace_id:032x}",
            "span_id": f"{span_context.span_id:016x}",
        }

    claim = {name: extra.pop(name) for name in CLAIM_FIELDS if name in extra}
    if claim:
        payload["claim"] = claim
    if extra:
        payload["context"] = extra

    if record["exception"] is not None:
        exc_type, exc_value, _ = record["exception"]
        payload["error"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
        }
    return payload


def _stdout_writer(line: str) -> None:
    sys.stdout.write(line + "\n")


def configure_logging(
    *,
    service_name: str,
    environment: str,
    version: str,
    writer: LineWriter | None = None,
) -> None:
    """Install the JSON sink and route stdlib logging through it."""

    metadata = {"service_name": service_name, "environment": environment, "version": version}
    write = writer or _stdout_writer

    logger.remove()
    logger.add(
        lambda message: write(json.dumps(build_payload(message.record, metadata), default=str)),
        backtrace=False,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["CLAIM_FIELDS", "InterceptHandler", "build_payload", "claim_log_context", "configure_logging"]
