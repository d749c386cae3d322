"""
Telemetry - exception capture, soft warnings and model usage records

Every swallowed exception in the verification and chaining paths is passed
here so failures stay visible even when the caller gets a fail-closed result.
The default sink keeps events in memory and mirrors them to the logger;
swap it with set_telemetry() to forward to an external tracker.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class UsageRecord(BaseModel):
    """Token usage for one model call"""
    tenant_id: str
    user_id: str
    session_id: Optional[str] = None
    task_id: Optional[str] = None
    provider: str
    model: str
    action_type: str  # e.g. VERIFICATION, VERIFICATION_LIGHTWEIGHT
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Telemetry:
    """In-memory event sink"""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.usage: List[UsageRecord] = []

    def _record(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append({
            "type": event_type,
            "payload": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    def capture_exception(
        self,
        error: BaseException,
        tags: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = {
            "error_type": type(error).__name__,
            "message": str(error),
            "tags": tags or {},
            "extra": extra or {},
        }
        self._record("exception", payload)
        logger.error(f"Captured exception {payload['error_type']}: {payload['message']} tags={payload['tags']}")

    def capture_message(
        self,
        message: str,
        level: str = "info",
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._record("message", {"message": message, "level": level, "extra": extra or {}})
        log_level = getattr(logging, level.upper(), logging.INFO)
        logger.log(log_level, f"{message} {extra or ''}".rstrip())

    def record_usage(self, record: UsageRecord) -> None:
        self.usage.append(record)
        logger.debug(
            f"Usage recorded: {record.action_type} model={record.model} "
            f"in={record.input_tokens} out={record.output_tokens} ({record.duration_ms}ms)"
        )

    def reset(self) -> None:
        self.events.clear()
        self.usage.clear()


_telemetry = Telemetry()


def get_telemetry() -> Telemetry:
    """Return the active telemetry sink"""
    return _telemetry


def set_telemetry(telemetry: Telemetry) -> Telemetry:
    """Replace the active telemetry sink, returning the previous one"""
    global _telemetry
    previous = _telemetry
    _telemetry = telemetry
    return previous


def capture_exception(
    error: BaseException,
    tags: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    _telemetry.capture_exception(error, tags=tags, extra=extra)


def capture_message(message: str, level: str = "info", extra: Optional[Dict[str, Any]] = None) -> None:
    _telemetry.capture_message(message, level=level, extra=extra)


def record_usage(record: UsageRecord) -> None:
    _telemetry.record_usage(record)
