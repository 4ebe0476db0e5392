from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, Protocol

import structlog

TELEMETRY_LOGGER_NAME = "folio.telemetry"

AttributeValue = bool | int | float | str | None

# Attribute keys containing any of these fragments never leave the process.
_REDACTED_KEY_FRAGMENTS: tuple[str, ...] = ("authorization", "body", "cookie", "session", "token")
_MAX_TEXT_LENGTH = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, AttributeValue]) -> None:
        ...


class LogTelemetrySink:
    """Writes events through structlog onto the telemetry log file."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, AttributeValue]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **attributes)


@dataclass(frozen=True)
class TelemetryClient:
    sink: TelemetrySink | None = None

    @property
    def enabled(self) -> bool:
        return self.sink is not None

    def emit(self, event_name: str, **attributes: AttributeValue) -> None:
        if self.sink is None:
            return
        self.sink.emit(event_name=event_name, attributes=sanitize_attributes(attributes))


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if enabled and sink == "log":
        return TelemetryClient(LogTelemetrySink())
    return TelemetryClient()


def sanitize_attributes(attributes: Mapping[str, AttributeValue]) -> dict[str, AttributeValue]:
    sanitized: dict[str, AttributeValue] = {}
    for key, value in attributes.items():
        if any(fragment in key.lower() for fragment in _REDACTED_KEY_FRAGMENTS):
            sanitized[key] = "[redacted]"
        elif isinstance(value, str):
            compact = " ".join(value.split())
            if len(compact) > _MAX_TEXT_LENGTH:
                compact = f"{compact[:_MAX_TEXT_LENGTH]}..."
            sanitized[key] = compact
        else:
            sanitized[key] = value
    return sanitized
