"""
Structured generation events.

One record per phase transition (variant, document number, duration, outcome)
instead of free-text diagnostics. Recorders are observational only: a failing
recorder must never fail a generation.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

_LOG = logging.getLogger(__name__)


class GenerationEventType(str, Enum):
    GENERATION_STARTED = "generation_started"
    GENERATION_SUCCEEDED = "generation_succeeded"
    GENERATION_FAILED = "generation_failed"
    STORAGE_FALLBACK = "storage_fallback"


class GenerationEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: GenerationEventType
    variant: Optional[str] = None
    document_number: Optional[str] = None
    deal_id: Optional[str] = None
    duration_ms: Optional[float] = None
    outcome: Optional[str] = None
    error_type: Optional[str] = None
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EventRecorder(Protocol):
    def record(self, event: GenerationEvent) -> None:
        ...


class NullEventRecorder:
    def record(self, event: GenerationEvent) -> None:
        return


class LoggingEventRecorder:
    """Writes each event as a single log record with the event fields attached as `extra`."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or _LOG

    def record(self, event: GenerationEvent) -> None:
        level = logging.WARNING if event.event_type in {
            GenerationEventType.GENERATION_FAILED,
            GenerationEventType.STORAGE_FALLBACK,
        } else logging.INFO
        payload = event.model_dump(mode="json", exclude_none=True)
        self._logger.log(level, "document_event %s", event.event_type.value, extra={"document_event": payload})


class VariantStats(BaseModel):
    variant: str
    count: int = 0
    succeeded: int = 0
    failed: int = 0
    fallbacks: int = 0
    mean_duration_ms: float = 0.0
    max_duration_ms: float = 0.0


class InMemoryEventRecorder:
    """Keeps every event; `summary()` aggregates per-variant performance figures."""

    def __init__(self) -> None:
        self.events: list[GenerationEvent] = []

    def record(self, event: GenerationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: GenerationEventType) -> list[GenerationEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def summary(self) -> dict[str, VariantStats]:
        stats: dict[str, VariantStats] = {}
        durations: dict[str, list[float]] = {}
        for event in self.events:
            key = event.variant or "unresolved"
            if event.event_type == GenerationEventType.STORAGE_FALLBACK:
                stats.setdefault(key, VariantStats(variant=key)).fallbacks += 1
                continue
            if event.event_type not in {
                GenerationEventType.GENERATION_SUCCEEDED,
                GenerationEventType.GENERATION_FAILED,
            }:
                continue
            entry = stats.setdefault(key, VariantStats(variant=key))
            entry.count += 1
            if event.event_type == GenerationEventType.GENERATION_SUCCEEDED:
                entry.succeeded += 1
            else:
                entry.failed += 1
            if event.duration_ms is not None:
                durations.setdefault(key, []).append(event.duration_ms)
        for key, values in durations.items():
            stats[key].mean_duration_ms = sum(values) / len(values)
            stats[key].max_duration_ms = max(values)
        return stats


def safe_record(recorder: EventRecorder, event: GenerationEvent) -> None:
    try:
        recorder.record(event)
    except Exception:
        _LOG.exception("Event recorder failed for %s", event.event_type.value)
