from __future__ import annotations

import logging

from events import (
    GenerationEvent,
    GenerationEventType as T,
    InMemoryEventRecorder,
    LoggingEventRecorder,
    NullEventRecorder,
    safe_record,
)


def _event(event_type, variant="WholesaleBillOfSale", duration_ms=None, **kw):
    return GenerationEvent(event_type=event_type, variant=variant, duration_ms=duration_ms, **kw)


def test_summary_aggregates_per_variant():
    recorder = InMemoryEventRecorder()
    for event in (
        _event(T.GENERATION_STARTED),
        _event(T.GENERATION_SUCCEEDED, duration_ms=100.0),
        _event(T.GENERATION_STARTED),
        _event(T.GENERATION_FAILED, duration_ms=300.0, error_type="RenderFailure"),
        _event(T.STORAGE_FALLBACK),
        _event(T.GENERATION_FAILED, variant=None, duration_ms=1.0, error_type="MissingSubType"),
    ):
        recorder.record(event)

    summary = recorder.summary()
    bos = summary["WholesaleBillOfSale"]
    assert (bos.count, bos.succeeded, bos.failed, bos.fallbacks) == (2, 1, 1, 1)
    assert bos.mean_duration_ms == 200.0
    assert bos.max_duration_ms == 300.0
    assert summary["unresolved"].failed == 1
    assert len(recorder.of_type(T.GENERATION_STARTED)) == 2


def test_logging_recorder_levels_and_payload(caplog):
    recorder = LoggingEventRecorder(logging.getLogger("test.events"))
    with caplog.at_level(logging.INFO, logger="test.events"):
        recorder.record(_event(T.GENERATION_SUCCEEDED, document_number="WS-BOS-S-RP1-ABC", duration_ms=12.5))
        recorder.record(_event(T.STORAGE_FALLBACK, detail="AccessDenied"))

    ok, fallback = caplog.records
    assert ok.levelno == logging.INFO
    assert ok.document_event["document_number"] == "WS-BOS-S-RP1-ABC"
    assert ok.document_event["event_type"] == "generation_succeeded"
    assert "error_type" not in ok.document_event
    assert fallback.levelno == logging.WARNING
    assert fallback.document_event["detail"] == "AccessDenied"


def test_safe_record_swallows_recorder_errors(caplog):
    class Broken:
        def record(self, event):
            raise RuntimeError("sink down")

    with caplog.at_level(logging.ERROR, logger="events"):
        safe_record(Broken(), _event(T.GENERATION_STARTED))
    assert "Event recorder failed for generation_started" in caplog.text


def test_null_recorder_accepts_events():
    NullEventRecorder().record(_event(T.GENERATION_STARTED))


def test_summary_skips_started_events_without_a_variant():
    recorder = InMemoryEventRecorder()
    recorder.record(_event(T.GENERATION_STARTED, variant=None))
    recorder.record(_event(T.GENERATION_SUCCEEDED, duration_ms=50.0))
    assert list(recorder.summary()) == ["WholesaleBillOfSale"]
