import logging

from datelens.analysis.events import (
    AnalysisEventBus,
    AnalysisMetrics,
    AnalysisStartedEvent,
    CircuitStateChangedEvent,
    EventLogger,
    EventType,
    FallbackUsedEvent,
)


def test_subscribe_and_emit() -> None:
    bus = AnalysisEventBus()
    seen = []
    bus.subscribe(EventType.FALLBACK_USED, seen.append)
    bus.emit(AnalysisStartedEvent("s1", 0.0, 3, 10))
    bus.emit(FallbackUsedEvent("s1", 1.0, "no API key configured"))

    assert len(seen) == 1
    assert seen[0].data["reason"] == "no API key configured"


def test_failing_handler_does_not_affect_others() -> None:
    bus = AnalysisEventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe_all(broken)
    bus.subscribe_all(seen.append)
    bus.emit(AnalysisStartedEvent("s1", 0.0, 1, 0))
    assert len(seen) == 1


def test_unsubscribe() -> None:
    bus = AnalysisEventBus()
    seen = []
    bus.subscribe(EventType.ANALYSIS_STARTED, seen.append)
    bus.unsubscribe(EventType.ANALYSIS_STARTED, seen.append)
    bus.emit(AnalysisStartedEvent("s1", 0.0, 1, 0))
    assert seen == []


def test_metrics_count_fallbacks_and_openings() -> None:
    metrics = AnalysisMetrics()
    metrics.handle_event(AnalysisStartedEvent("s1", 0.0, 1, 0))
    metrics.handle_event(FallbackUsedEvent("s1", 0.0, "network", "NETWORK_ERROR"))
    metrics.handle_event(CircuitStateChangedEvent("s1", 0.0, "CLOSED", "OPEN"))
    metrics.handle_event(CircuitStateChangedEvent("s1", 0.0, "OPEN", "HALF_OPEN"))

    snapshot = metrics.get_metrics()
    assert snapshot["analyses_started"] == 1
    assert snapshot["fallbacks_used"] == 1
    assert snapshot["circuit_openings"] == 1
    assert snapshot["live_results"] == 0

    metrics.reset()
    assert metrics.get_metrics()["fallbacks_used"] == 0


def test_event_logger_warns_on_fallback(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="event_logger"):
        EventLogger().handle_event(FallbackUsedEvent("s1", 0.0, "timeout"))
    assert caplog.records[-1].levelno == logging.WARNING
