"""
Event-driven observability for the analysis pipeline.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of analysis events."""
    ANALYSIS_STARTED = "analysis_started"
    STAGE_COMPLETED = "stage_completed"
    ANALYSIS_COMPLETED = "analysis_completed"
    FALLBACK_USED = "fallback_used"
    ANALYSIS_CANCELLED = "analysis_cancelled"
    CIRCUIT_STATE_CHANGED = "circuit_state_changed"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class AnalysisEvent(ABC):
    """Base class for all analysis events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class AnalysisStartedEvent(AnalysisEvent):
    """Event fired when analysis of a session begins."""
    def __init__(self, session_id: str, timestamp: float, segment_count: int, prosody_count: int):
        super().__init__(
            event_type=EventType.ANALYSIS_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"segment_count": segment_count, "prosody_count": prosody_count}
        )


@dataclass
class StageCompletedEvent(AnalysisEvent):
    """Event fired when one analysis stage returns."""
    def __init__(self, session_id: str, timestamp: float, stage: str, result: Dict[str, Any]):
        super().__init__(
            event_type=EventType.STAGE_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={"stage": stage, "result": result}
        )


@dataclass
class AnalysisCompletedEvent(AnalysisEvent):
    """Event fired when live provider results are available."""
    def __init__(self, session_id: str, timestamp: float, score: int, source: str):
        super().__init__(
            event_type=EventType.ANALYSIS_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={"score": score, "source": source}
        )


@dataclass
class FallbackUsedEvent(AnalysisEvent):
    """Event fired when demo results replace provider output."""
    def __init__(self, session_id: str, timestamp: float, reason: str, error_kind: str = ""):
        super().__init__(
            event_type=EventType.FALLBACK_USED,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason, "error_kind": error_kind}
        )


@dataclass
class AnalysisCancelledEvent(AnalysisEvent):
    """Event fired when the caller cancels an analysis."""
    def __init__(self, session_id: str, timestamp: float, stage: str):
        super().__init__(
            event_type=EventType.ANALYSIS_CANCELLED,
            session_id=session_id,
            timestamp=timestamp,
            data={"stage": stage}
        )


@dataclass
class CircuitStateChangedEvent(AnalysisEvent):
    """Event fired on circuit breaker transitions."""
    def __init__(self, session_id: str, timestamp: float, old_state: str, new_state: str):
        super().__init__(
            event_type=EventType.CIRCUIT_STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"old_state": old_state, "new_state": new_state}
        )


@dataclass
class ErrorOccurredEvent(AnalysisEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[AnalysisEvent], None]


class AnalysisEventBus:
    """Event bus for analysis pipeline communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from specific event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: AnalysisEvent) -> None:
        """
        Emit an event to all subscribers. A failing handler never affects the others.

        Args:
            event: Event to emit
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()


class EventLogger:
    """Logs all events for debugging and auditing."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: AnalysisEvent) -> None:
        """Log event details; fallbacks are always logged as warnings."""
        log = self.logger.warning if event.event_type == EventType.FALLBACK_USED else self.logger.info
        log(f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class AnalysisMetrics:
    """Collects metrics from analysis events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: AnalysisEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.ANALYSIS_STARTED:
            self.analyses_started += 1
        elif event.event_type == EventType.ANALYSIS_COMPLETED:
            self.live_results += 1
        elif event.event_type == EventType.FALLBACK_USED:
            self.fallbacks_used += 1
        elif event.event_type == EventType.ANALYSIS_CANCELLED:
            self.analyses_cancelled += 1
        elif event.event_type == EventType.STAGE_COMPLETED:
            self.stages_completed += 1
        elif event.event_type == EventType.CIRCUIT_STATE_CHANGED:
            if event.data.get("new_state") == "OPEN":
                self.circuit_openings += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "analyses_started": self.analyses_started,
            "live_results": self.live_results,
            "fallbacks_used": self.fallbacks_used,
            "analyses_cancelled": self.analyses_cancelled,
            "stages_completed": self.stages_completed,
            "circuit_openings": self.circuit_openings,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.analyses_started = 0
        self.live_results = 0
        self.fallbacks_used = 0
        self.analyses_cancelled = 0
        self.stages_completed = 0
        self.circuit_openings = 0
        self.errors_occurred = 0
