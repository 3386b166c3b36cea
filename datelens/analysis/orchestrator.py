"""
Analysis orchestrator: runs the staged provider analyses for one session.
"""
import logging
import time
import uuid
from typing import Optional

from .analysis_client import JsonLLMClient, ResilientAnalysisClient
from .events import (
    AnalysisEventBus, EventLogger, AnalysisMetrics,
    AnalysisStartedEvent, StageCompletedEvent, AnalysisCompletedEvent,
    FallbackUsedEvent, AnalysisCancelledEvent, CircuitStateChangedEvent,
    ErrorOccurredEvent
)
from .models import AnalysisOutcome, ProsodySummary, ResultSource
from .schemas import SessionState
from .scoring import (
    compute_match_score, demo_conversation, demo_emotion, demo_feedback, demo_match_score
)
from ..config import Config, get_config, DEFAULT_AVG_RMS, DEFAULT_RMS_VARIANCE
from ..infrastructure.audio import summarize_prosody
from ..infrastructure.llm import (
    AnalysisAPIError, AnalysisCancelledError, CancellationToken,
    CircuitBreaker, CircuitState, ExponentialBackoff, OpenAIRestClient
)

logger = logging.getLogger("orchestrator")


class AnalysisOrchestrator:
    """
    Coordinates prosody summarising, the four provider analyses and fallback.

    Stages run strictly in order: emotion, conversation, match, feedback. Any
    classified provider error switches the whole outcome to demo results tagged
    as FALLBACK; cancellation propagates to the caller instead.
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 llm_client: Optional[JsonLLMClient] = None,
                 event_bus: Optional[AnalysisEventBus] = None):
        self.config = config or get_config()
        self._session_id = "unknown"
        self._active_cancel: Optional[CancellationToken] = None

        # Initialize event system
        self.event_bus = event_bus or AnalysisEventBus()
        self.event_logger = EventLogger()
        self.metrics = AnalysisMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        if llm_client is None and self.config.has_api_key:
            llm_client = self._build_llm_client()
        elif llm_client is not None:
            breaker = getattr(llm_client, "circuit_breaker", None)
            if isinstance(breaker, CircuitBreaker) and breaker.on_state_change is None:
                breaker.on_state_change = self._on_circuit_change

        self.analysis_client = ResilientAnalysisClient(llm_client) if llm_client is not None else None

    def _build_llm_client(self) -> OpenAIRestClient:
        breaker = CircuitBreaker(
            failure_threshold=self.config.circuit_failure_threshold,
            recovery_timeout=self.config.circuit_recovery_timeout,
            success_threshold=self.config.circuit_success_threshold,
            on_state_change=self._on_circuit_change,
        )
        return OpenAIRestClient(
            api_key=self.config.api_key,
            model=self.config.model_name,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            base_url=self.config.api_base_url,
            timeout=self.config.request_timeout,
            retry_policy=ExponentialBackoff(
                max_attempts=self.config.retry_max_attempts,
                base_delay=self.config.retry_base_delay,
                max_delay=self.config.retry_max_delay,
            ),
            circuit_breaker=breaker,
        )

    def _on_circuit_change(self, old: CircuitState, new: CircuitState) -> None:
        self.event_bus.emit(CircuitStateChangedEvent(
            self._session_id, time.time(), old.value, new.value
        ))

    def run(self, session: SessionState, cancel: Optional[CancellationToken] = None) -> AnalysisOutcome:
        """
        Analyse a recorded session.

        Args:
            session: Session holding transcript segments and prosody samples
            cancel: Optional token; cancelling it aborts the run

        Returns:
            AnalysisOutcome tagged LIVE or FALLBACK

        Raises:
            AnalysisCancelledError: If the run was cancelled; session results
                are left untouched and the phase returns to idle
        """
        cancel = cancel or CancellationToken()
        self._active_cancel = cancel
        self._session_id = uuid.uuid4().hex[:8]
        session.set_phase("processing")

        self.event_bus.emit(AnalysisStartedEvent(
            self._session_id, time.time(), len(session.segments), len(session.prosody)
        ))

        prosody = self._summarize(session)
        transcript = session.transcript()

        try:
            if len(transcript) < self.config.min_transcript_chars:
                outcome = self._fallback(prosody, f"transcript too short ({len(transcript)} chars)")
            elif self.analysis_client is None:
                outcome = self._fallback(prosody, "no API key configured")
            else:
                outcome = self._run_stages(session, prosody, cancel)
        finally:
            if self._active_cancel is cancel:
                self._active_cancel = None

        session.set_outcome(outcome)
        return outcome

    def _summarize(self, session: SessionState) -> ProsodySummary:
        if not session.prosody:
            logger.info("No prosody samples recorded, using default summary (rms %.1f, variance %.1f)",
                        DEFAULT_AVG_RMS, DEFAULT_RMS_VARIANCE)
            return ProsodySummary(avg_rms=DEFAULT_AVG_RMS, rms_variance=DEFAULT_RMS_VARIANCE)
        return summarize_prosody(session.prosody)

    def _run_stages(self, session: SessionState, prosody: ProsodySummary,
                    cancel: CancellationToken) -> AnalysisOutcome:
        client = self.analysis_client
        stage = "emotion"
        try:
            cancel.raise_if_cancelled()
            emotion = client.analyze_emotion(session.segments, prosody, cancel=cancel)
            self._stage_done(stage, emotion.to_dict())

            stage = "conversation"
            cancel.raise_if_cancelled()
            conversation = client.analyze_conversation(session.segments, emotion, cancel=cancel)
            self._stage_done(stage, conversation.to_dict())

            stage = "match"
            cancel.raise_if_cancelled()
            if self.config.use_llm_match_score:
                match = client.calculate_match_score(emotion, conversation, cancel=cancel)
            else:
                match = compute_match_score(emotion, conversation, prosody)
            self._stage_done(stage, match.to_dict())

            stage = "feedback"
            cancel.raise_if_cancelled()
            feedback = client.generate_feedback(match, emotion, conversation, cancel=cancel)
            self._stage_done(stage, feedback.to_dict())
            cancel.raise_if_cancelled()

        except AnalysisCancelledError:
            logger.info("Analysis cancelled during %s stage", stage)
            session.set_phase("idle")
            self.event_bus.emit(AnalysisCancelledEvent(self._session_id, time.time(), stage))
            raise

        except AnalysisAPIError as e:
            self.event_bus.emit(ErrorOccurredEvent(
                self._session_id, time.time(), e.kind.value, e.message, f"{stage}_analysis"
            ))
            return self._fallback(prosody, f"{stage} analysis failed: {e.message}", error=e)

        except Exception as e:
            self.event_bus.emit(ErrorOccurredEvent(
                self._session_id, time.time(), type(e).__name__, str(e), "orchestrator"
            ))
            logger.error("Analysis failed with unexpected error: %s", e)
            session.set_error(str(e))
            raise

        outcome = AnalysisOutcome(
            source=ResultSource.LIVE,
            emotion=emotion,
            conversation=conversation,
            match=match,
            feedback=feedback,
            prosody=prosody,
        )
        self.event_bus.emit(AnalysisCompletedEvent(
            self._session_id, time.time(), match.score, outcome.source.value
        ))
        return outcome

    def _stage_done(self, stage: str, result) -> None:
        self.event_bus.emit(StageCompletedEvent(self._session_id, time.time(), stage, result))

    def _fallback(self, prosody: ProsodySummary, reason: str,
                  error: Optional[AnalysisAPIError] = None) -> AnalysisOutcome:
        logger.warning("Using fallback demo results: %s", reason)
        self.event_bus.emit(FallbackUsedEvent(
            self._session_id, time.time(), reason, error.kind.value if error is not None else ""
        ))
        return AnalysisOutcome(
            source=ResultSource.FALLBACK,
            emotion=demo_emotion(),
            conversation=demo_conversation(),
            match=demo_match_score(),
            feedback=demo_feedback(),
            prosody=prosody,
            error=error,
            reason=reason,
        )

    def cancel(self) -> None:
        """Cancel the run in progress, if any."""
        if self._active_cancel is not None:
            self._active_cancel.cancel()

    def reset(self, session: SessionState) -> None:
        """Cancel any in-flight run and discard everything collected for `session`."""
        self.cancel()
        session.reset()
