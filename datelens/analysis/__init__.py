"""Analysis system components.

This module contains the business logic for analysing a recorded date:
scoring, provider-backed analyses, orchestration and observability.
"""

# Core orchestrator class
from .orchestrator import AnalysisOrchestrator

# Data models
from .models import (
    TranscriptSegment, ProsodySample, ProsodySummary,
    EmotionScore, EmotionAnalysis, ConversationAnalysis,
    MatchBreakdown, MatchScore, Feedback,
    ResultSource, AnalysisOutcome
)

# Payload validation and session state
from .schemas import (
    SessionState, parse_emotion_analysis, parse_conversation_analysis,
    parse_match_score, parse_feedback
)

# Scoring
from .scoring import compute_match_score, assess_prosody_health

# Provider analyses
from .analysis_client import ResilientAnalysisClient, JsonLLMClient
from .prompts import AnalysisPrompts, PromptFormatter

# Event system
from .events import (
    AnalysisEventBus, EventLogger, AnalysisMetrics,
    EventType, AnalysisEvent, AnalysisStartedEvent,
    StageCompletedEvent, AnalysisCompletedEvent,
    FallbackUsedEvent, AnalysisCancelledEvent,
    CircuitStateChangedEvent, ErrorOccurredEvent
)

__all__ = [
    # Orchestrator
    "AnalysisOrchestrator",

    # Data models
    "TranscriptSegment", "ProsodySample", "ProsodySummary",
    "EmotionScore", "EmotionAnalysis", "ConversationAnalysis",
    "MatchBreakdown", "MatchScore", "Feedback",
    "ResultSource", "AnalysisOutcome",

    # Schemas and state
    "SessionState", "parse_emotion_analysis", "parse_conversation_analysis",
    "parse_match_score", "parse_feedback",

    # Scoring
    "compute_match_score", "assess_prosody_health",

    # Provider analyses
    "ResilientAnalysisClient", "JsonLLMClient",
    "AnalysisPrompts", "PromptFormatter",

    # Events
    "AnalysisEventBus", "EventLogger", "AnalysisMetrics",
    "EventType", "AnalysisEvent", "AnalysisStartedEvent",
    "StageCompletedEvent", "AnalysisCompletedEvent",
    "FallbackUsedEvent", "AnalysisCancelledEvent",
    "CircuitStateChangedEvent", "ErrorOccurredEvent",
]
