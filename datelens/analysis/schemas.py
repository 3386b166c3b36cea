"""
Structured schemas for provider payloads and session state.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    AnalysisOutcome,
    ConversationAnalysis,
    EmotionAnalysis,
    EmotionScore,
    Feedback,
    MatchBreakdown,
    MatchScore,
    ProsodySample,
    TranscriptSegment,
)
from .scoring import round_half_up
from ..config import EXPECTED_FEEDBACK_TIPS
from ..infrastructure.llm.errors import ResponseParseError

logger = logging.getLogger("schemas")

SESSION_PHASES = ("idle", "recording", "processing", "done", "error")


def _require_object(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ResponseParseError(f"{what} payload must be a JSON object, got {type(data).__name__}")
    return data


def _number(data: Dict[str, Any], key: str, what: str) -> float:
    if key not in data or data[key] is None:
        raise ResponseParseError(f"{what} payload is missing '{key}'")
    value = data[key]
    # bool is an int subclass but never a valid score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResponseParseError(f"{what} field '{key}' must be a number, got {value!r}")
    return float(value)


def _strings(data: Dict[str, Any], key: str, what: str, required: bool = False) -> Tuple[str, ...]:
    if key not in data or data[key] is None:
        if required:
            raise ResponseParseError(f"{what} payload is missing '{key}'")
        return ()
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ResponseParseError(f"{what} field '{key}' must be a list of strings")
    return tuple(value)


def parse_emotion_analysis(data: Any) -> EmotionAnalysis:
    """
    Validate the provider's emotion payload.

    Raises:
        ResponseParseError: If required fields are missing or mistyped
    """
    data = _require_object(data, "Emotion")
    raw_emotions = data.get("emotions", [])
    if not isinstance(raw_emotions, list):
        raise ResponseParseError("Emotion field 'emotions' must be a list")

    emotions = []
    for item in raw_emotions:
        item = _require_object(item, "Emotion entry")
        label = item.get("label")
        if not isinstance(label, str) or not label:
            raise ResponseParseError(f"Emotion entry has no label: {item!r}")
        emotions.append(EmotionScore(label=label, score=_number(item, "score", "Emotion entry")))

    return EmotionAnalysis(
        valence=_number(data, "valence", "Emotion"),
        arousal=_number(data, "arousal", "Emotion"),
        emotions=tuple(emotions),
        evidence=_strings(data, "evidence", "Emotion"),
    )


def parse_conversation_analysis(data: Any) -> ConversationAnalysis:
    """Validate the provider's conversation payload."""
    data = _require_object(data, "Conversation")
    return ConversationAnalysis(
        rapport=_number(data, "rapport", "Conversation"),
        turn_taking_balance=_number(data, "turnTakingBalance", "Conversation"),
        empathy=_number(data, "empathy", "Conversation"),
        red_flags=_strings(data, "redFlags", "Conversation"),
        highlights=_strings(data, "highlights", "Conversation"),
    )


def parse_match_score(data: Any) -> MatchScore:
    """Validate the provider's match score payload."""
    data = _require_object(data, "Match score")
    breakdown = _require_object(data.get("breakdown"), "Match score breakdown")
    return MatchScore(
        score=round_half_up(_number(data, "score", "Match score")),
        breakdown=MatchBreakdown(
            text=round_half_up(_number(breakdown, "text", "Match score breakdown")),
            voice=round_half_up(_number(breakdown, "voice", "Match score breakdown")),
            balance=round_half_up(_number(breakdown, "balance", "Match score breakdown")),
        ),
    )


def parse_feedback(data: Any) -> Feedback:
    """Validate the provider's feedback payload."""
    data = _require_object(data, "Feedback")
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise ResponseParseError("Feedback payload is missing 'summary'")
    tips = _strings(data, "tips", "Feedback", required=True)
    if len(tips) != EXPECTED_FEEDBACK_TIPS:
        logger.warning("Feedback has %d tips, expected %d", len(tips), EXPECTED_FEEDBACK_TIPS)
    return Feedback(summary=summary, tips=tips)


def _segment_text(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"segment text must be a string, got {value!r}")
    return value


@dataclass
class SessionState:
    """Manages analysis session state from recording through results."""
    phase: str = "idle"
    error: Optional[str] = None
    duration: float = 0.0
    segments: List[TranscriptSegment] = field(default_factory=list)
    prosody: List[ProsodySample] = field(default_factory=list)
    outcome: Optional[AnalysisOutcome] = None

    def set_phase(self, phase: str):
        """Move to a new phase."""
        if phase not in SESSION_PHASES:
            raise ValueError(f"Unknown session phase: {phase}")
        self.phase = phase

    def push_segment(self, segment: TranscriptSegment):
        """Append a recognized segment."""
        self.segments.append(segment)

    def push_prosody(self, sample: ProsodySample):
        """Append a prosody sample."""
        self.prosody.append(sample)

    def transcript(self) -> str:
        """Get complete conversation transcript."""
        return " ".join(s.text for s in self.segments if s.text).strip()

    def set_outcome(self, outcome: AnalysisOutcome):
        """Store final results and finish the session."""
        self.outcome = outcome
        self.error = None
        self.phase = "done"

    def set_error(self, message: str):
        """Record an error message."""
        self.error = message
        self.phase = "error"

    def reset(self):
        """Discard everything collected for this session."""
        self.phase = "idle"
        self.error = None
        self.duration = 0.0
        self.segments = []
        self.prosody = []
        self.outcome = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionState":
        """
        Build a session from a recorded-session JSON document.

        Raises:
            ValueError: If segments or prosody entries are malformed
        """
        session = cls()
        try:
            session.duration = float(data.get("duration", 0.0))
            for seg in data.get("segments", []):
                session.push_segment(TranscriptSegment(
                    t0=float(seg.get("t0", 0.0)),
                    t1=float(seg.get("t1", 0.0)),
                    text=_segment_text(seg["text"]),
                    speaker=seg.get("speaker"),
                ))
            for sample in data.get("prosody", []):
                pitch = sample.get("pitch")
                session.push_prosody(ProsodySample(
                    t=float(sample.get("t", 0.0)),
                    rms=float(sample["rms"]),
                    pitch=float(pitch) if pitch is not None else None,
                ))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Invalid session data: {e}")
        return session
