"""
Data models for the analysis system.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class TranscriptSegment:
    """A single recognized utterance."""
    t0: float
    t1: float
    text: str
    speaker: Optional[str] = None  # "me" | "partner"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"t0": self.t0, "t1": self.t1, "text": self.text}
        if self.speaker:
            data["speaker"] = self.speaker
        return data


@dataclass(frozen=True)
class ProsodySample:
    """Energy/pitch reading taken while recording."""
    t: float
    rms: float
    pitch: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"t": self.t, "rms": self.rms}
        if self.pitch is not None:
            data["pitch"] = self.pitch
        return data


@dataclass(frozen=True)
class ProsodySummary:
    """Session-level summary of prosody samples."""
    avg_rms: float
    rms_variance: float
    avg_pitch: Optional[float] = None
    pitch_range: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"avgRMS": self.avg_rms, "rmsVariance": self.rms_variance}
        if self.avg_pitch is not None:
            data["avgPitch"] = self.avg_pitch
        if self.pitch_range is not None:
            data["pitchRange"] = self.pitch_range
        return data


@dataclass(frozen=True)
class EmotionScore:
    label: str
    score: float


@dataclass(frozen=True)
class EmotionAnalysis:
    """Emotional tone of a conversation as judged by the provider."""
    valence: float  # -1.0..1.0
    arousal: float  # 0.0..1.0
    emotions: Tuple[EmotionScore, ...] = ()
    evidence: Tuple[str, ...] = ()

    @property
    def dominant_emotion(self) -> Optional[str]:
        """Label with the highest score, if any."""
        if not self.emotions:
            return None
        return max(self.emotions, key=lambda e: e.score).label

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valence": self.valence,
            "arousal": self.arousal,
            "emotions": [{"label": e.label, "score": e.score} for e in self.emotions],
            "evidence": list(self.evidence),
        }


@dataclass(frozen=True)
class ConversationAnalysis:
    """Interaction quality of a conversation."""
    rapport: float
    turn_taking_balance: float  # 0.5 == perfectly balanced
    empathy: float
    red_flags: Tuple[str, ...] = ()
    highlights: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rapport": self.rapport,
            "turnTakingBalance": self.turn_taking_balance,
            "empathy": self.empathy,
            "redFlags": list(self.red_flags),
            "highlights": list(self.highlights),
        }


@dataclass(frozen=True)
class MatchBreakdown:
    text: int
    voice: int
    balance: int

    def to_dict(self) -> Dict[str, int]:
        return {"text": self.text, "voice": self.voice, "balance": self.balance}


@dataclass(frozen=True)
class MatchScore:
    """Composite 0-100 score with its three sub-scores."""
    score: int
    breakdown: MatchBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "breakdown": self.breakdown.to_dict()}


@dataclass(frozen=True)
class Feedback:
    """Coaching summary and tips."""
    summary: str
    tips: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"summary": self.summary, "tips": list(self.tips)}


class ResultSource(str, Enum):
    """Where an analysis outcome came from."""
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AnalysisOutcome:
    """Final results of one analysis session, tagged with their source."""
    source: ResultSource
    emotion: EmotionAnalysis
    conversation: ConversationAnalysis
    match: MatchScore
    feedback: Feedback
    prosody: Optional[ProsodySummary] = None
    error: Optional[Exception] = field(default=None, compare=False)
    reason: str = ""

    @property
    def is_fallback(self) -> bool:
        return self.source == ResultSource.FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source": self.source.value,
            "emotion": self.emotion.to_dict(),
            "conversation": self.conversation.to_dict(),
            "match": self.match.to_dict(),
            "feedback": self.feedback.to_dict(),
        }
        if self.prosody is not None:
            data["prosody"] = self.prosody.to_dict()
        if self.reason:
            data["reason"] = self.reason
        if self.error is not None:
            to_dict = getattr(self.error, "to_dict", None)
            data["error"] = to_dict() if callable(to_dict) else {"message": str(self.error)}
        return data
