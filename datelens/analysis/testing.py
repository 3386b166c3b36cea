"""
Testing infrastructure with fakes for the analysis system.

Nothing here touches the network or sleeps for real.
"""
import json
from typing import Any, Dict, List, Optional, Sequence

from .models import ConversationAnalysis, EmotionAnalysis, EmotionScore, ProsodySample, TranscriptSegment
from .schemas import SessionState
from ..infrastructure.llm import CancellationToken


class FakeClock:
    """Deterministic clock: sleeping only advances virtual time and records the delay."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float, cancel: Optional[CancellationToken] = None) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    """Minimal stand-in for `requests.Response`."""

    def __init__(self, status_code: int = 200, text: str = "", headers: Optional[Dict[str, str]] = None,
                 reason: str = ""):
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}
        self.reason = reason


class ScriptedSession:
    """
    Fake HTTP session replaying scripted responses in order.

    Script items may be a FakeResponse, an exception instance to raise, or a
    zero-argument callable returning either. Once the script is exhausted,
    `default` is replayed.
    """

    def __init__(self, script: Sequence[Any] = (), default: Any = None):
        self.script = list(script)
        self.default = default
        self.headers: Dict[str, str] = {}
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, json: Any = None, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append({"url": url, "json": json, "timeout": timeout, "headers": dict(self.headers)})
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise AssertionError("ScriptedSession ran out of responses")

        if callable(item) and not isinstance(item, BaseException):
            item = item()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


def chat_completion_body(obj: Any) -> str:
    """Wrap a JSON-serialisable object the way a chat-completion endpoint does."""
    return json.dumps({
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": json.dumps(obj)}, "finish_reason": "stop"}
        ],
    })


def ok_response(obj: Any) -> FakeResponse:
    return FakeResponse(200, chat_completion_body(obj))


class MockLLMClient:
    """Mock JSON LLM client replaying scripted payloads or raising scripted errors."""

    def __init__(self, mock_responses: Sequence[Any]):
        self.mock_responses = list(mock_responses)
        self.current_response_idx = 0
        self.request_history: List[str] = []

    def generate_json(self, prompt: str, cancel: Optional[CancellationToken] = None) -> Dict[str, Any]:
        self.request_history.append(prompt)
        if self.current_response_idx >= len(self.mock_responses):
            raise AssertionError("MockLLMClient ran out of responses")
        response = self.mock_responses[self.current_response_idx]
        self.current_response_idx += 1
        if callable(response) and not isinstance(response, BaseException):
            response = response()
        if isinstance(response, BaseException):
            raise response
        return response


# Provider payloads for a pleasant date, in the order the orchestrator requests them.

EMOTION_PAYLOAD = {
    "valence": 0.5,
    "arousal": 0.6,
    "emotions": [
        {"label": "joy", "score": 0.8},
        {"label": "anger", "score": 0.0},
        {"label": "sadness", "score": 0.1},
        {"label": "fear", "score": 0.0},
        {"label": "surprise", "score": 0.3},
    ],
    "evidence": ["Both laughed at the hiking story", "Lots of follow-up questions"],
}

CONVERSATION_PAYLOAD = {
    "rapport": 0.7,
    "turnTakingBalance": 0.55,
    "empathy": 0.6,
    "redFlags": [],
    "highlights": ["Shared love of hiking"],
}

MATCH_PAYLOAD = {"score": 81, "breakdown": {"text": 80, "voice": 77, "balance": 90}}

FEEDBACK_PAYLOAD = {
    "summary": "A relaxed, curious conversation with easy laughter.",
    "tips": [
        "Ask about the trip they mentioned.",
        "Share a story of your own to balance the questions.",
        "Suggest a concrete plan for next time.",
    ],
}


def create_test_segments() -> List[TranscriptSegment]:
    """A short two-person transcript."""
    return [
        TranscriptSegment(0.0, 3.2, "Hi, it's great to finally meet you!", "me"),
        TranscriptSegment(3.4, 7.9, "You too! I loved your hiking photos.", "partner"),
        TranscriptSegment(8.1, 12.0, "Thanks, that trail was amazing. Do you hike a lot?", "me"),
        TranscriptSegment(12.3, 16.5, "Whenever I can, mostly on weekends.", "partner"),
    ]


def create_test_prosody() -> List[ProsodySample]:
    """Prosody samples with voiced and unvoiced frames."""
    return [
        ProsodySample(0.0, 0.2, 180.0),
        ProsodySample(0.1, 0.4, 220.0),
        ProsodySample(0.2, 0.3, None),
        ProsodySample(0.3, 0.5, 200.0),
    ]


def create_test_session(with_prosody: bool = True) -> SessionState:
    session = SessionState(duration=16.5)
    for seg in create_test_segments():
        session.push_segment(seg)
    if with_prosody:
        for sample in create_test_prosody():
            session.push_prosody(sample)
    return session


def make_emotion(valence: float = 0.5, arousal: float = 0.6) -> EmotionAnalysis:
    return EmotionAnalysis(
        valence=valence,
        arousal=arousal,
        emotions=(EmotionScore("joy", 0.8), EmotionScore("surprise", 0.3)),
    )


def make_conversation(rapport: float = 0.7,
                      balance: float = 0.55,
                      red_flags: Sequence[str] = ()) -> ConversationAnalysis:
    return ConversationAnalysis(
        rapport=rapport,
        turn_taking_balance=balance,
        empathy=0.6,
        red_flags=tuple(red_flags),
    )
