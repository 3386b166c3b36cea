"""
Typed analysis operations over the LLM client.
"""
import logging
from typing import Any, Dict, Optional, Protocol, Sequence

from .models import (
    ConversationAnalysis, EmotionAnalysis, Feedback, MatchScore, ProsodySummary, TranscriptSegment
)
from .prompts import AnalysisPrompts, PromptFormatter, prompt_preview
from .schemas import (
    parse_conversation_analysis, parse_emotion_analysis, parse_feedback, parse_match_score
)
from ..infrastructure.llm import CancellationToken

logger = logging.getLogger("analysis_client")


class JsonLLMClient(Protocol):
    """Anything that turns a prompt into a decoded JSON object."""

    def generate_json(self, prompt: str, cancel: Optional[CancellationToken] = None) -> Dict[str, Any]: ...


class ResilientAnalysisClient:
    """
    Runs the four provider analyses and returns typed results.

    Errors from the LLM client propagate unchanged as classified
    `AnalysisAPIError`s; payload validation failures raise `ResponseParseError`.
    """

    def __init__(self, llm_client: JsonLLMClient):
        self.llm_client = llm_client

    def _request(self, stage: str, prompt: str, cancel: Optional[CancellationToken]) -> Dict[str, Any]:
        logger.info("Requesting %s analysis: %s", stage, prompt_preview(prompt))
        data = self.llm_client.generate_json(prompt, cancel=cancel)
        logger.debug("%s payload: %s", stage, data)
        return data

    def analyze_emotion(self,
                        segments: Sequence[TranscriptSegment],
                        prosody: ProsodySummary,
                        cancel: Optional[CancellationToken] = None) -> EmotionAnalysis:
        """Emotional valence/arousal of the conversation."""
        prompt = AnalysisPrompts.emotion_prompt(
            PromptFormatter.format_transcript(segments),
            prosody.to_dict(),
        )
        return parse_emotion_analysis(self._request("emotion", prompt, cancel))

    def analyze_conversation(self,
                             segments: Sequence[TranscriptSegment],
                             emotion: Optional[EmotionAnalysis] = None,
                             cancel: Optional[CancellationToken] = None) -> ConversationAnalysis:
        """Rapport, balance, empathy, red flags and highlights."""
        prompt = AnalysisPrompts.conversation_prompt(
            PromptFormatter.format_transcript(segments),
            emotion.to_dict() if emotion is not None else {},
            PromptFormatter.speaking_stats(segments),
        )
        return parse_conversation_analysis(self._request("conversation", prompt, cancel))

    def calculate_match_score(self,
                              emotion: EmotionAnalysis,
                              conversation: ConversationAnalysis,
                              cancel: Optional[CancellationToken] = None) -> MatchScore:
        """Provider-computed match score; not deterministic, unlike `compute_match_score`."""
        prompt = AnalysisPrompts.match_score_prompt(emotion.to_dict(), conversation.to_dict())
        return parse_match_score(self._request("match", prompt, cancel))

    def generate_feedback(self,
                          match: MatchScore,
                          emotion: EmotionAnalysis,
                          conversation: ConversationAnalysis,
                          cancel: Optional[CancellationToken] = None) -> Feedback:
        """Coaching summary and three tips seeded with the scores."""
        prompt = AnalysisPrompts.feedback_prompt(
            match.to_dict(),
            emotion.dominant_emotion or "unknown",
            emotion.to_dict(),
            conversation.to_dict(),
        )
        return parse_feedback(self._request("feedback", prompt, cancel))
