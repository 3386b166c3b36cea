"""
Analysis prompt templates and generation.

This module contains all the prompt templates used by the analysis client,
keeping them separate from the business logic for easier maintenance and editing.
"""

from typing import Any, Dict, List, Sequence
import json

from .models import TranscriptSegment


class AnalysisPrompts:
    """Collection of all analysis prompts."""

    @staticmethod
    def emotion_prompt(transcript: str, prosody: Dict[str, Any]) -> str:
        """Prompt for emotional tone analysis."""
        return f"""
You are an expert in analysing first-date conversations. Analyse the transcript below and return its emotional state as JSON.

Transcript:
{transcript}

Voice summary: {json.dumps(prosody, ensure_ascii=False)}

Requirements:
- valence: -1 (very negative) to +1 (very positive)
- arousal: 0 (very calm) to 1 (very excited)
- intensity for the five basic emotions
- evidence: two concrete expressions from the transcript that show the emotion

Respond with a JSON object of exactly this shape:
{{
  "valence": 0.0,
  "arousal": 0.0,
  "emotions": [
    {{"label": "joy", "score": 0.0}},
    {{"label": "anger", "score": 0.0}},
    {{"label": "sadness", "score": 0.0}},
    {{"label": "fear", "score": 0.0}},
    {{"label": "surprise", "score": 0.0}}
  ],
  "evidence": ["...", "..."]
}}
        """.strip()

    @staticmethod
    def conversation_prompt(transcript: str,
                            emotion: Dict[str, Any],
                            speaking_stats: Dict[str, Any]) -> str:
        """Prompt for interaction quality analysis."""
        return f"""
As an expert in first-date interaction quality, evaluate the conversation below.

Transcript:
{transcript}

Emotion analysis: {json.dumps(emotion, ensure_ascii=False)}
Speaking statistics: {json.dumps(speaking_stats, ensure_ascii=False)}

Criteria:
- rapport: interest and warmth shown toward each other (0..1)
- turnTakingBalance: share of speaking by one party; 0.5 is an even 50:50 split
- empathy: understanding of and response to the partner's feelings (0..1)
- redFlags: concrete negative signals (empty list if none)
- highlights: concrete positive signals

Respond with a JSON object of exactly this shape:
{{
  "rapport": 0.0,
  "turnTakingBalance": 0.0,
  "empathy": 0.0,
  "redFlags": [],
  "highlights": []
}}
        """.strip()

    @staticmethod
    def match_score_prompt(emotion: Dict[str, Any], conversation: Dict[str, Any]) -> str:
        """Prompt asking the provider for a match score."""
        return f"""
Using the emotion and conversation analyses below, compute a match score.

Emotion analysis: {json.dumps(emotion, ensure_ascii=False)}
Conversation analysis: {json.dumps(conversation, ensure_ascii=False)}

Weigh text 45%, voice 35% and turn-taking balance 20%, and deduct 5 points per red flag (at most 20).

Respond with a JSON object of exactly this shape:
{{
  "score": 0,
  "breakdown": {{"text": 0, "voice": 0, "balance": 0}}
}}
        """.strip()

    @staticmethod
    def feedback_prompt(match: Dict[str, Any],
                        dominant_emotion: str,
                        emotion: Dict[str, Any],
                        conversation: Dict[str, Any]) -> str:
        """Prompt for coaching feedback."""
        red_flags = ", ".join(conversation.get("redFlags", [])) or "none"
        highlights = ", ".join(conversation.get("highlights", [])) or "none"
        return f"""
You are a warm, trustworthy dating coach. Give constructive feedback based on these results.

Results:
- Match score: {match.get("score")}/100 (breakdown {json.dumps(match.get("breakdown", {}))})
- Emotion: valence {emotion.get("valence")}, dominant emotion {dominant_emotion}
- Interaction: rapport {conversation.get("rapport")}, empathy {conversation.get("empathy")}
- Red flags: {red_flags}
- Highlights: {highlights}

Requirements:
- Tone: warm and encouraging; sensitive about feelings, simple about results
- summary: the overall flow of the conversation in 2-3 sentences
- tips: exactly 3 concrete tips the user can apply on the next date

Respond with a JSON object of exactly this shape:
{{
  "summary": "...",
  "tips": ["...", "...", "..."]
}}
        """.strip()


class PromptFormatter:
    """Utility class for formatting data for prompts."""

    @staticmethod
    def format_transcript(segments: Sequence[TranscriptSegment]) -> str:
        """Render segments as one `speaker: text` line each."""
        lines = []
        for seg in segments:
            if not seg.text:
                continue
            speaker = seg.speaker or "unknown"
            lines.append(f"{speaker}: {seg.text}")
        return "\n".join(lines)

    @staticmethod
    def speaking_stats(segments: Sequence[TranscriptSegment]) -> Dict[str, Any]:
        """Segment counts and speaking time per speaker."""
        texts = [s.text for s in segments if s.text]
        total_chars = sum(len(t) for t in texts)
        per_speaker: Dict[str, float] = {}
        for seg in segments:
            key = seg.speaker or "unknown"
            per_speaker[key] = per_speaker.get(key, 0.0) + max(0.0, seg.t1 - seg.t0)
        return {
            "segmentCount": len(texts),
            "avgSegmentLength": round(total_chars / len(texts), 1) if texts else 0.0,
            "speakingSeconds": {k: round(v, 2) for k, v in per_speaker.items()},
        }


def prompt_preview(prompt: str, limit: int = 120) -> str:
    """First non-empty line of a prompt, truncated for logging."""
    lines: List[str] = [ln for ln in prompt.splitlines() if ln.strip()]
    preview = lines[0].strip() if lines else ""
    if len(preview) > limit:
        preview = preview[:limit - 3] + "..."
    return preview
