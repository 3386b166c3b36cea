"""
Match scoring.

The weights below are fixed design constants, not configuration.
"""
import logging
import math

from .models import (
    ConversationAnalysis,
    EmotionAnalysis,
    EmotionScore,
    Feedback,
    MatchBreakdown,
    MatchScore,
    ProsodySummary,
)

logger = logging.getLogger("scoring")

TEXT_WEIGHT = 0.45
VOICE_WEIGHT = 0.35
BALANCE_WEIGHT = 0.20

RED_FLAG_PENALTY = 0.05
MAX_RED_FLAG_PENALTY = 0.20

NEUTRAL_PITCH_SCORE = 0.5


def round_half_up(value: float) -> int:
    """Round halves up (72.5 -> 73); `round()` would give 72."""
    return int(math.floor(value + 0.5))


def assess_prosody_health(summary: ProsodySummary) -> float:
    """Blend loudness, loudness variation and pitch range into one 0..1 signal."""
    # avg_rms of 0.5 is treated as ideal loudness
    volume_score = min(summary.avg_rms * 2, 1)
    # rewards dynamic, non-monotonic speech
    variance_score = min(summary.rms_variance * 5, 1)

    pitch_score = NEUTRAL_PITCH_SCORE
    if summary.pitch_range and summary.avg_pitch:
        # a 100 Hz range is treated as ideal
        pitch_score = min(summary.pitch_range / 100, 1)

    return 0.5 * volume_score + 0.3 * variance_score + 0.2 * pitch_score


def compute_match_score(emotion: EmotionAnalysis,
                        conversation: ConversationAnalysis,
                        prosody: ProsodySummary) -> MatchScore:
    """
    Combine text, voice and turn-taking signals into a 0-100 match score.

    Inputs are not validated or clamped; only the final score is floored at 0.
    The breakdown reports the raw sub-scores; only `score` carries the red-flag
    penalty.
    """
    normalized_valence = (emotion.valence + 1) / 2
    text_score = 0.5 * normalized_valence + 0.5 * conversation.rapport

    prosody_health = assess_prosody_health(prosody)
    voice_score = 0.7 * prosody_health + 0.3 * emotion.arousal

    balance_score = 1 - abs(conversation.turn_taking_balance - 0.5) * 2

    weighted = (TEXT_WEIGHT * text_score
                + VOICE_WEIGHT * voice_score
                + BALANCE_WEIGHT * balance_score)

    penalty = min(len(conversation.red_flags) * RED_FLAG_PENALTY, MAX_RED_FLAG_PENALTY)
    adjusted = max(0, weighted - penalty)
    logger.debug("Match score: text=%.3f voice=%.3f balance=%.3f penalty=%.2f -> %.3f",
                 text_score, voice_score, balance_score, penalty, adjusted)

    return MatchScore(
        score=round_half_up(adjusted * 100),
        breakdown=MatchBreakdown(
            text=round_half_up(text_score * 100),
            voice=round_half_up(voice_score * 100),
            balance=round_half_up(balance_score * 100),
        ),
    )


# Fixed fallback results used when the provider cannot be reached.
# They are only ever returned inside an outcome tagged as FALLBACK.

def demo_emotion() -> EmotionAnalysis:
    return EmotionAnalysis(
        valence=0.4,
        arousal=0.6,
        emotions=(
            EmotionScore("joy", 0.7),
            EmotionScore("surprise", 0.3),
            EmotionScore("anger", 0.0),
            EmotionScore("sadness", 0.1),
            EmotionScore("fear", 0.0),
        ),
        evidence=("Frequent laughter", "Lots of curious questions"),
    )


def demo_conversation() -> ConversationAnalysis:
    return ConversationAnalysis(
        rapport=0.75,
        turn_taking_balance=0.45,
        empathy=0.65,
        red_flags=(),
        highlights=("Found shared interests", "Natural humor", "Active listening"),
    )


def demo_match_score() -> MatchScore:
    return MatchScore(score=73, breakdown=MatchBreakdown(text=78, voice=69, balance=71))


def demo_feedback() -> Feedback:
    return Feedback(
        summary=("You were both clearly curious about each other. "
                 "Finding common interests felt natural and unforced."),
        tips=(
            "Wait two or three seconds longer after your partner finishes; an unhurried pace invites deeper answers.",
            "Name your feelings a little more precisely, e.g. 'that sounds thrilling' rather than 'fun'.",
            "End a statement with 'what do you think?' to draw out your partner's view.",
        ),
    )
