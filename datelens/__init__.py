"""
Datelens: conversation analysis for first dates.

Scores a recorded conversation from its transcript and voice prosody, using an
LLM provider behind retry and circuit-breaker protection with a clearly
flagged demo fallback.
"""

__version__ = "1.0.0"

# Main entry points
from .analysis.orchestrator import AnalysisOrchestrator
from .analysis.models import AnalysisOutcome, ResultSource
from .analysis.scoring import compute_match_score

__all__ = ["AnalysisOrchestrator", "AnalysisOutcome", "ResultSource", "compute_match_score"]
