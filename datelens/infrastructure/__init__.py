"""Infrastructure components for the datelens system.

This module contains low-level technical components that provide
foundational capabilities for the analysis pipeline.
"""

# Audio infrastructure
from .audio import read_wav, extract_prosody_samples, summarize_prosody

# LLM infrastructure
from .llm import OpenAIRestClient, CircuitBreaker, ExponentialBackoff

__all__ = [
    # Audio processing
    "read_wav", "extract_prosody_samples", "summarize_prosody",

    # LLM client
    "OpenAIRestClient", "CircuitBreaker", "ExponentialBackoff"
]
