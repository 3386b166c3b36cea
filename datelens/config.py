"""
Datelens Configuration System
=============================

This file contains ALL configuration for the datelens analysis pipeline.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass


# =============================================================================
# USER SETTINGS - Edit these to customize the analysis
# =============================================================================

# Provider credentials. Leave empty to run in demo mode.
OPENAI_API_KEY = ""

# Model settings
MODEL_NAME = "gpt-4o-mini"
MAX_TOKENS = 500
TEMPERATURE = 0.3
API_BASE_URL = "https://api.openai.com/v1"

# Use the provider's match score instead of the local formula
USE_LLM_MATCH_SCORE = False

# Logging
LOG_FILE = "./_datelens/analysis.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# HTTP
CHAT_COMPLETIONS_PATH = "/chat/completions"
REQUEST_TIMEOUT = 30.0
REQUEST_POLL_INTERVAL = 0.05  # seconds between cancellation checks while a request is in flight

# Retry (exponential backoff)
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 10.0

# Circuit breaker
CIRCUIT_FAILURE_THRESHOLD = 5
CIRCUIT_RECOVERY_TIMEOUT = 60.0
CIRCUIT_SUCCESS_THRESHOLD = 2

# Orchestration
MIN_TRANSCRIPT_CHARS = 5
EXPECTED_FEEDBACK_TIPS = 3

# Prosody extraction
PROSODY_FRAME_MS = 100
PITCH_MIN_HZ = 75.0
PITCH_MAX_HZ = 400.0
PITCH_VOICING_THRESHOLD = 0.3
VAD_SILENCE_THRESHOLD = 0.01

# Used when a session recorded no prosody samples
DEFAULT_AVG_RMS = 0.3
DEFAULT_RMS_VARIANCE = 0.1


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    api_key: str = OPENAI_API_KEY
    model_name: str = MODEL_NAME
    max_tokens: int = MAX_TOKENS
    temperature: float = TEMPERATURE
    api_base_url: str = API_BASE_URL
    use_llm_match_score: bool = USE_LLM_MATCH_SCORE
    request_timeout: float = REQUEST_TIMEOUT
    retry_max_attempts: int = RETRY_MAX_ATTEMPTS
    retry_base_delay: float = RETRY_BASE_DELAY
    retry_max_delay: float = RETRY_MAX_DELAY
    circuit_failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD
    circuit_recovery_timeout: float = CIRCUIT_RECOVERY_TIMEOUT
    circuit_success_threshold: int = CIRCUIT_SUCCESS_THRESHOLD
    min_transcript_chars: int = MIN_TRANSCRIPT_CHARS
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    @property
    def has_api_key(self) -> bool:
        """True when a provider credential is configured."""
        return bool(self.api_key and self.api_key.strip())


def get_config() -> Config:
    """
    Load configuration from the environment, falling back to the settings above.

    Raises:
        ValueError: If a numeric environment variable cannot be parsed
    """
    try:
        max_tokens = int(os.getenv("DATELENS_MAX_TOKENS", str(MAX_TOKENS)))
        temperature = float(os.getenv("DATELENS_TEMPERATURE", str(TEMPERATURE)))
    except ValueError as e:
        raise ValueError(f"Invalid numeric setting in environment: {e}")

    return Config(
        api_key=os.getenv("OPENAI_API_KEY") or OPENAI_API_KEY,
        model_name=os.getenv("DATELENS_MODEL") or MODEL_NAME,
        max_tokens=max_tokens,
        temperature=temperature,
        api_base_url=(os.getenv("DATELENS_API_BASE") or API_BASE_URL).rstrip("/"),
        use_llm_match_score=_env_bool("DATELENS_USE_LLM_MATCH_SCORE", USE_LLM_MATCH_SCORE),
        log_file=os.getenv("DATELENS_LOG_FILE") or LOG_FILE,
        log_level=(os.getenv("DATELENS_LOG_LEVEL") or LOG_LEVEL).upper(),
    )
