"""
Chat-completion REST client for LLM interactions.
"""
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from typing import Optional, Dict, Any

import requests

from .errors import (
    AnalysisAPIError,
    AnalysisCancelledError,
    RequestTimeoutError,
    ResponseParseError,
    error_from_response,
)
from .resilience import (
    CancellationToken,
    CircuitBreaker,
    CircuitState,
    Clock,
    ExponentialBackoff,
    SystemClock,
    retry_call,
)
from ...config import (
    API_BASE_URL, CHAT_COMPLETIONS_PATH, MODEL_NAME, MAX_TOKENS,
    TEMPERATURE, REQUEST_TIMEOUT, REQUEST_POLL_INTERVAL,
)

logger = logging.getLogger("llm_client")


def parse_chat_completion(text: str) -> Dict[str, Any]:
    """
    Extract and decode the JSON object carried in choices[0].message.content.

    Raises:
        ResponseParseError: For an empty body, invalid outer JSON, a missing
            message, empty content, or content that is not a JSON object
    """
    if not text or not text.strip():
        raise ResponseParseError("Provider returned an empty response body")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Provider response is not valid JSON: {e}")

    choices = data.get("choices") if isinstance(data, dict) else None
    first = choices[0] if isinstance(choices, list) and choices else None
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        raise ResponseParseError("Provider response is missing choices[0].message")

    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ResponseParseError("Provider response message content is empty")

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Provider message content is not valid JSON: {e}")

    if not isinstance(parsed, dict):
        raise ResponseParseError("Provider message content is not a JSON object")
    return parsed


class OpenAIRestClient:
    """REST client for OpenAI-style chat-completion endpoints with retry and circuit breaking."""

    def __init__(self,
                 api_key: str,
                 model: str = MODEL_NAME,
                 max_tokens: int = MAX_TOKENS,
                 temperature: float = TEMPERATURE,
                 base_url: str = API_BASE_URL,
                 timeout: float = REQUEST_TIMEOUT,
                 retry_policy: Optional[ExponentialBackoff] = None,
                 circuit_breaker: Optional[CircuitBreaker] = None,
                 clock: Optional[Clock] = None,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.url = f"{base_url.rstrip('/')}{CHAT_COMPLETIONS_PATH}"
        self.timeout = timeout
        self.clock = clock or SystemClock()
        self.retry_policy = retry_policy or ExponentialBackoff()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(clock=self.clock)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="llm-http")

    @property
    def circuit_state(self) -> CircuitState:
        return self.circuit_breaker.state

    def build_payload(self, prompt_text: str) -> Dict[str, Any]:
        """Build the chat-completion request body."""
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": prompt_text,
                }
            ],
            "max_tokens": int(self.max_tokens),
            "temperature": float(self.temperature),
            "response_format": {"type": "json_object"},
        }

    def _post_once(self, body: Dict[str, Any], cancel: Optional[CancellationToken] = None) -> str:
        """
        Send one POST on a worker thread and wait for it.

        The `requests` timeout only bounds connect and each socket read, so the
        whole attempt is also held to `self.timeout` of wall-clock time. A
        cancelled token or an expired deadline returns control immediately;
        the abandoned request finishes on the worker and its result is dropped.
        """
        future = self._executor.submit(self.session.post, self.url, json=body, timeout=self.timeout)
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            done, _ = wait_futures([future], timeout=max(0.0, min(remaining, REQUEST_POLL_INTERVAL)))
            if done:
                break
            if cancel is not None and cancel.cancelled:
                future.cancel()
                raise AnalysisCancelledError("Analysis was cancelled by the caller")
            if time.monotonic() >= deadline:
                future.cancel()
                raise RequestTimeoutError(f"Request exceeded {self.timeout:g}s")

        resp = future.result()
        if resp.status_code >= 400:
            error = error_from_response(resp)
            logger.debug("Provider error body: %s", (resp.text or "")[:800])
            raise error
        return resp.text

    def generate_text(self, prompt_text: str, cancel: Optional[CancellationToken] = None) -> str:
        """POST one prompt through the circuit breaker and retry policy; returns the raw body."""
        body = self.build_payload(prompt_text)

        def _attempt() -> str:
            return self._post_once(body, cancel)

        return self.circuit_breaker.call(
            lambda: retry_call(_attempt, self.retry_policy, self.clock, cancel, label="llm request")
        )

    def generate_json(self, prompt: str, cancel: Optional[CancellationToken] = None) -> Dict[str, Any]:
        """
        Generate a JSON object response from the LLM.

        Raises:
            AnalysisAPIError: Classified transport, provider or parse failure
        """
        logger.debug("Sending JSON prompt to LLM (model=%s)...", self.model)
        try:
            text = self.generate_text(prompt, cancel)
        except AnalysisAPIError as e:
            logger.error("LLM request failed [%s]: %s", e.kind.value, e.message)
            raise

        logger.debug("Raw LLM output: %s", text[:800])
        parsed = parse_chat_completion(text)
        logger.debug("Parsed JSON successfully")
        return parsed

    def health_check(self) -> bool:
        """Return True when the provider answers a trivial JSON prompt."""
        try:
            self.generate_json('Respond with the JSON object {"ok": true}.')
            return True
        except AnalysisAPIError as e:
            logger.warning("Health check failed: %s", e)
            return False

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self.session.close()
