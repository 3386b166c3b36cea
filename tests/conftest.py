import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from datelens.analysis.testing import FakeClock, ScriptedSession
from datelens.config import Config
from datelens.infrastructure.llm import CircuitBreaker, ExponentialBackoff, OpenAIRestClient


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_client(clock):
    """Build an OpenAIRestClient over a scripted session and the fake clock."""

    def _make(script=(), default=None, failure_threshold=5, recovery_timeout=60.0,
              success_threshold=2, max_attempts=3, timeout=30.0):
        session = ScriptedSession(script, default=default)
        breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            success_threshold=success_threshold,
            clock=clock,
        )
        client = OpenAIRestClient(
            api_key="sk-test",
            timeout=timeout,
            retry_policy=ExponentialBackoff(max_attempts=max_attempts, base_delay=1.0, max_delay=10.0),
            circuit_breaker=breaker,
            clock=clock,
            session=session,
        )
        return client, session

    return _make


@pytest.fixture
def config() -> Config:
    return Config(api_key="sk-test")
