"""Shared test fixtures."""

import pytest

import src.bot.session as session_mod
import src.llm.client as client_mod
import src.llm.prompt as prompt_mod
from src.llm.ledger import KeyLedger


class FakeClock:
    """Manually advanced clock for cool-down and eviction tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(clock: FakeClock) -> KeyLedger:
    """A three-key ledger driven by the fake clock."""
    return KeyLedger(["key-aaaa", "key-bbbb", "key-cccc"], clock=clock)


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset the session store, Gemini client and cached persona between tests."""
    session_mod._store = None
    client_mod._client = None
    prompt_mod.persona_text.cache_clear()
    yield
    session_mod._store = None
    client_mod._client = None
    prompt_mod.persona_text.cache_clear()
