"""Pytest configuration and shared fixtures.

Every test runs offline: sessions use the rule-based extractor unless a
test plugs in its own fake remote extractor.
"""

import pytest
import pytest_asyncio

from services.careflow.src.careflow.core.pipeline import ExtractionChain
from services.careflow.src.careflow.core.sessions import SessionStore
from services.careflow.src.careflow.triage.base import EntityExtractor
from services.careflow.src.careflow.triage.extract import RuleBasedExtractor
from services.careflow.src.careflow.triage.session import START_SESSION, TriageSession


@pytest.fixture(autouse=True)
def disable_remote_extraction(monkeypatch):
    """Never reach OpenAI from tests, even if a key is set in the environment."""
    from services.careflow.src.careflow.config import settings
    monkeypatch.setattr(settings, "openai_api_key", "")


# =============================================================================
# Fake extractors
# =============================================================================

class StaticExtractor(EntityExtractor):
    """Returns a fixed result (or raises) and records every call."""

    def __init__(self, result=None, error: Exception | None = None, name: str = "fake"):
        self.result = result
        self.error = error
        self._name = name
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def parse(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def local_chain():
    return ExtractionChain([RuleBasedExtractor()])


@pytest.fixture
def session(local_chain):
    """Fresh session in GREETING state backed by local rules only."""
    return TriageSession(extractor=local_chain, session_id="test-session")


@pytest_asyncio.fixture
async def started_session(session):
    """Session that already sent its greeting (state MAIN_SYMPTOM)."""
    await session.process_message(START_SESSION)
    return session


@pytest.fixture
def store():
    return SessionStore(extractor_factory=lambda: ExtractionChain([RuleBasedExtractor()]))


@pytest.fixture
def static_extractor():
    """Factory for StaticExtractor fakes."""
    return StaticExtractor
