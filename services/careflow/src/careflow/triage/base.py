"""Base interface for entity extractors.

The dialogue state machine depends only on EntityExtractor, never on a
concrete extractor. Remote and local extractors are combined by
ExtractionChain (core/pipeline.py), which owns the fallback policy.
"""

from abc import ABC, abstractmethod

from services.careflow.src.careflow.triage.schemas import EntityCandidate


class EntityExtractor(ABC):
    """Abstract base class for turn-text entity extractors.

    Implementations may be best-effort (a remote model that can fail or be
    unavailable) or total (the rule-based extractor, which never fails).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs (e.g., 'rules', 'openai')."""
        ...

    @abstractmethod
    async def parse(self, text: str) -> EntityCandidate | None:
        """Extract entities from one turn of patient text.

        Returns:
            The candidate, or None when the extractor has nothing to offer.

        Raises:
            Any exception on failure. Callers going through ExtractionChain
            never see it.
        """
        ...
