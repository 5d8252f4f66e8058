"""Extraction fallback chain.

Orchestrates: remote extractor → local rule-based extractor.
Each attempt is timed and logged. A failing extractor is never fatal: the
chain moves on to the next one, and the rule-based extractor at the end of
the default chain always answers.
"""

import logging
import time

from services.careflow.src.careflow.config import Settings, settings as default_settings
from services.careflow.src.careflow.triage.base import EntityExtractor
from services.careflow.src.careflow.triage.extract import RuleBasedExtractor
from services.careflow.src.careflow.triage.schemas import EntityCandidate

logger = logging.getLogger(__name__)


class ExtractionChain(EntityExtractor):
    """Try each extractor in order; the first non-None candidate wins.

    Any exception or None result is treated as "no result" and the next
    extractor is tried. If none answers, an empty candidate is returned so
    the dialogue can still progress.
    """

    def __init__(self, extractors: list[EntityExtractor]):
        if not extractors:
            raise ValueError("ExtractionChain needs at least one extractor")
        self.extractors = list(extractors)

    @property
    def name(self) -> str:
        return "chain(" + ",".join(e.name for e in self.extractors) + ")"

    async def parse(self, text: str) -> EntityCandidate:
        for extractor in self.extractors:
            t0 = time.monotonic()
            try:
                candidate = await extractor.parse(text)
            except Exception as exc:
                latency_ms = int((time.monotonic() - t0) * 1000)
                logger.warning("extractor_failed", extra={
                    "extractor": extractor.name,
                    "error": str(exc),
                    "latency_ms": latency_ms,
                })
                continue
            latency_ms = int((time.monotonic() - t0) * 1000)

            if candidate is None:
                logger.info("extractor_no_result", extra={
                    "extractor": extractor.name, "latency_ms": latency_ms,
                })
                continue

            logger.info("extractor_succeeded", extra={
                "extractor": extractor.name,
                "latency_ms": latency_ms,
                "red_flags": len(candidate.red_flags),
            })
            return candidate

        logger.error("extraction_exhausted", extra={"extractors": self.name})
        return EntityCandidate(raw_input=text, confidence=0.0, source="none")


def build_default_extractor(config: Settings | None = None) -> ExtractionChain:
    """Remote OpenAI extractor (when enabled and keyed) followed by local rules."""
    config = config or default_settings
    extractors: list[EntityExtractor] = []

    if config.remote_extraction_enabled and config.openai_api_key:
        from services.careflow.src.careflow.adapters.openai_llm import OpenAIEntityExtractor
        extractors.append(OpenAIEntityExtractor(config))

    extractors.append(RuleBasedExtractor())
    return ExtractionChain(extractors)
