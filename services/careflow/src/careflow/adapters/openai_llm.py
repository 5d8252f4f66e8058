"""Remote entity extractor using OpenAI gpt-4o-mini with JSON output."""

import json
import logging

from services.careflow.src.careflow.config import Settings, settings as default_settings
from services.careflow.src.careflow.triage.base import EntityExtractor
from services.careflow.src.careflow.triage.prompts import EXTRACTION_SYSTEM_PROMPT
from services.careflow.src.careflow.triage.schemas import EntityCandidate

logger = logging.getLogger(__name__)


class OpenAIEntityExtractor(EntityExtractor):
    """Best-effort extractor backed by the chat completions API.

    Returns None when OPENAI_API_KEY is not set. Network errors, refusals and
    payloads that fail EntityCandidate validation are raised to the caller;
    ExtractionChain turns them into a local fallback.
    """

    def __init__(self, config: Settings | None = None, client=None):
        self.config = config or default_settings
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    @property
    def available(self) -> bool:
        return bool(self.config.openai_api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(api_key=self.config.openai_api_key)
        return self._client

    async def parse(self, text: str) -> EntityCandidate | None:
        if not self.available:
            logger.warning("openai_api_key not set, skipping remote extraction")
            return None

        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.config.openai_model_text,
            messages=[
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            response_format={"type": "json_object"},
        )

        raw = response.choices[0].message.content
        if not raw:
            return None
        data = json.loads(raw)

        candidate = EntityCandidate.model_validate(data)
        return candidate.model_copy(update={"raw_input": text, "source": "remote"})
