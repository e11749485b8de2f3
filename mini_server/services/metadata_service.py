import json
import logging
import re
from typing import Any, Dict, Optional

import litellm

from mini_server.exceptions import GenerationError
from mini_server.models.generation import AppMetadata

logger = logging.getLogger(__name__)

METADATA_PROMPT = """Generate metadata for a P2P app based on this prompt: "{prompt}"

Return a JSON object with these exact fields:
- id: kebab-case identifier (e.g., "todo-list")
- name: App display name
- description: Brief description (under 100 chars)
- version: Semantic version (e.g., "1.0.0")
- price: Price in USD (0.00 for free apps)
- icon: Single emoji that represents the app

Respond with only valid JSON, no other text."""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_metadata_response(content: str) -> AppMetadata:
    """Parse the model's JSON answer, tolerating a surrounding markdown fence."""
    cleaned = _CODE_FENCE.sub("", content.strip()).strip()
    try:
        payload: Dict[str, Any] = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError("Model returned invalid metadata JSON", {"content": content[:200]}) from e
    if not isinstance(payload, dict):
        raise GenerationError("Model returned metadata that is not a JSON object", {"content": content[:200]})

    # Drop nulls so model defaults apply
    return AppMetadata(**{k: v for k, v in payload.items() if v is not None and k in AppMetadata.model_fields})


class MetadataGenerator:
    """Derives project presentation metadata from the generation prompt via LiteLLM."""

    def __init__(
        self,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key

    async def generate(self, prompt: str) -> AppMetadata:
        model_params: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": METADATA_PROMPT.format(prompt=prompt)}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.api_key:
            model_params["api_key"] = self.api_key

        logger.debug(f"Requesting project metadata from {self.model}")
        try:
            response = await litellm.acompletion(**model_params)
        except Exception as e:
            logger.error(f"Metadata generation with {self.model} failed: {e}")
            raise GenerationError(f"Metadata generation failed: {e}", {"model": self.model}) from e

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            logger.error(f"Unexpected completion payload from {self.model}: {e}")
            raise GenerationError("Model returned no content", {"model": self.model}) from e

        metadata = parse_metadata_response(content)
        logger.info(f"Generated metadata '{metadata.name}' with {self.model}")
        return metadata
