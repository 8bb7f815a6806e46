"""LiteLLM adapter - structured generation against any supported provider."""

import json
import re

import litellm
from litellm import acompletion
from pydantic import ValidationError

from memoria.core.config import Settings
from memoria.core.logging import get_logger
from memoria.llm.base import GenerationError, LLMConfig, SchemaT

logger = get_logger("llm.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True
litellm.set_verbose = False

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)

SCHEMA_INSTRUCTIONS = """

Respond with a single JSON object matching this JSON schema, and nothing else:
{schema}"""


def extract_json(content: str) -> str:
    """Strip reasoning blocks and markdown fences around a JSON payload."""
    content = _THINK_BLOCK.sub("", content).strip()

    # Handle common LLM output patterns
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
        content = content.strip()

    return content


class LiteLLMAdapter:
    """Structured generator backed by litellm.acompletion."""

    def __init__(
        self,
        config: LLMConfig,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.config = config
        self.api_key = api_key
        self.base_url = base_url

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str, schema: type[SchemaT]) -> SchemaT:
        """Call the model and validate its answer against schema.

        Args:
            prompt: Instruction prompt
            schema: Pydantic model the answer must conform to

        Returns:
            Validated schema instance
        """
        if not self.is_configured:
            raise GenerationError(f"Model {self.config.model} not available (missing API key)")

        schema_json = json.dumps(schema.model_json_schema(), ensure_ascii=False)
        messages = [
            {"role": "user", "content": prompt + SCHEMA_INSTRUCTIONS.format(schema=schema_json)}
        ]

        # Build LiteLLM params
        params = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "response_format": schema,
            "api_key": self.api_key,
        }

        # Add base URL for OpenAI-compatible endpoints
        if self.base_url:
            params["api_base"] = self.base_url

        logger.debug(f"LiteLLM request: model={self.config.model}, schema={schema.__name__}")

        try:
            response = await acompletion(**params)
        except Exception as e:
            logger.error(f"LiteLLM error for {self.config.model}: {e}")
            raise GenerationError(f"{self.config.model} call failed: {e}") from e

        content = response.choices[0].message.content or ""

        try:
            return schema.model_validate_json(extract_json(content))
        except ValidationError as e:
            logger.warning(f"{schema.__name__} output did not validate: {content[:200]!r}")
            raise GenerationError(f"Invalid {schema.__name__} output: {e}") from e


def create_adapter(settings: Settings) -> LiteLLMAdapter:
    """Create the memory model adapter from settings."""
    config = LLMConfig(
        model=settings.memory_model,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
    return LiteLLMAdapter(
        config,
        api_key=settings.llm_api_key or None,
        base_url=settings.llm_base_url or None,
    )
