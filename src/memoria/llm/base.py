"""
Structured generation interface.
"""

from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GenerationError(Exception):
    """Model call failed or returned output that does not fit the schema."""


@dataclass
class LLMConfig:
    """Configuration for LLM call."""

    model: str
    max_tokens: int = 1024
    temperature: float = 0.3


@runtime_checkable
class StructuredGenerator(Protocol):
    """Produces output conforming to a pydantic schema from a prompt."""

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present."""
        ...

    async def generate(self, prompt: str, schema: type[SchemaT]) -> SchemaT:
        """
        Generate a validated instance of schema.

        Args:
            prompt: Full instruction prompt
            schema: Pydantic model describing the expected output

        Returns:
            Validated schema instance

        Raises:
            GenerationError: On call failure or non-conforming output
        """
        ...
