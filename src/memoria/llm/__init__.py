"""
LLM module - structured generation used by the extraction pipeline.

Components:
- base: Generator protocol, config and error types
- litellm_adapter: LiteLLM-backed structured generator
"""

from memoria.llm.base import GenerationError, LLMConfig, StructuredGenerator

__all__ = ["GenerationError", "LLMConfig", "StructuredGenerator"]
