"""
Memoria - tiered long-term memory for conversational agents.

Package structure:
- core: Config, logging, shared types, service facade, background tasks
- llm: Structured generation over LiteLLM
- memory: Scopes, store adapter, retrieval, extraction pipeline, prompts
"""

__version__ = "0.1.0"
