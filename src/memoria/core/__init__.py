"""
Core module - configuration, logging, shared types, service wiring.

Components:
- config: Settings management via pydantic-settings
- types: Conversation turn passed in by the chat layer
- background: Detached task runner for fire-and-forget extraction
- memory_service: Composition root used by the conversation layer
- logging: Structured logging setup
"""

from memoria.core.config import Settings
from memoria.core.types import ConversationTurn

__all__ = ["Settings", "ConversationTurn"]
