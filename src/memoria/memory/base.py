"""
Memory types and store interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from memoria.core.typing import MessageDict


class MemoryTier(Enum):
    USER_GLOBAL = "user_global"  # per user, shared across agents
    AGENT_GLOBAL = "agent_global"  # per agent, shared across users
    INTERACTION = "interaction"  # per user+agent pair


class MemoryCategory(Enum):
    PREFERENCE = "preference"
    FACT = "fact"
    DECISION = "decision"
    KNOWLEDGE = "knowledge"


@dataclass
class MemoryRecord:
    """Single memory as held by the external store."""

    id: str
    text: str
    tier: MemoryTier
    user_id: str | None = None
    agent_id: str | None = None
    category: MemoryCategory | None = None
    created_at: str | None = None
    updated_at: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class MemoryStore(ABC):
    """Semantic memory store keyed by opaque scope identity."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the backing service is usable."""
        ...

    @abstractmethod
    async def add(
        self,
        content: str | list[MessageDict],
        scope_key: str,
        metadata: dict[str, Any],
    ) -> str:
        """Store memory, return ID (empty when unconfigured)."""
        ...

    @abstractmethod
    async def search(self, query: str, scope_key: str, limit: int = 5) -> list[MemoryRecord]:
        """Relevance-ordered search within one scope. Never raises."""
        ...

    @abstractmethod
    async def get_all(self, scope_key: str) -> list[MemoryRecord]:
        """List every memory in a scope. Never raises."""
        ...

    @abstractmethod
    async def update(self, memory_id: str, text: str) -> bool:
        """Replace memory text."""
        ...

    @abstractmethod
    async def delete(self, memory_id: str) -> bool:
        """Delete memory."""
        ...
