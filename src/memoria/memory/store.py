"""Mem0 memory store - fault-tolerant adapter over the Mem0 platform client."""

from typing import Any

from mem0 import AsyncMemoryClient

from memoria.core.config import Settings
from memoria.core.logging import get_logger
from memoria.core.typing import JSONDict, MessageDict
from memoria.memory.base import MemoryCategory, MemoryRecord, MemoryStore, MemoryTier

logger = get_logger("memory.store")


def parse_mem0_memory(raw: JSONDict) -> MemoryRecord:
    """Convert a Mem0 memory payload into a MemoryRecord."""
    metadata = raw.get("metadata") or {}

    try:
        tier = MemoryTier(metadata.get("tier"))
    except ValueError:
        tier = MemoryTier.INTERACTION

    try:
        category = MemoryCategory(metadata.get("category"))
    except ValueError:
        category = None

    return MemoryRecord(
        id=raw["id"],
        text=raw.get("memory", ""),
        tier=tier,
        user_id=metadata.get("user_id"),
        agent_id=metadata.get("agent_id"),
        category=category,
        created_at=raw.get("created_at"),
        updated_at=raw.get("updated_at"),
        metadata=metadata,
    )


def _result_items(result: Any) -> list[JSONDict]:
    """Mem0 answers with {"results": [...]}; older servers send a bare list."""
    if isinstance(result, dict):
        result = result.get("results")
    if not isinstance(result, list):
        return []
    return [item for item in result if isinstance(item, dict)]


class Mem0MemoryStore(MemoryStore):
    """Pass-through adapter; degrades to empty/false instead of raising."""

    def __init__(self, client: AsyncMemoryClient | None):
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def add(
        self,
        content: str | list[MessageDict],
        scope_key: str,
        metadata: dict[str, Any],
    ) -> str:
        """Store memory at scope_key. Errors propagate to the caller."""
        if self._client is None:
            logger.warning("Mem0 not configured, skipping memory add")
            return ""

        if isinstance(content, str):
            messages = [{"role": "user", "content": content}]
        else:
            messages = content

        try:
            result = await self._client.add(messages, user_id=scope_key, metadata=metadata)
        except Exception as e:
            logger.error(f"Failed to add memory for {scope_key}: {e}")
            raise

        items = _result_items(result)
        memory_id = items[0].get("id", "") if items else ""
        logger.debug(f"Added memory {memory_id or '<pending>'} for {scope_key}")
        return memory_id

    async def search(self, query: str, scope_key: str, limit: int = 5) -> list[MemoryRecord]:
        """Relevance-ordered search within one scope."""
        if self._client is None:
            return []

        try:
            result = await self._client.search(query, filters={"user_id": scope_key}, top_k=limit)
            return [parse_mem0_memory(item) for item in _result_items(result)]
        except Exception as e:
            logger.error(f"Memory search failed for {scope_key}: {e}")
            return []

    async def get_all(self, scope_key: str) -> list[MemoryRecord]:
        """List all memories in a scope."""
        if self._client is None:
            return []

        try:
            result = await self._client.get_all(filters={"user_id": scope_key})
            return [parse_mem0_memory(item) for item in _result_items(result)]
        except Exception as e:
            logger.error(f"Failed to list memories for {scope_key}: {e}")
            return []

    async def update(self, memory_id: str, text: str) -> bool:
        """Replace memory text."""
        if self._client is None:
            return False

        try:
            await self._client.update(memory_id, text=text)
            return True
        except Exception as e:
            logger.error(f"Failed to update memory {memory_id}: {e}")
            return False

    async def delete(self, memory_id: str) -> bool:
        """Delete memory."""
        if self._client is None:
            return False

        try:
            await self._client.delete(memory_id)
            return True
        except Exception as e:
            logger.error(f"Failed to delete memory {memory_id}: {e}")
            return False


def create_memory_store(settings: Settings) -> Mem0MemoryStore:
    """Create the store from settings. Missing or rejected key disables it."""
    if not settings.memory_enabled:
        logger.info("MEMORIA_MEM0_API_KEY not set, long-term memory disabled")
        return Mem0MemoryStore(None)

    try:
        client = AsyncMemoryClient(api_key=settings.mem0_api_key)
    except Exception as e:
        logger.error(f"Failed to create Mem0 client, long-term memory disabled: {e}")
        return Mem0MemoryStore(None)

    return Mem0MemoryStore(client)
