"""Memory service - the surface the conversation layer talks to.

Before a reply: augment_prompt() pulls memories for the next query.
After a reply: schedule_extraction() hands the turn to the pipeline as a
detached task, so extraction can never delay or fail the response.
"""

import asyncio

from memoria.core.background import BackgroundTaskRunner
from memoria.core.config import Settings, get_settings
from memoria.core.logging import get_logger
from memoria.core.types import ConversationTurn
from memoria.llm.base import StructuredGenerator
from memoria.llm.litellm_adapter import create_adapter
from memoria.memory.base import MemoryRecord, MemoryStore, MemoryTier
from memoria.memory.extraction import MemoryExtractionPipeline, PipelineOutcome
from memoria.memory.prompting import build_system_prompt_with_memory
from memoria.memory.retrieval import MemoryRetriever, RetrievalResult
from memoria.memory.scope import build_scope_key
from memoria.memory.store import create_memory_store

logger = get_logger("core.memory_service")


class MemoryService:
    """Wires store, retriever and extraction pipeline together."""

    def __init__(
        self,
        store: MemoryStore,
        generator: StructuredGenerator,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.retriever = MemoryRetriever(store, limit_per_tier=settings.retrieval_limit)
        self.pipeline = MemoryExtractionPipeline(
            generator, store, candidate_limit=settings.candidate_limit
        )
        self._background = BackgroundTaskRunner()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MemoryService":
        """Build the service with Mem0 and LiteLLM clients from settings."""
        settings = settings or get_settings()
        return cls(create_memory_store(settings), create_adapter(settings), settings)

    @property
    def enabled(self) -> bool:
        return self.store.is_configured

    @property
    def pending_extractions(self) -> int:
        return self._background.pending

    async def retrieve(
        self,
        query: str,
        user_id: str | None = None,
        agent_id: str | None = None,
        limit: int | None = None,
    ) -> RetrievalResult:
        """Memories from every applicable tier for query."""
        return await self.retriever.retrieve(query, user_id, agent_id, limit)

    async def augment_prompt(
        self,
        base_prompt: str,
        query: str,
        user_id: str | None = None,
        agent_id: str | None = None,
    ) -> str:
        """System prompt extended with memories relevant to query."""
        retrieval = await self.retrieve(query, user_id, agent_id)
        return build_system_prompt_with_memory(base_prompt, retrieval)

    def schedule_extraction(self, turn: ConversationTurn) -> asyncio.Task:
        """Start extraction for a finished turn without waiting for it."""
        return self._background.spawn(
            self._extract(turn),
            name=f"memory-extraction:{turn.user_id}:{turn.agent_id}",
        )

    async def _extract(self, turn: ConversationTurn) -> PipelineOutcome:
        outcome = await self.pipeline.run(turn)
        logger.info(
            f"Memory extraction {outcome.status.value}"
            + (f" [{outcome.tier.value}]" if outcome.tier else "")
            + f": {outcome.reasoning}"
        )
        return outcome

    async def list_memories(
        self,
        tier: MemoryTier,
        user_id: str | None = None,
        agent_id: str | None = None,
    ) -> list[MemoryRecord]:
        """All memories in one tier's scope, for management views."""
        return await self.store.get_all(build_scope_key(tier, user_id, agent_id))

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete one memory by id."""
        if not memory_id:
            raise ValueError("memory_id must not be empty")
        return await self.store.delete(memory_id)

    async def aclose(self) -> None:
        """Wait for in-flight extractions to finish."""
        if self._background.pending:
            logger.info(f"Waiting for {self._background.pending} memory extractions")
        await self._background.drain()
