"""Cross-tier retrieval - concurrent per-tier searches for prompt augmentation."""

import asyncio
from dataclasses import dataclass, field

from memoria.core.logging import get_logger
from memoria.memory.base import MemoryRecord, MemoryStore, MemoryTier
from memoria.memory.scope import MemoryScope, resolve_scope

logger = get_logger("memory.retrieval")


@dataclass
class RetrievalResult:
    """Per-tier memory texts in store relevance order. Tiers are never merged."""

    user_global: list[str] = field(default_factory=list)
    agent_global: list[str] = field(default_factory=list)
    interaction: list[str] = field(default_factory=list)
    raw: dict[MemoryTier, list[MemoryRecord]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.user_global or self.agent_global or self.interaction)

    @classmethod
    def from_records(cls, records: dict[MemoryTier, list[MemoryRecord]]) -> "RetrievalResult":
        def texts(tier: MemoryTier) -> list[str]:
            return [r.text for r in records.get(tier, [])]

        return cls(
            user_global=texts(MemoryTier.USER_GLOBAL),
            agent_global=texts(MemoryTier.AGENT_GLOBAL),
            interaction=texts(MemoryTier.INTERACTION),
            raw=records,
        )


def retrieval_scopes(user_id: str | None, agent_id: str | None) -> list[MemoryScope]:
    """Scopes searchable for the given identities; tiers lacking an id are skipped."""
    scopes = (resolve_scope(tier, user_id, agent_id) for tier in MemoryTier)
    return [scope for scope in scopes if scope is not None]


class MemoryRetriever:
    """Fans out one search per tier and joins the results."""

    def __init__(self, store: MemoryStore, limit_per_tier: int = 5):
        self.store = store
        self.limit_per_tier = limit_per_tier

    async def retrieve(
        self,
        query: str,
        user_id: str | None = None,
        agent_id: str | None = None,
        limit_per_tier: int | None = None,
    ) -> RetrievalResult:
        """Search every applicable tier concurrently.

        A failing tier comes back empty; the others are unaffected.
        """
        if not self.store.is_configured:
            return RetrievalResult()

        scopes = retrieval_scopes(user_id, agent_id)
        if not scopes:
            return RetrievalResult()

        limit = limit_per_tier if limit_per_tier is not None else self.limit_per_tier
        results = await asyncio.gather(
            *(self._search_tier(query, scope, limit) for scope in scopes)
        )

        records = {scope.tier: found for scope, found in zip(scopes, results)}
        logger.debug(
            "Retrieved memories: "
            + ", ".join(f"{tier.value}={len(found)}" for tier, found in records.items())
        )
        return RetrievalResult.from_records(records)

    async def _search_tier(self, query: str, scope: MemoryScope, limit: int) -> list[MemoryRecord]:
        try:
            return await self.store.search(query, scope.key, limit)
        except Exception as e:
            logger.warning(f"{scope.tier.value} retrieval failed: {e}")
            return []
