"""
Scope resolution - maps a tier and identities to a store key and metadata.

Key shapes for plain identifiers:
- user_global:  "<user>"
- agent_global: "agent_<agent>"
- interaction:  "<user>_<agent>"

Identifier segments are escaped so no two tiers can share a key: "%" and
"_" are percent-encoded, and an interaction user segment spelled "agent"
is written as "%61gent" so it cannot mimic the agent_global prefix.
"""

from dataclasses import dataclass
from typing import Any, TypeAlias

from memoria.memory.base import MemoryTier

ANONYMOUS_USER = "anonymous"
DEFAULT_AGENT = "default"
AGENT_PREFIX = "agent"


def _escape(value: str) -> str:
    return value.replace("%", "%25").replace("_", "%5F")


@dataclass(frozen=True)
class UserGlobalScope:
    """Memories about one user, visible to every agent."""

    user_id: str

    @property
    def tier(self) -> MemoryTier:
        return MemoryTier.USER_GLOBAL

    @property
    def key(self) -> str:
        return _escape(self.user_id)


@dataclass(frozen=True)
class AgentGlobalScope:
    """Knowledge of one agent, visible to every user."""

    agent_id: str

    @property
    def tier(self) -> MemoryTier:
        return MemoryTier.AGENT_GLOBAL

    @property
    def key(self) -> str:
        return f"{AGENT_PREFIX}_{_escape(self.agent_id)}"


@dataclass(frozen=True)
class InteractionScope:
    """Context private to one user+agent pairing."""

    user_id: str
    agent_id: str

    @property
    def tier(self) -> MemoryTier:
        return MemoryTier.INTERACTION

    @property
    def key(self) -> str:
        user = _escape(self.user_id)
        if user == AGENT_PREFIX:
            user = "%61" + user[1:]
        return f"{user}_{_escape(self.agent_id)}"


MemoryScope: TypeAlias = UserGlobalScope | AgentGlobalScope | InteractionScope


def scope_for(
    tier: MemoryTier,
    user_id: str | None = None,
    agent_id: str | None = None,
) -> MemoryScope:
    """Build the typed scope for a tier, filling missing ids with sentinels."""
    user = user_id or ANONYMOUS_USER
    agent = agent_id or DEFAULT_AGENT

    if tier == MemoryTier.USER_GLOBAL:
        return UserGlobalScope(user)
    if tier == MemoryTier.AGENT_GLOBAL:
        return AgentGlobalScope(agent)
    if tier == MemoryTier.INTERACTION:
        return InteractionScope(user, agent)
    raise ValueError(f"Unknown memory tier: {tier!r}")


def resolve_scope(
    tier: MemoryTier,
    user_id: str | None = None,
    agent_id: str | None = None,
) -> MemoryScope | None:
    """Typed scope for a tier, or None when an id the tier needs is missing.

    Retrieval and extraction share this rule: a tier missing one of its
    ids is neither read nor written.
    """
    if tier == MemoryTier.USER_GLOBAL:
        return UserGlobalScope(user_id) if user_id else None
    if tier == MemoryTier.AGENT_GLOBAL:
        return AgentGlobalScope(agent_id) if agent_id else None
    if tier == MemoryTier.INTERACTION:
        return InteractionScope(user_id, agent_id) if user_id and agent_id else None
    raise ValueError(f"Unknown memory tier: {tier!r}")


def build_scope_key(
    tier: MemoryTier,
    user_id: str | None = None,
    agent_id: str | None = None,
) -> str:
    """Opaque store identity for a tier. Pure and deterministic."""
    return scope_for(tier, user_id, agent_id).key


def build_metadata(
    tier: MemoryTier,
    user_id: str | None = None,
    agent_id: str | None = None,
) -> dict[str, Any]:
    """Visibility metadata for a tier.

    user_global never carries the agent id, agent_global never carries
    the user id. Ids that were not supplied are left out.
    """
    metadata: dict[str, Any] = {"tier": tier.value}
    if tier != MemoryTier.AGENT_GLOBAL and user_id:
        metadata["user_id"] = user_id
    if tier != MemoryTier.USER_GLOBAL and agent_id:
        metadata["agent_id"] = agent_id
    return metadata
