"""
Shared type definitions.

Data handed over by the conversation layer.
"""

from dataclasses import dataclass


@dataclass
class ConversationTurn:
    """One completed user/assistant exchange."""

    user_message: str
    assistant_message: str
    user_id: str | None = None
    agent_id: str | None = None
