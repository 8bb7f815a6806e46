"""Prompt building - memory context injection and extraction prompts."""

from memoria.memory.retrieval import RetrievalResult

EVALUATE_PROMPT = """Decide whether this conversation contains information worth remembering.

User message:
{user_message}

Assistant reply:
{assistant_message}

It is worth remembering if ANY of these hold:
1. User preference: "I like", "I prefer", "I usually"...
2. Personal fact: "I am", "I work at", "my project"...
3. Explicit decision: "I decided", "I chose"...
4. New knowledge: a concept or solution worth keeping

Not worth remembering:
- Greetings, thanks, acknowledgements
- Common knowledge
- Vague or ambiguous statements

Set hasMemoryValue and explain your reasoning."""

CLASSIFY_PROMPT = """Classify the memory contained in this conversation.

User message:
{user_message}

Assistant reply:
{assistant_message}

1. tier:
   - user_global: durable user preference or personal fact, valid for every agent
     e.g. "I like concise answers", "I am a programmer"
   - agent_global: knowledge the assistant produced or learned, valid for all of its users
     e.g. the assistant explained a concept or gave a reusable solution
   - interaction: context specific to this user and this assistant
     e.g. the user is working on a particular project or problem

2. category: preference | fact | decision | knowledge

3. memoryText: one concise, self-contained sentence stating the memory,
   written in the language of the conversation."""

DECIDE_PROMPT = """Compare the new memory with existing memories and decide how to handle it.

New memory:
{memory_text}

Existing memories:
{candidates}

Rules:
1. add: the new memory does not conflict with any existing one
2. update: the new memory supersedes or extends an existing one
3. delete: the new memory makes an existing one obsolete or wrong
4. skip: the new memory is redundant or trivial

For update or delete, set targetMemoryId to the id in brackets."""

MEMORY_CONTEXT_TEMPLATE = """{base_prompt}

---

## Memory Context

Keep the following in mind when answering:

{sections}

---
"""

# (tier attribute, title, description) in rendering order
MEMORY_SECTIONS = (
    (
        "user_global",
        "User Preferences",
        "Preferences and habits the user has expressed across all conversations.",
    ),
    (
        "agent_global",
        "Knowledge Base",
        "General knowledge you have accumulated as this assistant.",
    ),
    (
        "interaction",
        "Prior Conversation Points",
        "Things worth remembering from your earlier conversations with this user.",
    ),
)

def format_memory_section(title: str, memories: list[str], description: str) -> str:
    """Render one titled bullet list."""
    items = "\n".join(f"- {m}" for m in memories)
    return f"### {title}\n{description}\n\n{items}"


def build_system_prompt_with_memory(base_prompt: str, retrieval: RetrievalResult) -> str:
    """Append retrieved memories to a system prompt.

    Returns base_prompt untouched when every tier is empty. Otherwise one
    section per non-empty tier, always user_global, agent_global,
    interaction.
    """
    if retrieval.is_empty:
        return base_prompt

    sections = [
        format_memory_section(title, getattr(retrieval, attr), description)
        for attr, title, description in MEMORY_SECTIONS
        if getattr(retrieval, attr)
    ]

    return MEMORY_CONTEXT_TEMPLATE.format(
        base_prompt=base_prompt,
        sections="\n\n".join(sections),
    )


def format_candidates(candidates: list[tuple[str, str]]) -> str:
    """Numbered "[id] text" lines for the decision prompt."""
    return "\n".join(f"{i}. [{memory_id}] {text}" for i, (memory_id, text) in enumerate(candidates, 1))
