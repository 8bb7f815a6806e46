"""Memory extraction - decides after each turn whether to add, update, delete or skip.

Pipeline (linear, short-circuits as early as possible):
1. Evaluate: does the turn hold anything worth remembering?
2. Classify: which tier, which category, what normalized text?
3. Retrieve: up to N existing memories in that tier's scope
   (stops with skipped when the turn lacks an id the tier needs)
4. Decide: add/update/delete/skip against those candidates
   (skipped when there are no candidates, the answer is then always add)
5. Execute: apply at most one mutation to the store
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from memoria.core.logging import get_logger
from memoria.core.types import ConversationTurn
from memoria.llm.base import StructuredGenerator
from memoria.memory.base import MemoryCategory, MemoryRecord, MemoryStore, MemoryTier
from memoria.memory.prompting import (
    CLASSIFY_PROMPT,
    DECIDE_PROMPT,
    EVALUATE_PROMPT,
    format_candidates,
)
from memoria.memory.scope import MemoryScope, build_metadata, resolve_scope

logger = get_logger("memory.extraction")

NO_CANDIDATES_REASON = "No related memories found, adding new memory"


class EvaluationVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_memory_value: bool = Field(alias="hasMemoryValue")
    reasoning: str


class Classification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tier: MemoryTier
    category: MemoryCategory
    normalized_text: str = Field(alias="memoryText", min_length=1)


class DecisionAction(Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


class Decision(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: DecisionAction
    target_memory_id: str | None = Field(default=None, alias="targetMemoryId")
    reasoning: str


class OutcomeStatus(Enum):
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class PipelineOutcome:
    """Terminal result of one pipeline run."""

    status: OutcomeStatus
    reasoning: str
    tier: MemoryTier | None = None


class MemoryExtractionPipeline:
    """Turns one conversation turn into at most one memory mutation."""

    def __init__(
        self,
        generator: StructuredGenerator,
        store: MemoryStore,
        candidate_limit: int = 3,
    ):
        self.generator = generator
        self.store = store
        self.candidate_limit = candidate_limit

    async def run(self, turn: ConversationTurn) -> PipelineOutcome:
        """Run all stages. Never raises; failures become status=error."""
        if not self.generator.is_configured:
            logger.warning("Memory model API key not configured, skipping extraction")
            return PipelineOutcome(OutcomeStatus.SKIPPED, "Memory model API key not configured")

        if not self.store.is_configured:
            logger.debug("Memory store not configured, skipping extraction")
            return PipelineOutcome(OutcomeStatus.SKIPPED, "Memory store not configured")

        try:
            logger.info("Step 1: evaluating memory value")
            evaluation = await self._evaluate(turn)
            if not evaluation.has_memory_value:
                logger.info(f"No memory value: {evaluation.reasoning}")
                return PipelineOutcome(OutcomeStatus.SKIPPED, evaluation.reasoning)

            logger.info("Step 2: classifying memory")
            classification = await self._classify(turn)
            logger.info(
                f"Classified: tier={classification.tier.value}, "
                f"category={classification.category.value}"
            )

            scope = resolve_scope(classification.tier, turn.user_id, turn.agent_id)
            if scope is None:
                logger.info(f"No identity for {classification.tier.value} memory, skipping")
                return PipelineOutcome(
                    OutcomeStatus.SKIPPED,
                    f"Missing user or agent id for {classification.tier.value} memory",
                    classification.tier,
                )

            logger.info("Step 3: retrieving related memories")
            candidates = await self.store.search(
                classification.normalized_text, scope.key, self.candidate_limit
            )
            logger.info(f"Found {len(candidates)} related memories")

            if candidates:
                logger.info("Step 4: deciding against existing memories")
                decision = await self._decide(classification, candidates)
            else:
                decision = Decision(action=DecisionAction.ADD, reasoning=NO_CANDIDATES_REASON)

            logger.info(f"Step 5: executing {decision.action.value}")
            return await self._execute(decision, classification, scope, turn, candidates)

        except Exception as e:
            logger.error(f"Memory extraction failed: {e}")
            return PipelineOutcome(OutcomeStatus.ERROR, str(e) or repr(e))

    async def _evaluate(self, turn: ConversationTurn) -> EvaluationVerdict:
        prompt = EVALUATE_PROMPT.format(
            user_message=turn.user_message,
            assistant_message=turn.assistant_message,
        )
        return await self.generator.generate(prompt, EvaluationVerdict)

    async def _classify(self, turn: ConversationTurn) -> Classification:
        prompt = CLASSIFY_PROMPT.format(
            user_message=turn.user_message,
            assistant_message=turn.assistant_message,
        )
        return await self.generator.generate(prompt, Classification)

    async def _decide(
        self,
        classification: Classification,
        candidates: list[MemoryRecord],
    ) -> Decision:
        prompt = DECIDE_PROMPT.format(
            memory_text=classification.normalized_text,
            candidates=format_candidates([(c.id, c.text) for c in candidates]),
        )
        return await self.generator.generate(prompt, Decision)

    async def _execute(
        self,
        decision: Decision,
        classification: Classification,
        scope: MemoryScope,
        turn: ConversationTurn,
        candidates: list[MemoryRecord],
    ) -> PipelineOutcome:
        tier = classification.tier
        text = classification.normalized_text

        if decision.action == DecisionAction.ADD:
            metadata = {
                **build_metadata(tier, turn.user_id, turn.agent_id),
                "category": classification.category.value,
                "source": "workflow",
                "extracted_at": datetime.now(timezone.utc).isoformat(),
            }
            await self.store.add(text, scope.key, metadata)
            logger.info(f"Added memory: {text}")
            return PipelineOutcome(OutcomeStatus.ADDED, decision.reasoning, tier)

        if decision.action == DecisionAction.SKIP:
            logger.info(f"Skipped: {decision.reasoning}")
            return PipelineOutcome(OutcomeStatus.SKIPPED, decision.reasoning)

        # update / delete must point at one of the candidates shown to the model
        target = decision.target_memory_id
        if not target or target not in {c.id for c in candidates}:
            logger.warning(f"{decision.action.value} without a known target ({target!r}), skipping")
            return PipelineOutcome(
                OutcomeStatus.SKIPPED,
                f"{decision.action.value} target {target!r} not among related memories",
            )

        if decision.action == DecisionAction.UPDATE:
            if not await self.store.update(target, text):
                return PipelineOutcome(OutcomeStatus.ERROR, f"Failed to update memory {target}", tier)
            logger.info(f"Updated memory {target}: {text}")
            return PipelineOutcome(OutcomeStatus.UPDATED, decision.reasoning, tier)

        if not await self.store.delete(target):
            return PipelineOutcome(OutcomeStatus.ERROR, f"Failed to delete memory {target}", tier)
        logger.info(f"Deleted memory {target}")
        return PipelineOutcome(OutcomeStatus.DELETED, decision.reasoning, tier)
