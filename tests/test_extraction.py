"""Tests for the memory extraction pipeline."""

from unittest.mock import AsyncMock

import pytest

from memoria.core.types import ConversationTurn
from memoria.llm.base import GenerationError
from memoria.memory.base import MemoryCategory, MemoryRecord, MemoryTier
from memoria.memory.extraction import (
    NO_CANDIDATES_REASON,
    Classification,
    Decision,
    DecisionAction,
    EvaluationVerdict,
    MemoryExtractionPipeline,
    OutcomeStatus,
)

TURN = ConversationTurn(
    user_message="我在用Next.js做一个项目",
    assistant_message="好的，需要我帮你搭建App Router吗？",
    user_id="u1",
    agent_id="dev",
)

MEMORABLE = EvaluationVerdict(has_memory_value=True, reasoning="personal fact")
INTERACTION_FACT = Classification(
    tier=MemoryTier.INTERACTION,
    category=MemoryCategory.FACT,
    normalized_text="用户正在开发一个Next.js项目",
)
CANDIDATES = [
    MemoryRecord(id="m1", text="用户正在开发一个React项目", tier=MemoryTier.INTERACTION),
    MemoryRecord(id="m2", text="用户喜欢TypeScript", tier=MemoryTier.INTERACTION),
]


def make_generator(responses: dict) -> AsyncMock:
    """Generator answering by schema; exceptions are raised."""
    generator = AsyncMock()
    generator.is_configured = True

    async def generate(prompt, schema):
        response = responses[schema]
        if isinstance(response, Exception):
            raise response
        return response

    generator.generate.side_effect = generate
    return generator


def requested_schemas(generator: AsyncMock) -> list:
    return [call.args[1] for call in generator.generate.await_args_list]


@pytest.fixture
def store():
    store = AsyncMock()
    store.is_configured = True
    store.search.return_value = []
    store.add.return_value = "new-id"
    store.update.return_value = True
    store.delete.return_value = True
    return store


@pytest.mark.asyncio
async def test_missing_credentials_skip_without_calls(store):
    """No generation key short-circuits before any call."""
    generator = make_generator({})
    generator.is_configured = False

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.SKIPPED
    generator.generate.assert_not_awaited()
    store.search.assert_not_awaited()


@pytest.mark.asyncio
async def test_unconfigured_store_skips(store):
    """Disabled store short-circuits before any generation call."""
    store.is_configured = False
    generator = make_generator({})

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.SKIPPED
    generator.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_memory_value_stops_after_evaluation(store):
    """hasMemoryValue=false ends the pipeline after one call."""
    generator = make_generator(
        {EvaluationVerdict: EvaluationVerdict(has_memory_value=False, reasoning="just a greeting")}
    )

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.SKIPPED
    assert outcome.reasoning == "just a greeting"
    assert outcome.tier is None
    assert requested_schemas(generator) == [EvaluationVerdict]
    store.search.assert_not_awaited()
    store.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_candidates_adds_without_decision(store):
    """Empty retrieval skips the decision call and adds."""
    generator = make_generator({EvaluationVerdict: MEMORABLE, Classification: INTERACTION_FACT})

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.ADDED
    assert outcome.tier == MemoryTier.INTERACTION
    assert outcome.reasoning == NO_CANDIDATES_REASON
    assert Decision not in requested_schemas(generator)

    store.search.assert_awaited_once_with("用户正在开发一个Next.js项目", "u1_dev", 3)
    text, scope_key, metadata = store.add.await_args.args
    assert text == "用户正在开发一个Next.js项目"
    assert scope_key == "u1_dev"
    assert metadata["tier"] == "interaction"
    assert metadata["user_id"] == "u1"
    assert metadata["agent_id"] == "dev"
    assert metadata["category"] == "fact"
    assert metadata["source"] == "workflow"
    assert "extracted_at" in metadata


@pytest.mark.asyncio
async def test_user_global_add_has_no_agent_identity(store):
    """user_global writes land under the user key without agent id."""
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: Classification(
            tier=MemoryTier.USER_GLOBAL,
            category=MemoryCategory.PREFERENCE,
            normalized_text="用户喜欢简洁的回答",
        ),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.ADDED
    assert outcome.tier == MemoryTier.USER_GLOBAL
    _, scope_key, metadata = store.add.await_args.args
    assert scope_key == "u1"
    assert "agent_id" not in metadata


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("tier", "user_id", "agent_id"),
    [
        (MemoryTier.USER_GLOBAL, None, "dev"),
        (MemoryTier.INTERACTION, None, "dev"),
        (MemoryTier.INTERACTION, "u1", None),
        (MemoryTier.AGENT_GLOBAL, "u1", None),
    ],
)
async def test_missing_identity_skips_write(store, tier, user_id, agent_id):
    """A tier whose ids are missing is never written under a sentinel key."""
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: Classification(
            tier=tier,
            category=MemoryCategory.PREFERENCE,
            normalized_text="用户喜欢简洁的回答",
        ),
    })
    turn = ConversationTurn(
        user_message=TURN.user_message,
        assistant_message=TURN.assistant_message,
        user_id=user_id,
        agent_id=agent_id,
    )

    outcome = await MemoryExtractionPipeline(generator, store).run(turn)

    assert outcome.status == OutcomeStatus.SKIPPED
    assert outcome.tier == tier
    assert tier.value in outcome.reasoning
    store.search.assert_not_awaited()
    store.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_agent_global_written_without_user(store):
    """agent_global needs only the agent id."""
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: Classification(
            tier=MemoryTier.AGENT_GLOBAL,
            category=MemoryCategory.KNOWLEDGE,
            normalized_text="App Router是Next.js 13引入的路由方式",
        ),
    })
    turn = ConversationTurn(
        user_message=TURN.user_message,
        assistant_message=TURN.assistant_message,
        agent_id="dev",
    )

    outcome = await MemoryExtractionPipeline(generator, store).run(turn)

    assert outcome.status == OutcomeStatus.ADDED
    _, scope_key, metadata = store.add.await_args.args
    assert scope_key == "agent_dev"
    assert "user_id" not in metadata


@pytest.mark.asyncio
async def test_candidate_limit_is_configurable(store):
    """Retrieve stage asks for candidate_limit memories."""
    generator = make_generator({EvaluationVerdict: MEMORABLE, Classification: INTERACTION_FACT})

    await MemoryExtractionPipeline(generator, store, candidate_limit=5).run(TURN)

    assert store.search.await_args.args[2] == 5


@pytest.mark.asyncio
async def test_decision_add_with_candidates(store):
    """Non-conflicting memory is added after a decision."""
    store.search.return_value = CANDIDATES
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.ADD, reasoning="different project"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.ADDED
    assert outcome.reasoning == "different project"
    assert requested_schemas(generator) == [EvaluationVerdict, Classification, Decision]
    decide_prompt = generator.generate.await_args.args[0]
    assert "[m1] 用户正在开发一个React项目" in decide_prompt


@pytest.mark.asyncio
async def test_decision_skip_mutates_nothing(store):
    """Redundant memory is skipped."""
    store.search.return_value = CANDIDATES
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.SKIP, reasoning="already known"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.SKIPPED
    assert outcome.reasoning == "already known"
    store.add.assert_not_awaited()
    store.update.assert_not_awaited()
    store.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_decision_update_rewrites_target(store):
    """update replaces the target memory text."""
    store.search.return_value = CANDIDATES
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.UPDATE, target_memory_id="m1", reasoning="switched framework"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.UPDATED
    assert outcome.tier == MemoryTier.INTERACTION
    store.update.assert_awaited_once_with("m1", "用户正在开发一个Next.js项目")
    store.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_decision_delete_removes_target(store):
    """delete removes the invalidated memory."""
    store.search.return_value = CANDIDATES
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.DELETE, target_memory_id="m2", reasoning="obsolete"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.DELETED
    store.delete.assert_awaited_once_with("m2")


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [None, "unknown-id"])
async def test_update_without_known_target_is_skipped(store, target):
    """update must point at one of the retrieved candidates."""
    store.search.return_value = CANDIDATES
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.UPDATE, target_memory_id=target, reasoning="r"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.SKIPPED
    store.update.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_update_is_error(store):
    """Adapter returning False surfaces as error."""
    store.search.return_value = CANDIDATES
    store.update.return_value = False
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.UPDATE, target_memory_id="m1", reasoning="r"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.ERROR
    assert "m1" in outcome.reasoning


@pytest.mark.asyncio
async def test_failed_delete_is_error(store):
    store.search.return_value = CANDIDATES
    store.delete.return_value = False
    generator = make_generator({
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.DELETE, target_memory_id="m1", reasoning="r"),
    })

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize("failing_stage", ["evaluate", "classify", "retrieve", "decide", "execute"])
async def test_any_stage_failure_becomes_error(store, failing_stage):
    """Exceptions at every stage are converted into status=error."""
    responses = {
        EvaluationVerdict: MEMORABLE,
        Classification: INTERACTION_FACT,
        Decision: Decision(action=DecisionAction.ADD, reasoning="new"),
    }
    store.search.return_value = CANDIDATES

    if failing_stage == "evaluate":
        responses[EvaluationVerdict] = GenerationError("invalid EvaluationVerdict output")
    elif failing_stage == "classify":
        responses[Classification] = GenerationError("model call failed")
    elif failing_stage == "retrieve":
        store.search.side_effect = ConnectionError("store unreachable")
    elif failing_stage == "decide":
        responses[Decision] = TimeoutError("read timeout")
    else:
        store.add.side_effect = RuntimeError("503 Service Unavailable")

    outcome = await MemoryExtractionPipeline(make_generator(responses), store).run(TURN)

    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.reasoning


@pytest.mark.asyncio
async def test_error_without_message_still_has_reasoning(store):
    """Exceptions with an empty message still yield a reason."""
    generator = make_generator({EvaluationVerdict: RuntimeError()})

    outcome = await MemoryExtractionPipeline(generator, store).run(TURN)

    assert outcome.status == OutcomeStatus.ERROR
    assert "RuntimeError" in outcome.reasoning


def test_schemas_accept_model_field_names():
    """Schemas validate the camelCase JSON the model is asked for."""
    verdict = EvaluationVerdict.model_validate_json('{"hasMemoryValue": true, "reasoning": "fact"}')
    assert verdict.has_memory_value

    classification = Classification.model_validate_json(
        '{"tier": "agent_global", "category": "knowledge", "memoryText": "uv replaces pip-tools"}'
    )
    assert classification.tier == MemoryTier.AGENT_GLOBAL
    assert classification.normalized_text == "uv replaces pip-tools"

    decision = Decision.model_validate_json('{"action": "delete", "targetMemoryId": "m1", "reasoning": "r"}')
    assert decision.action == DecisionAction.DELETE
    assert decision.target_memory_id == "m1"
