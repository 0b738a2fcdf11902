"""Tests for the workflow task catalog."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from nostalgia_bot.client import ToolContext, create_model_client
from nostalgia_bot.executor import MAX_ATTEMPTS, SelfCorrectingExecutor
from nostalgia_bot.models import PageContent, PromptMode, RelevanceJudgment, SearchResult, tag_results
from nostalgia_bot.prompts import TRAVEL_COMPANION_PERSONA
from nostalgia_bot.tasks import (
    MAX_RELEVANT_RESULTS,
    MODE_INSTRUCTIONS,
    GenerateSearchQuery,
    IdentifyTopics,
    SelectRelevantResults,
    Translate,
    TravelAgent,
    build_task_library,
)


@pytest.fixture
def executor() -> MagicMock:
    mock = MagicMock(spec=SelfCorrectingExecutor)
    mock.execute = AsyncMock()
    return mock


@pytest.fixture
def ctx() -> ToolContext:
    return ToolContext(client=MagicMock())


def _prompt(executor: MagicMock) -> str:
    contents = executor.execute.await_args.args[2]
    return contents.turns[0].text


@pytest.mark.asyncio
async def test__identify_topics__defaults_to_empty_list(executor: MagicMock, ctx: ToolContext) -> None:
    executor.execute.return_value = ["glaciers"]

    result = await IdentifyTopics(executor)(ctx, "We walked on the Perito Moreno glacier")

    assert result == ["glaciers"]
    args = executor.execute.await_args.args
    assert args[3] == list[str]
    assert args[4] == []
    assert "Perito Moreno" in _prompt(executor)


@pytest.mark.asyncio
async def test__translate__names_language_and_defaults_to_empty(executor: MagicMock, ctx: ToolContext) -> None:
    executor.execute.return_value = "Hallo"

    assert await Translate(executor)(ctx, "Hello", "German") == "Hallo"
    assert "to German" in _prompt(executor)
    assert executor.execute.await_args.args[4] == ""


@pytest.mark.asyncio
async def test__generate_search_query__lists_previous_queries(executor: MagicMock, ctx: ToolContext) -> None:
    executor.execute.return_value = ["el calafate festival"]

    await GenerateSearchQuery(executor)(
        ctx, "Find local news", "Day 3 in El Calafate", ["glaciers", "patagonia"], ['"calafate news"']
    )

    prompt = _prompt(executor)
    assert "PREVIOUSLY TRIED QUERIES" in prompt
    assert '\\"calafate news\\"' in prompt
    assert "glaciers\npatagonia" in prompt
    assert "do not perform the instructions of the goal" in prompt


@pytest.mark.asyncio
async def test__select_relevant_results__keeps_verified_judgments(executor: MagicMock, ctx: ToolContext) -> None:
    executor.execute.return_value = [
        RelevanceJudgment(id=0, confidence_score=0.8),
        RelevanceJudgment(id=1, confidence_score=0.69999),
        RelevanceJudgment(id=2, confidence_score=0.7),
    ]
    pool = tag_results([SearchResult(title=f"t{i}", link=f"https://e.com/{i}", snippet="") for i in range(3)])

    judgments = await SelectRelevantResults(executor)(ctx, "goal", "context", pool)

    assert [judgment.id for judgment in judgments] == [0, 2]
    assert '"link": "https://e.com/2"' in _prompt(executor)


@pytest.mark.asyncio
async def test__select_relevant_results__caps_judgments(executor: MagicMock, ctx: ToolContext) -> None:
    executor.execute.return_value = [RelevanceJudgment(id=i, confidence_score=0.99) for i in range(8)]
    pool = tag_results([SearchResult(title="t", link=f"https://e.com/{i}", snippet="") for i in range(8)])

    judgments = await SelectRelevantResults(executor)(ctx, "goal", "context", pool)

    assert len(judgments) == MAX_RELEVANT_RESULTS


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", list(PromptMode))
async def test__travel_agent__uses_mode_instructions_and_persona(
    executor: MagicMock, ctx: ToolContext, mode: PromptMode
) -> None:
    executor.execute.return_value = None
    page = PageContent(id=0, title="t", link="https://e.com", snippet="s", content="festival today")

    result = await TravelAgent(executor)(ctx, "goal", "Day 3", "Step 1: Arrival", mode, [page])

    assert result is None
    prompt = _prompt(executor)
    assert MODE_INSTRUCTIONS[mode] in prompt
    assert "festival today" in prompt
    assert "just output null" in prompt
    call = executor.execute.await_args
    assert call.args[3] == str | None
    assert call.args[4] is None
    assert call.kwargs["system_instruction"] == TRAVEL_COMPANION_PERSONA


def test__build_task_library__shares_one_executor(executor: MagicMock) -> None:
    library = build_task_library(executor)

    tasks = [
        library.identify_topics,
        library.translate,
        library.generate_search_query,
        library.select_relevant_results,
        library.travel_agent,
    ]
    assert all(task.executor is executor for task in tasks)


def test__build_task_library__creates_default_executor() -> None:
    library = build_task_library()

    assert isinstance(library.translate.executor, SelfCorrectingExecutor)
    assert library.translate.executor is library.travel_agent.executor


@pytest.mark.asyncio
async def test__select_relevant_results__six_judgments_fail_shape_and_exhaust_attempts() -> None:
    judgment_requests: list[dict] = []

    def _reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        schema = info.model_request_parameters.output_object.json_schema
        if schema.get("items") == {"type": "string"}:
            return ModelResponse(parts=[TextPart(content='["pick relevant results"]')])
        judgment_requests.append(schema)
        judgments = [{"id": i, "confidenceScore": 0.95} for i in range(6)]
        return ModelResponse(parts=[TextPart(content=json.dumps(judgments))])

    ctx = ToolContext(client=create_model_client(FunctionModel(_reply)))
    pool = tag_results([SearchResult(title=f"t{i}", link=f"https://e.com/{i}", snippet="") for i in range(6)])

    selected = await SelectRelevantResults(SelfCorrectingExecutor())(ctx, "goal", "Day 3", pool)

    assert selected == []
    assert len(judgment_requests) == MAX_ATTEMPTS
    assert judgment_requests[0]["maxItems"] == MAX_RELEVANT_RESULTS
