"""Search-augmented answer workflow.

Three nested bounded loops: query rounds generate fresh search queries,
selection rounds pick relevant results out of the current batch, and the
domain answer task runs once per verified batch. Every level degrades to
trying the next round; the run as a whole returns an empty string when no
answer was produced.
"""

import asyncio
from collections.abc import Sequence
from time import perf_counter
from uuid import uuid4

from nostalgia_bot.client import StructuredModelClient, ToolContext, get_model_client
from nostalgia_bot.config import BotConfig
from nostalgia_bot.exceptions import NostalgiaBotError
from nostalgia_bot.logging import bound_context_vars, get_logger
from nostalgia_bot.models import PageContent, PromptItem, PromptMode, ResultPool, TaggedResult, tag_results
from nostalgia_bot.search import GoogleSearchEngine, SearchProvider
from nostalgia_bot.tasks import TaskLibrary, build_task_library

log = get_logger("nostalgia_bot.workflow")

MAX_QUERY_ROUNDS = 3
MAX_SELECTION_ROUNDS = 3


class SearchAugmentedOrchestrator:
    """Turns a goal and a journal message into a translated, search-grounded answer."""

    def __init__(
        self,
        ctx: ToolContext,
        search: SearchProvider,
        tasks: TaskLibrary | None = None,
        *,
        language: str = "English",
        max_query_rounds: int = MAX_QUERY_ROUNDS,
        max_selection_rounds: int = MAX_SELECTION_ROUNDS,
    ) -> None:
        self.ctx = ctx
        self.search = search
        self.tasks = tasks or build_task_library()
        self.language = language
        self.max_query_rounds = max_query_rounds
        self.max_selection_rounds = max_selection_rounds

    async def run(
        self,
        goal: str,
        context_message: str,
        background: str = "",
        mode: PromptMode = PromptMode.RELAXED,
    ) -> str:
        """Run one orchestration.

        Args:
            goal: What the answer should achieve.
            context_message: Today's journal message; also the source of the topics.
            background: Nearby journal entries.
            mode: Whether the answer must be grounded only in the search results.

        Returns:
            The translated answer, or an empty string when nothing was accepted.
        """
        with bound_context_vars(run_id=str(uuid4())[:8], mode=mode.value):
            started = perf_counter()
            log.info("workflow.started", goal=goal)
            output = await self._run(goal, context_message, background, mode)
            total_ms = int((perf_counter() - started) * 1000)
            log.info("workflow.completed", total_ms=total_ms, answered=bool(output))
            return output

    async def _run(self, goal: str, context_message: str, background: str, mode: PromptMode) -> str:
        topics = await self.tasks.identify_topics(self.ctx, context_message)
        log.info("workflow.topics.identified", topics=topics)

        previous_queries: list[str] = []
        for query_round in range(1, self.max_query_rounds + 1):
            queries = await self.tasks.generate_search_query(self.ctx, goal, context_message, topics, previous_queries)
            previous_queries = [*previous_queries, *queries]
            log.info("workflow.queries.generated", round=query_round, queries=queries)

            try:
                results = await self.search.fetch_many(queries) if queries else []
            except NostalgiaBotError as e:
                log.warning("workflow.search.failed", round=query_round, error=str(e))
                continue

            answer = await self._answer_from_pool(goal, context_message, background, mode, tag_results(results))
            if answer is not None:
                translation = await self.tasks.translate(self.ctx, answer, self.language)
                if not translation:
                    log.warning("workflow.translation.failed", language=self.language)
                return translation
            log.info("workflow.results.exhausted", round=query_round, result_count=len(results))

        log.warning("workflow.gave_up", rounds=self.max_query_rounds)
        return ""

    async def _answer_from_pool(
        self,
        goal: str,
        context_message: str,
        background: str,
        mode: PromptMode,
        pool: ResultPool,
    ) -> str | None:
        for selection_round in range(1, self.max_selection_rounds + 1):
            if not pool:
                break
            judgments = await self.tasks.select_relevant_results(self.ctx, goal, context_message, pool)
            verified = pool.verified(judgments)
            pool = pool.without(verified)

            if not verified:
                log.info("workflow.selection.empty", round=selection_round, remaining=len(pool))
                continue
            log.info("workflow.selection.verified", round=selection_round, links=[entry.link for entry in verified])

            pages = await self._fetch_pages(verified)
            answer = await self.tasks.travel_agent(self.ctx, goal, context_message, background, mode, pages)
            if answer is not None and answer.strip():
                return answer
            log.info("workflow.answer.insufficient", round=selection_round, remaining=len(pool))
        return None

    async def _fetch_pages(self, verified: Sequence[TaggedResult]) -> list[PageContent]:
        contents = await asyncio.gather(*(self.search.fetch_rendered_content(entry.link) for entry in verified))
        return [PageContent.from_tagged(entry, content) for entry, content in zip(verified, contents)]


async def run_all_prompts(
    orchestrator: SearchAugmentedOrchestrator,
    prompts: Sequence[PromptItem],
    step_message: str,
    background: str = "",
) -> list[str]:
    """Run every prompt as its own orchestration, concurrently.

    Returns the non-empty outputs in prompt order.
    """
    outputs: list[str] = [""] * len(prompts)

    async def _run_one(index: int, item: PromptItem) -> None:
        outputs[index] = await orchestrator.run(item.prompt, step_message, background, item.mode)

    async with asyncio.TaskGroup() as tg:
        for index, item in enumerate(prompts):
            tg.create_task(_run_one(index, item))

    return [output for output in outputs if output]


def create_orchestrator(
    config: BotConfig,
    *,
    client: StructuredModelClient | None = None,
    search: SearchProvider | None = None,
    tasks: TaskLibrary | None = None,
) -> SearchAugmentedOrchestrator:
    """Build an orchestrator from configuration, with optional overrides (for testing)."""
    _client = client or get_model_client(config.gemini.model)
    _search = search or GoogleSearchEngine(
        api_key=config.google_search.api_key,
        engine_id=config.google_search.custom_search_engine_id,
    )
    return SearchAugmentedOrchestrator(
        ToolContext(client=_client),
        _search,
        tasks,
        language=config.bot.language,
    )
