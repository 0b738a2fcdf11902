"""Self-correcting task executor.

Every critiqued task runs through ``SelfCorrectingExecutor``: requirements are
extracted once, then the model is asked for an answer, the answer is scored by
a critic, and a rejected answer is sent back together with the critic feedback.
The conversation keeps growing across attempts so earlier answers and their
feedback stay in context. When the attempt budget runs out the caller's default
is returned.
"""

from enum import Enum
from typing import Any, TypeVar

from nostalgia_bot.client import ToolContext, describe_shape, dump_structured
from nostalgia_bot.exceptions import ModelCallError
from nostalgia_bot.logging import get_logger
from nostalgia_bot.models import AttemptRecord, Conversation, CritiqueOutcome, ExecutionOutcome, Turn

log = get_logger("nostalgia_bot.executor")

T = TypeVar("T")

MAX_ATTEMPTS = 4

TASK_ANALYZER_PERSONA = """You are a very accurate AI task analyzer.
Your job is to extract a concise and complete list of requirements for the given user query.
Do not execute these requirements, they will be executed later by another agent.
Just list the requirements of this task."""

CRITIC_PERSONA = """You are a very accurate AI critic.
Your job is to assess if a given AI response is a correct and satisfactory answer for the given task.
Give the answer a score between 0-1 of how well it fulfills the given task.
Also include feedback of what is missing or needs to be changed or improved."""


class ExecutionState(str, Enum):
    START = "start"
    REQUIREMENTS_EXTRACTED = "requirements_extracted"
    GENERATED = "generated"
    CRITIQUED = "critiqued"
    ACCEPTED = "accepted"
    RETRY = "retry"
    EXHAUSTED = "exhausted"


class RequirementsExtractor:
    """Lists the requirements of a task; never critiqued itself."""

    description = "extract requirements of a task"

    async def __call__(self, ctx: ToolContext, conversation: Conversation) -> list[str]:
        request = conversation.extend(Turn.user("Extract the requirements of the above user query"))
        return await ctx.client.generate(request, list[str], system_instruction=TASK_ANALYZER_PERSONA)


class AnswerCritic:
    """Scores the last model turn of a conversation against a task description."""

    description = "Given a previous prompt and the AI answer, determine if the answer is good"

    async def __call__(self, ctx: ToolContext, conversation: Conversation, task_description: str) -> CritiqueOutcome:
        request = conversation.extend(
            Turn.user(
                "Does the AI answer satisfy the requirements of the given task?\n"
                f'Keep in mind that the task description is "{task_description}"'
            )
        )
        return await ctx.client.generate(request, CritiqueOutcome, system_instruction=CRITIC_PERSONA)


def feedback_turn(critique: CritiqueOutcome) -> Turn:
    return Turn.user(
        "The previous answer is not good enough.\n"
        f"It got a score of {critique.score}.\n"
        f"Give a new answer based on this feedback: {critique.feedback}"
    )


class SelfCorrectingExecutor:
    """Runs a task prompt through requirements, generation and critique with bounded retries."""

    def __init__(
        self,
        requirements: RequirementsExtractor | None = None,
        critic: AnswerCritic | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self.requirements = requirements or RequirementsExtractor()
        self.critic = critic or AnswerCritic()
        self.max_attempts = max_attempts

    async def execute(
        self,
        ctx: ToolContext,
        description: str,
        contents: Conversation,
        shape: Any,
        default: T,
        *,
        system_instruction: str | None = None,
    ) -> T:
        """Return an accepted answer for the task, or ``default`` when none was accepted."""
        outcome = await self.execute_traced(
            ctx, description, contents, shape, default, system_instruction=system_instruction
        )
        return outcome.value

    async def execute_traced(
        self,
        ctx: ToolContext,
        description: str,
        contents: Conversation,
        shape: Any,
        default: Any,
        *,
        system_instruction: str | None = None,
    ) -> ExecutionOutcome:
        """Same as ``execute`` but also returns every attempt and its conversation.

        Never raises for model failures: transport errors, invalid output and
        low critique scores each consume one attempt.
        """
        log.info("executor.started", task=description, state=ExecutionState.START.value)
        expected_shape = Turn.user(f"Expected schema: {describe_shape(shape)}")

        try:
            requirements = await self.requirements(ctx, contents.extend(expected_shape))
        except ModelCallError as e:
            log.warning("executor.requirements.failed", task=description, error=str(e))
            requirements = []
        log.info(
            "executor.requirements.extracted",
            task=description,
            count=len(requirements),
            state=ExecutionState.REQUIREMENTS_EXTRACTED.value,
        )

        working = (Conversation.of(Turn.user(description)) + contents).extend(
            Turn.model("Requirements:\n" + "\n".join(requirements)),
            expected_shape,
        )

        attempts: list[AttemptRecord] = []
        for attempt in range(1, self.max_attempts + 1):
            try:
                candidate = await ctx.client.generate(working, shape, system_instruction=system_instruction)
            except ModelCallError as e:
                log.warning("executor.attempt.failed", task=description, attempt=attempt, error=str(e))
                attempts.append(AttemptRecord(attempt=attempt, conversation=working, error=str(e)))
                continue
            log.debug("executor.attempt.generated", task=description, attempt=attempt, state=ExecutionState.GENERATED.value)

            answered = working.extend(Turn.model(dump_structured(candidate, shape)))
            try:
                critique = await self.critic(ctx, answered, description)
            except ModelCallError as e:
                log.warning("executor.critique.failed", task=description, attempt=attempt, error=str(e))
                attempts.append(AttemptRecord(attempt=attempt, conversation=working, candidate=candidate, error=str(e)))
                continue
            attempts.append(AttemptRecord(attempt=attempt, conversation=working, candidate=candidate, critique=critique))
            log.info(
                "executor.attempt.critiqued",
                task=description,
                attempt=attempt,
                score=critique.score,
                state=ExecutionState.CRITIQUED.value,
            )

            if critique.accepted:
                log.info("executor.accepted", task=description, attempt=attempt, state=ExecutionState.ACCEPTED.value)
                return ExecutionOutcome(value=candidate, accepted=True, requirements=requirements, attempts=attempts)

            log.info(
                "executor.attempt.rejected",
                task=description,
                attempt=attempt,
                feedback=critique.feedback,
                state=ExecutionState.RETRY.value,
            )
            working = answered.extend(feedback_turn(critique))

        log.warning("executor.exhausted", task=description, attempts=self.max_attempts, state=ExecutionState.EXHAUSTED.value)
        return ExecutionOutcome(value=default, accepted=False, requirements=requirements, attempts=attempts)
