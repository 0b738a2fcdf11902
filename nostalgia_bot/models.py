"""Pydantic models for the search-augmented nostalgia workflow."""

from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CRITIQUE_THRESHOLD = 0.9
RELEVANCE_THRESHOLD = 0.7


class Role(str, Enum):
    """Speaker of a conversation turn."""

    USER = "user"
    MODEL = "model"


class Turn(BaseModel):
    """A single role-tagged turn with one or more text segments."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Who produced this turn")
    parts: tuple[str, ...] = Field(min_length=1, description="Text segments of the turn")

    @classmethod
    def user(cls, *text: str) -> "Turn":
        return cls(role=Role.USER, parts=text)

    @classmethod
    def model(cls, *text: str) -> "Turn":
        return cls(role=Role.MODEL, parts=text)

    @property
    def text(self) -> str:
        return "\n".join(self.parts)


class Conversation(BaseModel):
    """Ordered, append-only history of turns exchanged with a model.

    Conversations are never mutated: ``extend`` and ``+`` build a new, longer
    history so earlier ones stay available for logging and tests.
    """

    model_config = ConfigDict(frozen=True)

    turns: tuple[Turn, ...] = ()

    @classmethod
    def of(cls, *turns: Turn) -> "Conversation":
        return cls(turns=turns)

    def extend(self, *turns: Turn) -> "Conversation":
        return Conversation(turns=self.turns + turns)

    def __add__(self, other: "Conversation") -> "Conversation":
        return Conversation(turns=self.turns + other.turns)

    def __len__(self) -> int:
        return len(self.turns)

    @property
    def last(self) -> Turn | None:
        return self.turns[-1] if self.turns else None


class PromptMode(str, Enum):
    """How strictly a domain answer must stick to the supplied search results."""

    STRICT = "strict"
    RELAXED = "relaxed"


class PromptItem(BaseModel):
    """One configured goal run against every selected journal step."""

    mode: PromptMode = Field(description="Grounding mode for the answer")
    prompt: str = Field(min_length=1, description="Natural-language goal")


class SearchResult(BaseModel):
    """A single ranked hit returned by the search provider."""

    title: str = Field(default="", examples=["Annual quilt festival returns to Hallstatt"])
    link: str = Field(examples=["https://example.com/news/quilt-festival"])
    snippet: str = Field(default="", examples=["The local elderly club is hosting..."])


class TaggedResult(BaseModel):
    """A search result paired with its position id inside one result batch."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=0)
    result: SearchResult

    @property
    def link(self) -> str:
        return self.result.link

    def to_prompt(self) -> dict[str, Any]:
        return {"id": self.id, **self.result.model_dump()}


class RelevanceJudgment(BaseModel):
    """Model-assigned confidence that a pooled result holds relevant information."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(description="Id of the judged result within the current pool")
    confidence_score: float = Field(
        alias="confidenceScore",
        ge=0.0,
        le=1.0,
        description="Confidence from 0.0 to 1.0 that the result is relevant",
    )

    @property
    def is_verified(self) -> bool:
        return self.confidence_score >= RELEVANCE_THRESHOLD


class ResultPool(BaseModel):
    """Immutable batch of tagged results awaiting relevance selection."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[TaggedResult, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    @property
    def ids(self) -> set[int]:
        return {entry.id for entry in self.entries}

    def verified(self, judgments: Iterable[RelevanceJudgment]) -> tuple[TaggedResult, ...]:
        """Pool entries whose id was judged relevant, in pool order."""
        selected = {j.id for j in judgments if j.is_verified}
        return tuple(entry for entry in self.entries if entry.id in selected)

    def without(self, removed: Iterable[TaggedResult]) -> "ResultPool":
        removed_ids = {entry.id for entry in removed}
        return ResultPool(entries=tuple(entry for entry in self.entries if entry.id not in removed_ids))


def tag_results(results: Iterable[SearchResult]) -> ResultPool:
    """Tag each result with its position in the batch."""
    return ResultPool(entries=tuple(TaggedResult(id=i, result=r) for i, r in enumerate(results)))


class PageContent(BaseModel):
    """A verified result together with the visible text of its page."""

    id: int
    title: str
    link: str
    snippet: str
    content: str

    @classmethod
    def from_tagged(cls, tagged: TaggedResult, content: str) -> "PageContent":
        return cls(id=tagged.id, content=content, **tagged.result.model_dump())


class CritiqueOutcome(BaseModel):
    """Critic score and feedback for a candidate answer."""

    score: float = Field(ge=0.0, le=1.0, description="How well the answer fulfils the task (0.0-1.0)")
    feedback: str = Field(description="What is missing or needs to change")

    @property
    def accepted(self) -> bool:
        return self.score >= CRITIQUE_THRESHOLD


class AttemptRecord(BaseModel):
    """What happened during one executor attempt."""

    attempt: int = Field(ge=1)
    conversation: Conversation
    candidate: Any = None
    critique: CritiqueOutcome | None = None
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.critique is not None and self.critique.accepted


class ExecutionOutcome(BaseModel):
    """Final value of an executor run plus its attempt history."""

    value: Any
    accepted: bool
    requirements: list[str] = Field(default_factory=list)
    attempts: list[AttemptRecord] = Field(default_factory=list)


# --- Service request/response bodies ---


class WorkflowRequest(BaseModel):
    """Incoming single-goal workflow request."""

    goal: str = Field(min_length=1, max_length=4000, description="Goal prompt for the answer")
    context_message: str = Field(min_length=1, max_length=8000, description="Today's journal message")
    background: str = Field(default="", max_length=20000, description="Nearby journal entries")
    mode: PromptMode = Field(default=PromptMode.RELAXED)


class WorkflowResponse(BaseModel):
    """Workflow output; an empty string means no answer was found."""

    output: str = Field(description="Translated answer, or empty string", examples=["🌟 _Did you know?_ ..."])


class DigestRequest(BaseModel):
    """Request to run every configured prompt for one journal step."""

    step_message: str = Field(min_length=1, max_length=8000)
    background: str = Field(default="", max_length=20000)


class DigestResponse(BaseModel):
    """Non-empty outputs of every configured prompt, in catalog order."""

    messages: list[str] = Field(default_factory=list)
