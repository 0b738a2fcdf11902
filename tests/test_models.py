"""Tests for workflow data models."""

import pytest
from pydantic import ValidationError

from nostalgia_bot.models import (
    CRITIQUE_THRESHOLD,
    RELEVANCE_THRESHOLD,
    Conversation,
    CritiqueOutcome,
    PageContent,
    RelevanceJudgment,
    ResultPool,
    Role,
    SearchResult,
    Turn,
    tag_results,
)


def _results(count: int) -> list[SearchResult]:
    return [SearchResult(title=f"t{i}", link=f"https://example.com/{i}", snippet=f"s{i}") for i in range(count)]


class TestConversation:
    def test__extend__returns_new_conversation(self) -> None:
        base = Conversation.of(Turn.user("hello"))
        longer = base.extend(Turn.model("hi"), Turn.user("again"))

        assert len(base) == 1
        assert len(longer) == 3
        assert longer.turns[:1] == base.turns
        assert longer.last == Turn.user("again")

    def test__add__concatenates_histories(self) -> None:
        first = Conversation.of(Turn.user("a"))
        second = Conversation.of(Turn.model("b"))

        combined = first + second

        assert [turn.role for turn in combined.turns] == [Role.USER, Role.MODEL]
        assert len(first) == 1

    def test__conversation__is_frozen(self) -> None:
        conversation = Conversation.of(Turn.user("a"))
        with pytest.raises(ValidationError):
            conversation.turns = ()  # type: ignore[misc]

    def test__turn__requires_a_segment(self) -> None:
        with pytest.raises(ValidationError):
            Turn(role=Role.USER, parts=())

    def test__turn_text__joins_segments(self) -> None:
        assert Turn.user("a", "b").text == "a\nb"

    def test__empty_conversation__has_no_last_turn(self) -> None:
        assert Conversation().last is None


class TestResultPool:
    def test__tag_results__assigns_position_ids(self) -> None:
        pool = tag_results(_results(3))
        assert [entry.id for entry in pool.entries] == [0, 1, 2]
        assert pool.entries[2].link == "https://example.com/2"

    def test__verified__keeps_only_confident_judgments_in_pool(self) -> None:
        pool = tag_results(_results(5))
        judgments = [
            RelevanceJudgment(id=0, confidence_score=0.8),
            RelevanceJudgment(id=1, confidence_score=0.6),
            RelevanceJudgment(id=4, confidence_score=0.95),
        ]

        verified = pool.verified(judgments)

        assert [entry.id for entry in verified] == [0, 4]

    def test__verified__ignores_ids_outside_pool(self) -> None:
        pool = tag_results(_results(5)).without(tag_results(_results(2)).entries)
        judgments = [RelevanceJudgment(id=0, confidence_score=0.99), RelevanceJudgment(id=7, confidence_score=0.99)]

        assert pool.verified(judgments) == ()
        assert pool.ids == {2, 3, 4}

    def test__without__removes_entries_by_id(self) -> None:
        pool = tag_results(_results(4))
        remaining = pool.without(pool.entries[1:3])

        assert remaining.ids == {0, 3}
        assert len(pool) == 4

    def test__empty_pool__is_falsy(self) -> None:
        assert not ResultPool()
        assert tag_results(_results(1))


class TestThresholds:
    @pytest.mark.parametrize(
        "score,verified",
        [(RELEVANCE_THRESHOLD, True), (0.69999, False), (1.0, True), (0.0, False)],
    )
    def test__relevance_threshold__is_closed(self, score: float, verified: bool) -> None:
        assert RelevanceJudgment(id=0, confidence_score=score).is_verified is verified

    @pytest.mark.parametrize(
        "score,accepted",
        [(CRITIQUE_THRESHOLD, True), (0.89999, False), (0.95, True), (0.5, False)],
    )
    def test__critique_threshold__is_closed(self, score: float, accepted: bool) -> None:
        assert CritiqueOutcome(score=score, feedback="").accepted is accepted

    def test__relevance_judgment__parses_wire_alias(self) -> None:
        judgment = RelevanceJudgment.model_validate({"id": 3, "confidenceScore": 0.75})
        assert judgment.confidence_score == 0.75
        assert judgment.model_dump(by_alias=True) == {"id": 3, "confidenceScore": 0.75}

    def test__critique_score__must_be_in_unit_interval(self) -> None:
        with pytest.raises(ValidationError):
            CritiqueOutcome(score=1.5, feedback="too high")


def test__page_content__copies_tagged_result_fields() -> None:
    tagged = tag_results(_results(2)).entries[1]

    page = PageContent.from_tagged(tagged, "visible text")

    assert page.model_dump() == {
        "id": 1,
        "title": "t1",
        "link": "https://example.com/1",
        "snippet": "s1",
        "content": "visible text",
    }
