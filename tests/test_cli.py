"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pytest import CaptureFixture

from nostalgia_bot.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_INVALID_TRIP,
    EXIT_NO_ANSWER,
    build_parser,
    main,
    read_text_argument,
)
from nostalgia_bot.models import PromptMode
from nostalgia_bot.workflow import SearchAugmentedOrchestrator


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "bot-config.json"
    path.write_text(
        json.dumps(
            {
                "google_search": {"api_key": "key", "custom_search_engine_id": "cx"},
                "prompts": [{"mode": "strict", "prompt": "Local news"}, {"mode": "relaxed", "prompt": "Fun fact"}],
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def orchestrator() -> MagicMock:
    mock = MagicMock(spec=SearchAugmentedOrchestrator)
    mock.run = AsyncMock(return_value="A glacier fact")
    return mock


def test__read_text_argument__reads_existing_file(tmp_path: Path) -> None:
    path = tmp_path / "message.txt"
    path.write_text("Day 3\nGlacier walk", encoding="utf-8")

    assert read_text_argument(str(path)) == "Day 3\nGlacier walk"
    assert read_text_argument("just text") == "just text"
    assert read_text_argument("") == ""


def test__parser__defaults_to_relaxed_mode() -> None:
    args = build_parser().parse_args(["run", "goal", "--context", "Day 3"])

    assert args.mode == "relaxed"
    assert args.background == ""
    assert args.config is None


def test__parser__rejects_unknown_mode() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "goal", "--context", "Day 3", "--mode", "loose"])


def test__run__prints_answer(config_path: Path, orchestrator: MagicMock, capsys: CaptureFixture[str]) -> None:
    with patch("nostalgia_bot.cli.create_orchestrator", return_value=orchestrator):
        main(["run", "Find a fact", "--context", "Day 3", "--mode", "strict", "--config", str(config_path)])

    assert "A glacier fact" in capsys.readouterr().out
    orchestrator.run.assert_awaited_once_with("Find a fact", "Day 3", "", PromptMode.STRICT)


def test__run__exits_nonzero_without_answer(config_path: Path, orchestrator: MagicMock) -> None:
    orchestrator.run.return_value = ""
    with patch("nostalgia_bot.cli.create_orchestrator", return_value=orchestrator):
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "Find a fact", "--context", "Day 3", "--config", str(config_path)])

    assert exc_info.value.code == EXIT_NO_ANSWER


def test__run__missing_config_exits_with_config_code(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["run", "goal", "--context", "Day 3", "--config", str(tmp_path / "absent.json")])

    assert exc_info.value.code == EXIT_CONFIG_ERROR


def test__digest__prints_each_message(
    config_path: Path, orchestrator: MagicMock, capsys: CaptureFixture[str]
) -> None:
    orchestrator.run.side_effect = ["News item", "Fun fact"]
    with patch("nostalgia_bot.cli.create_orchestrator", return_value=orchestrator):
        main(["digest", "--context", "Day 3", "--config", str(config_path)])

    output = capsys.readouterr().out
    assert "News item" in output
    assert "Fun fact" in output
    assert orchestrator.run.await_count == 2


@pytest.fixture
def trip_path(tmp_path: Path) -> Path:
    path = tmp_path / "trip.json"
    path.write_text(
        json.dumps(
            {
                "id": "99",
                "name": "Patagonia",
                "slug": "patagonia",
                "user": {"username": "traveler"},
                "steps": [
                    {"id": 10, "slug": "el-calafate", "name": "El Calafate", "start_time": "2024-03-01T10:00:00+00:00"},
                    {
                        "id": 11,
                        "slug": "perito-moreno",
                        "name": "Perito Moreno",
                        "start_time": "2024-03-02T10:00:00+00:00",
                        "description": "Glacier walk",
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


def test__digest__trip_step_builds_message_and_background(
    config_path: Path, trip_path: Path, orchestrator: MagicMock, capsys: CaptureFixture[str]
) -> None:
    orchestrator.run.side_effect = ["News item", "Fun fact"]
    with patch("nostalgia_bot.cli.create_orchestrator", return_value=orchestrator):
        main(["digest", "--trip", str(trip_path), "--step", "1", "--config", str(config_path)])

    output = capsys.readouterr().out
    assert "📍 [Perito Moreno](https://www.polarsteps.com/traveler/99-patagonia/11-perito-moreno)" in output
    assert "News item" in output
    context_message, background = orchestrator.run.await_args.args[1:3]
    assert "🗓 Day 2 - March 2, 2024" in context_message
    assert context_message.endswith("Glacier walk")
    assert background.startswith("Step 1: El Calafate")


def test__digest__trip_step_out_of_range_exits_with_trip_code(
    config_path: Path, trip_path: Path, orchestrator: MagicMock
) -> None:
    with patch("nostalgia_bot.cli.create_orchestrator", return_value=orchestrator):
        with pytest.raises(SystemExit) as exc_info:
            main(["digest", "--trip", str(trip_path), "--step", "7", "--config", str(config_path)])

    assert exc_info.value.code == EXIT_INVALID_TRIP
    orchestrator.run.assert_not_awaited()


def test__digest__unreadable_trip_exits_with_trip_code(config_path: Path, tmp_path: Path) -> None:
    broken = tmp_path / "trip.json"
    broken.write_text('{"id": "99"}', encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        main(["digest", "--trip", str(broken), "--config", str(config_path)])

    assert exc_info.value.code == EXIT_INVALID_TRIP


def test__parser__digest_needs_context_or_trip() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["digest"])
    with pytest.raises(SystemExit):
        build_parser().parse_args(["digest", "--context", "Day 3", "--trip", "trip.json"])
