"""Command-line interface for the nostalgia workflow.

Usage:
    python -m nostalgia_bot run "Find a fun fact" --context day3.txt --mode strict
    python -m nostalgia_bot digest --context day3.txt --background nearby.txt
    python -m nostalgia_bot digest --trip trip.json --step 4
    python -m nostalgia_bot serve --port 8080
"""

import argparse
import asyncio
import random
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from nostalgia_bot.config import BotConfig, TripConfig, export_model_credentials, load_config
from nostalgia_bot.exceptions import ConfigError
from nostalgia_bot.logging import configure_structlog, get_logger
from nostalgia_bot.models import PromptMode
from nostalgia_bot.search import GoogleSearchEngine
from nostalgia_bot.trips import TripData, TripSelection, digest_inputs
from nostalgia_bot.workflow import create_orchestrator, run_all_prompts

log = get_logger("nostalgia_bot.cli")

EXIT_NO_ANSWER = 1
EXIT_CONFIG_ERROR = 2
EXIT_INVALID_TRIP = 3


def read_text_argument(value: str) -> str:
    """Treat the value as a file path when such a file exists, else as literal text."""
    if value and len(value) < 1024 and "\n" not in value:
        path = Path(value)
        if path.is_file():
            return path.read_text(encoding="utf-8")
    return value


def _load(config_path: str | None) -> BotConfig:
    configure_structlog(testing=True)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)
    export_model_credentials(config)
    return config


def _search_engine(config: BotConfig) -> GoogleSearchEngine:
    return GoogleSearchEngine(config.google_search.api_key, config.google_search.custom_search_engine_id)


async def _run(config: BotConfig, goal: str, context: str, background: str, mode: PromptMode) -> str:
    async with _search_engine(config) as search:
        orchestrator = create_orchestrator(config, search=search)
        return await orchestrator.run(goal, context, background, mode)


async def _digest(config: BotConfig, context: str, background: str) -> list[str]:
    async with _search_engine(config) as search:
        orchestrator = create_orchestrator(config, search=search)
        return await run_all_prompts(orchestrator, config.prompts, context, background)


def run_command(args: argparse.Namespace) -> None:
    config = _load(args.config)
    output = asyncio.run(
        _run(
            config,
            read_text_argument(args.goal),
            read_text_argument(args.context),
            read_text_argument(args.background),
            PromptMode(args.mode),
        )
    )
    if not output:
        print("No answer found.", file=sys.stderr)
        sys.exit(EXIT_NO_ANSWER)
    print(output)


def load_trip(path: str, config: BotConfig) -> TripSelection:
    """Read an exported trip and pair it with its configured album settings."""
    data = TripData.model_validate_json(Path(path).read_text(encoding="utf-8"))
    trip = next(
        (trip for trip in config.polarsteps.trips if trip.trip_id == data.id),
        TripConfig(trip_id=data.id),
    )
    return TripSelection(trip=trip, data=data)


def digest_command(args: argparse.Namespace) -> None:
    config = _load(args.config)
    if args.trip:
        try:
            selection = load_trip(args.trip, config)
            index = args.step
            if index is None:
                index = random.randrange(len(selection.data.steps)) if selection.data.steps else 0
            context, background = digest_inputs(selection, index)
        except (OSError, PydanticValidationError, IndexError) as e:
            print(f"Invalid trip: {e}", file=sys.stderr)
            sys.exit(EXIT_INVALID_TRIP)
        print(context)
        print()
    else:
        context, background = read_text_argument(args.context), read_text_argument(args.background)
    messages = asyncio.run(_digest(config, context, background))
    log.info("cli.digest.completed", message_count=len(messages))
    for message in messages:
        print(message)
        print()


def serve_command(args: argparse.Namespace) -> None:
    import uvicorn

    configure_structlog()
    uvicorn.run("nostalgia_bot.server:app", host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nostalgia-bot",
        description="Search-augmented travel memories from your trip journal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--background", "-b", default="", help="Nearby journal entries, or a file containing them")
    common.add_argument("--config", default=None, help="Path to bot-config.json")

    run = commands.add_parser("run", parents=[common], help="Run one goal and print the answer")
    run.add_argument("goal", help="Goal prompt, or a file containing it")
    run.add_argument("--context", "-c", required=True, help="Journal message text, or a file containing it")
    run.add_argument(
        "--mode",
        "-m",
        choices=[mode.value for mode in PromptMode],
        default=PromptMode.RELAXED.value,
        help="Grounding mode",
    )
    run.set_defaults(handler=run_command)

    digest = commands.add_parser("digest", parents=[common], help="Run every configured prompt")
    source = digest.add_mutually_exclusive_group(required=True)
    source.add_argument("--context", "-c", help="Journal message text, or a file containing it")
    source.add_argument("--trip", help="Exported trip JSON; the message and background are built from one step")
    digest.add_argument("--step", type=int, default=None, help="Step index within --trip (random when omitted)")
    digest.set_defaults(handler=digest_command)

    serve = commands.add_parser("serve", help="Serve the HTTP API with uvicorn")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve.add_argument("--port", type=int, default=8080, help="Bind port")
    serve.set_defaults(handler=serve_command)

    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        args.handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
