"""Bot configuration loaded from ``bot-config.json``."""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from nostalgia_bot.exceptions import ConfigError
from nostalgia_bot.models import PromptItem
from nostalgia_bot.prompts import DEFAULT_PROMPTS

DEFAULT_CONFIG_PATH = Path("bot-config.json")
DEFAULT_MODEL = os.getenv("NOSTALGIA_MODEL", "google-gla:gemini-2.0-flash")
DEFAULT_LANGUAGE = os.getenv("NOSTALGIA_LANGUAGE", "English")


class BotSettings(BaseModel):
    language: str = Field(default=DEFAULT_LANGUAGE, description="Language of the generated messages")


class TripConfig(BaseModel):
    trip_id: str = Field(min_length=1)
    album_secret: str = ""


class PolarstepsConfig(BaseModel):
    trips: list[TripConfig] = Field(default_factory=list)


class TelegramConfig(BaseModel):
    token: str = ""
    chat_id: str = ""


class GeminiConfig(BaseModel):
    api_key: str = ""
    model: str = DEFAULT_MODEL


class GoogleSearchConfig(BaseModel):
    api_key: str = Field(min_length=1)
    custom_search_engine_id: str = Field(min_length=1)


class BotConfig(BaseModel):
    """Complete bot configuration."""

    bot: BotSettings = Field(default_factory=BotSettings)
    polarsteps: PolarstepsConfig = Field(default_factory=PolarstepsConfig)
    telegram_bot: TelegramConfig = Field(default_factory=TelegramConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    google_search: GoogleSearchConfig
    prompts: list[PromptItem] = Field(default_factory=lambda: list(DEFAULT_PROMPTS))


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path)
    return Path(os.getenv("NOSTALGIA_CONFIG", str(DEFAULT_CONFIG_PATH)))


def load_config(path: str | Path | None = None) -> BotConfig:
    """Load and validate the bot configuration.

    Args:
        path: Explicit config file. Falls back to ``NOSTALGIA_CONFIG`` and then
            ``./bot-config.json``.

    Raises:
        ConfigError: When the file is missing, is not JSON or fails validation.
    """
    config_path = resolve_config_path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(path=str(config_path), reason="file not found") from e
    except json.JSONDecodeError as e:
        raise ConfigError(path=str(config_path), reason=f"invalid JSON: {e}") from e

    try:
        return BotConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigError(path=str(config_path), reason=str(e)) from e


def export_model_credentials(config: BotConfig) -> None:
    """Expose the configured Gemini key to pydantic-ai's Google provider."""
    if config.gemini.api_key and not os.getenv("GOOGLE_API_KEY"):
        os.environ["GOOGLE_API_KEY"] = config.gemini.api_key
