"""Domain-specific exceptions for the nostalgia companion."""

from typing import Any, get_origin


class NostalgiaBotError(Exception):
    """Base exception for nostalgia companion errors."""


class ModelCallError(NostalgiaBotError):
    """Raised when a model call did not produce usable output."""


class GenerationError(ModelCallError):
    """Raised when the request to the language model itself fails."""

    def __init__(self, model: str, reason: str) -> None:
        self.model = model
        self.reason = reason
        super().__init__(f"Generation with '{model}' failed: {reason}")


class ValidationError(ModelCallError):
    """Raised when the model output does not parse or does not match the expected shape."""

    def __init__(self, shape: Any, reason: str) -> None:
        self.shape = shape
        self.reason = reason
        super().__init__(f"Model output does not match {shape_name(shape)}: {reason}")


class SearchError(NostalgiaBotError):
    """Raised when the search provider request fails."""

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"Search for '{query}' failed: {reason}")


class ConfigError(NostalgiaBotError):
    """Raised when the bot configuration is missing or invalid."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration '{path}': {reason}")


def shape_name(shape: Any) -> str:
    """Readable name for a target shape, e.g. ``list[str]`` or ``CritiqueOutcome``."""
    if isinstance(shape, type) and get_origin(shape) is None:
        return shape.__name__
    return str(shape).replace("typing.", "")
