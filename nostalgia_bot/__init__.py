"""Nostalgia Bot - search-augmented travel memories using self-correcting LLM workflows"""

__version__ = "0.1.0"

from nostalgia_bot.client import (
    StructuredModelClient,
    ToolContext,
    clear_client_cache,
    create_model_client,
    get_model_client,
)
from nostalgia_bot.config import BotConfig, load_config
from nostalgia_bot.exceptions import (
    ConfigError,
    GenerationError,
    ModelCallError,
    NostalgiaBotError,
    SearchError,
    ValidationError,
)
from nostalgia_bot.executor import AnswerCritic, RequirementsExtractor, SelfCorrectingExecutor
from nostalgia_bot.models import (
    Conversation,
    CritiqueOutcome,
    PageContent,
    PromptItem,
    PromptMode,
    RelevanceJudgment,
    ResultPool,
    SearchResult,
    TaggedResult,
    Turn,
    tag_results,
)
from nostalgia_bot.search import GoogleSearchEngine, SearchProvider
from nostalgia_bot.server import get_app
from nostalgia_bot.tasks import TaskLibrary, build_task_library
from nostalgia_bot.workflow import SearchAugmentedOrchestrator, create_orchestrator, run_all_prompts

__all__ = [
    # Models
    "Turn",
    "Conversation",
    "PromptMode",
    "PromptItem",
    "SearchResult",
    "TaggedResult",
    "ResultPool",
    "RelevanceJudgment",
    "CritiqueOutcome",
    "PageContent",
    "tag_results",
    # Model client
    "StructuredModelClient",
    "ToolContext",
    "create_model_client",
    "get_model_client",
    "clear_client_cache",
    # Executor and tasks
    "SelfCorrectingExecutor",
    "RequirementsExtractor",
    "AnswerCritic",
    "TaskLibrary",
    "build_task_library",
    # Search
    "SearchProvider",
    "GoogleSearchEngine",
    # Workflow
    "SearchAugmentedOrchestrator",
    "create_orchestrator",
    "run_all_prompts",
    # Config
    "BotConfig",
    "load_config",
    # Exceptions
    "NostalgiaBotError",
    "ModelCallError",
    "GenerationError",
    "ValidationError",
    "SearchError",
    "ConfigError",
    # Server
    "get_app",
]
