"""FastAPI application exposing the nostalgia workflow."""

from functools import lru_cache

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from nostalgia_bot import __version__
from nostalgia_bot.config import BotConfig, export_model_credentials, load_config
from nostalgia_bot.exceptions import ConfigError
from nostalgia_bot.logging import get_logger
from nostalgia_bot.models import DigestRequest, DigestResponse, PromptItem, WorkflowRequest, WorkflowResponse
from nostalgia_bot.workflow import SearchAugmentedOrchestrator, create_orchestrator, run_all_prompts

log = get_logger("nostalgia_bot.server")


class ErrorResponse(BaseModel):
    """Structured error response."""

    error: str = Field(
        description="Error type (ConfigError, ValidationError, InternalServerError)",
        examples=["ConfigError"],
    )
    detail: str = Field(
        description="User-friendly error message explaining what went wrong",
        examples=["The service is not configured. Please contact the operator."],
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status", examples=["ok"])
    version: str = Field(default="", description="Service version (only included in /health)", examples=["0.1.0"])


# --- Dependencies ---


@lru_cache(maxsize=1)
def get_config() -> BotConfig:
    config = load_config()
    export_model_credentials(config)
    return config


@lru_cache(maxsize=1)
def get_orchestrator() -> SearchAugmentedOrchestrator:
    return create_orchestrator(get_config())


def get_prompts() -> list[PromptItem]:
    return get_config().prompts


# --- Exception handlers ---


async def _handle_config_error(request: Request, exc: ConfigError) -> JSONResponse:
    log.error("request.config_error", path=exc.path, reason=exc.reason)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(
            error="ConfigError",
            detail="The service is not configured. Please contact the operator.",
        ).model_dump(),
    )


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    log.warning("request.validation_error", detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="ValidationError", detail=str(exc)).model_dump(),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unexpected_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="InternalServerError", detail="An unexpected error occurred.").model_dump(),
    )


# --- App factory ---


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Nostalgia Bot",
        description="""
Search-augmented travel companion for daily trip memories.

Given a goal and a travel journal message, the service generates search
queries, selects relevant web results, and writes a self-critiqued answer
grounded in those results, translated to the configured language.

An empty `output` means no acceptable answer was found; it is not an error.
        """,
        version=__version__,
    )

    application.add_exception_handler(ConfigError, _handle_config_error)  # type: ignore[arg-type]
    application.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _handle_unexpected_error)

    @application.post(
        "/workflow",
        response_model=WorkflowResponse,
        status_code=status.HTTP_200_OK,
        summary="Run one search-augmented goal",
        tags=["Workflow"],
        responses={
            422: {"description": "Invalid request body"},
            503: {"description": "Service not configured", "model": ErrorResponse},
            500: {"description": "Internal server error", "model": ErrorResponse},
        },
    )
    async def workflow(
        body: WorkflowRequest,
        orchestrator: SearchAugmentedOrchestrator = Depends(get_orchestrator),
    ) -> WorkflowResponse:
        output = await orchestrator.run(body.goal, body.context_message, body.background, body.mode)
        return WorkflowResponse(output=output)

    @application.post(
        "/digest",
        response_model=DigestResponse,
        status_code=status.HTTP_200_OK,
        summary="Run every configured prompt for one journal step",
        tags=["Workflow"],
        responses={
            503: {"description": "Service not configured", "model": ErrorResponse},
            500: {"description": "Internal server error", "model": ErrorResponse},
        },
    )
    async def digest(
        body: DigestRequest,
        orchestrator: SearchAugmentedOrchestrator = Depends(get_orchestrator),
        prompts: list[PromptItem] = Depends(get_prompts),
    ) -> DigestResponse:
        messages = await run_all_prompts(orchestrator, prompts, body.step_message, body.background)
        return DigestResponse(messages=messages)

    @application.get("/health", response_model=HealthResponse, summary="Health Check", tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @application.get("/health/liveness", response_model=HealthResponse, summary="Liveness Probe", tags=["Health"])
    async def liveness() -> HealthResponse:
        return HealthResponse(status="alive")

    @application.get("/health/readiness", response_model=HealthResponse, summary="Readiness Probe", tags=["Health"])
    async def readiness() -> HealthResponse:
        get_config()
        return HealthResponse(status="ready")

    return application


app = get_app()
