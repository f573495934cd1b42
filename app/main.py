"""Alertmanager bridge - FastAPI application relaying Alertmanager to Mattermost."""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from app.channels.mattermost import close_mattermost_client, init_mattermost_client
from app.config import get_settings
from app.errors import AuthError
from app.services.alertmanager import close_alertmanager_client, init_alertmanager_client
from app.services.provisioning import load_and_provision
from app.services.registry import get_registry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Pending reload tasks, kept referenced until they finish
_reload_tasks: set[asyncio.Task] = set()


def _install_reload_handler(reload) -> None:
    """Reload the alert configurations on SIGHUP."""

    def _on_sighup() -> None:
        logger.info("Received SIGHUP, reloading alert configurations")
        task = asyncio.ensure_future(reload())
        _reload_tasks.add(task)
        task.add_done_callback(_reload_tasks.discard)

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGHUP, _on_sighup)
    except (NotImplementedError, AttributeError, RuntimeError):
        logger.warning("SIGHUP reload is not supported on this platform")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Configure logging level
    logging.getLogger().setLevel(settings.log_level.upper())

    mattermost = init_mattermost_client(settings.mattermost_url, settings.mattermost_bot_token)
    init_alertmanager_client(timeout=settings.alertmanager_timeout)

    registry = get_registry()

    async def reload() -> None:
        await load_and_provision(registry, mattermost, settings.alert_configs_path)

    await reload()
    _install_reload_handler(reload)

    logger.info("Alertmanager bridge started")

    yield

    await close_alertmanager_client()
    await close_mattermost_client()
    logger.info("Alertmanager bridge stopped")


# Create FastAPI app
app = FastAPI(
    title="Alertmanager Bridge",
    description="Relays Alertmanager notifications, silences and status to Mattermost",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Include routers
from app.api.actions import router as actions_router  # noqa: E402
from app.api.commands import router as commands_router  # noqa: E402
from app.api.webhook import router as webhook_router  # noqa: E402

app.include_router(webhook_router)
app.include_router(actions_router)
app.include_router(commands_router)


@app.exception_handler(AuthError)
async def auth_exception_handler(request: Request, exc: AuthError):
    """Same answer for a missing token and a wrong one."""
    return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Mattermost AlertManager Bridge"


# Health check endpoint
@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


def run() -> None:
    """Run the application using uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    run()
