"""FastAPI application factory and process entry point.

The HTTP side only answers liveness probes for the uptime monitor; the real
work happens in the Discord bot started from the lifespan hook.
"""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from kvkstats.config import Settings

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "KvK Stats Bot is running!"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: start the Discord bot if a token is configured."""
    settings: Settings = app.state.settings

    discord_bot = None
    from kvkstats.discord.bot import is_discord_enabled

    if is_discord_enabled(settings):
        from kvkstats.discord.bot import start_discord_bot

        discord_bot = await start_discord_bot(settings)
        logger.info("discord_bot_integration_started")
    else:
        logger.info("discord_bot_integration_disabled")
    app.state.discord_bot = discord_bot

    yield

    if discord_bot is not None:
        await discord_bot.close()
        logger.info("discord_bot_integration_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the keep-alive FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.kvkstats_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="KvK Stats Bot",
        version="0.1.0",
        description="Discord front-end for the kingdom KvK stats backend",
        docs_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.discord_bot = None

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return LIVENESS_TEXT

    @app.get("/ping", response_class=PlainTextResponse)
    async def ping() -> str:
        return "pong"

    @app.get("/health")
    async def health() -> dict[str, str]:
        bot = app.state.discord_bot
        if bot is None:
            discord_state = "disabled"
        elif bot.is_ready():
            discord_state = "connected"
        else:
            discord_state = "connecting"
        return {"status": "ok", "env": settings.kvkstats_env, "discord": discord_state}

    return app


def run() -> None:
    """Console entry point: validate credentials, then serve the app."""
    settings = Settings()
    app = create_app(settings)

    if not settings.discord_bot_token:
        logger.error("startup_aborted reason=missing DISCORD_BOT_TOKEN")
        sys.exit(1)
    if not settings.discord_client_id:
        logger.warning("startup_warning reason=missing DISCORD_CLIENT_ID")
    if not settings.apps_script_web_app_url:
        logger.warning(
            "startup_warning reason=missing APPS_SCRIPT_WEB_APP_URL "
            "commands will answer with a configuration error"
        )

    logger.info("keepalive_server_starting port=%d", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)  # noqa: S104


app = create_app()
