"""FastAPI application factory for the reward webhook receiver."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from rewardhook import __version__
from rewardhook.actions import CommandRunner
from rewardhook.cache import ScrolloCache
from rewardhook.config import Settings
from rewardhook.handler import NotificationHandler
from rewardhook.lighting import BulbSet, discover_bulbs
from rewardhook.rewards import RewardRouter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Resolve bulbs and wire the handler before accepting requests.

    A missing bulb raises :class:`~rewardhook.errors.BulbDiscoveryError`
    out of startup, so the server never serves without both bulbs.
    """
    settings: Settings = app.state.settings

    if app.state.bulbs is None:
        app.state.bulbs = await asyncio.to_thread(
            discover_bulbs, settings.bed_bulb_mac, settings.ceiling_bulb_mac
        )

    settings.cache_dir.mkdir(parents=True, exist_ok=True)
    cache = ScrolloCache(settings.cache_dir, settings.scrollo_link)

    router = RewardRouter(
        settings,
        app.state.bulbs,
        app.state.runner,
        cache,
        rng=app.state.rng,
    )
    secrets = settings.secrets
    if not secrets:
        logger.warning("No signing secrets configured; every delivery will be rejected")
    app.state.handler = NotificationHandler(router, secrets)

    logger.info("Receiver ready")
    yield
    logger.info("Receiver stopped")


def create_app(
    settings: Settings | None = None,
    bulbs: BulbSet | None = None,
    runner: CommandRunner | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    """Create and configure the receiver FastAPI application.

    Collaborators default to the real ones (LAN discovery, subprocesses);
    tests pass in fakes.
    """
    if settings is None:
        settings = Settings()

    # Configure logging from settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.debug:
        logging.getLogger("rewardhook").setLevel(logging.DEBUG)

    app = FastAPI(
        title="rewardhook",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Store collaborators on app.state so lifespan and routes can access them
    app.state.settings = settings
    app.state.bulbs = bulbs
    app.state.runner = runner or CommandRunner(timeout=settings.action_timeout)
    app.state.rng = rng

    from rewardhook.routes.webhook import router as webhook_router

    app.include_router(webhook_router)

    return app
