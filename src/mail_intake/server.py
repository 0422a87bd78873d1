# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application assembly for uvicorn.

This module wires the store, rate limiter, metrics and handler together from
an :class:`~mail_intake.config.IntakeSettings` and attaches a lifespan that
initializes the database and runs the rate limiter pruning task.

Usage:
    uvicorn mail_intake.server:create_server_app --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import create_app
from .auth import api_token_validator
from .config import IntakeSettings, load_settings
from .handler import SubmissionHandler
from .logger import configure_logging, get_logger
from .prometheus import IntakeMetrics
from .rate_limit import RateLimiter, prune_periodically
from .store import SqliteEmailStore

logger = get_logger("IntakeServer")


def build_handler(settings: IntakeSettings, store: SqliteEmailStore) -> SubmissionHandler:
    """Build a handler configured from ``settings``."""
    validator = api_token_validator(settings.api_token) if settings.api_token else None
    return SubmissionHandler(
        store=store,
        rate_limiter=RateLimiter(
            limit=settings.rate_limit,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        enforce_auth=settings.enforce_auth,
        session_validator=validator,
        metrics=IntakeMetrics(),
    )


def build_app(settings: IntakeSettings) -> FastAPI:
    """Create the full application for ``settings``."""
    store = SqliteEmailStore(settings.db_path)
    handler = build_handler(settings, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Initialize the store and prune the rate limiter while serving."""
        await store.init_db()
        logger.info(
            f"Mail intake ready (db={settings.db_path}, enforce_auth={settings.enforce_auth}, "
            f"limit={settings.rate_limit}/{settings.rate_limit_window_seconds:g}s)"
        )
        pruner = asyncio.create_task(
            prune_periodically(
                handler.rate_limiter,
                settings.prune_interval_seconds,
                on_prune=handler.metrics.set_tracked_clients if handler.metrics else None,
            )
        )
        try:
            yield
        finally:
            pruner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pruner

    return create_app(handler, lifespan=lifespan)


def create_server_app() -> FastAPI:
    """Factory for ``uvicorn --factory``: load settings and build the app."""
    settings = load_settings()
    configure_logging(settings.log_level)
    return build_app(settings)
