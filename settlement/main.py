"""ASGI entrypoint: ``uvicorn settlement.main:app``."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from settlement.api import (
    auth,
    courses,
    health,
    lessons,
    metrics_endpoint,
    orgs,
    payments,
    progress,
    quizzes,
    subscriptions,
)
from settlement.core.config import SETTINGS
from settlement.core.logging import setup_logging
from settlement.db.engine import lifespan_db
from settlement.db.redis import lifespan_redis
from settlement.middleware.metrics import MetricsMiddleware
from settlement.middleware.request_context import RequestContextMiddleware

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

ROUTERS: tuple[APIRouter, ...] = (
    metrics_endpoint.router,
    health.router,
    auth.router,
    orgs.router,
    subscriptions.router,
    courses.router,
    lessons.router,
    quizzes.router,
    payments.router,
    progress.router,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db(), lifespan_redis():
        yield


def create_app() -> FastAPI:
    docs = SETTINGS.is_dev
    application = FastAPI(
        title="settlement-service",
        lifespan=lifespan,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[SETTINGS.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Outermost last: request id is bound before metrics and CORS run
    application.add_middleware(MetricsMiddleware)
    application.add_middleware(RequestContextMiddleware)
    for router in ROUTERS:
        application.include_router(router)

    logger.info(
        "settlement-service ready env=%s log_level=%s docs=%s",
        SETTINGS.app_env,
        SETTINGS.log_level,
        "on" if docs else "off",
    )
    return application


app = create_app()
