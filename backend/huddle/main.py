"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

import huddle.runtime as runtime
from huddle.api.errors import handle_http_exception
from huddle.api.errors import handle_request_validation
from huddle.api.routers.sessions import router as sessions_router
from huddle.ws.routers import router as ws_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=runtime.settings.huddle_log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    runtime.startup()
    configure_logging()
    scheduler = runtime.cleanup_scheduler
    scheduler.start()
    logger.info("huddle started (env=%s)", runtime.settings.huddle_app_env)
    try:
        yield
    finally:
        await scheduler.stop()


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime.settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(sessions_router)
app.include_router(ws_router)
app.add_exception_handler(HTTPException, handle_http_exception)
app.add_exception_handler(RequestValidationError, handle_request_validation)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=runtime.settings.huddle_app_host, port=runtime.settings.huddle_app_port)


__all__ = ["app", "lifespan", "run"]
