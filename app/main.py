from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import router
from app.schemas import ErrorResponse
from datastore.repository import build_default_repository
from logging_config import configure_logging
from services.errors import PersistenceError, ReadingValidationError
from services.pipeline import (
    build_default_channels,
    build_default_deduplicator,
    build_default_pipeline,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    pipeline = build_default_pipeline()
    try:
        yield
    finally:
        # In-flight alerts are allowed to finish; they are never cancelled.
        await pipeline.drain()
        await build_default_channels().aclose()
        build_default_pipeline.cache_clear()
        build_default_channels.cache_clear()
        build_default_deduplicator.cache_clear()
        build_default_repository.cache_clear()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


async def _reading_validation_handler(_request: Request, exc: ReadingValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


async def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    ]
    return _error(status.HTTP_400_BAD_REQUEST, "; ".join(messages) or "Invalid request.")


async def _persistence_handler(_request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Storage failure", extra={"reason": exc})
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Reading could not be stored.")


async def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Vitals Alert Service",
        description="Wearable reading ingestion with multi-channel emergency notification.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(ReadingValidationError, _reading_validation_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(PersistenceError, _persistence_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.include_router(router)
    return app

app = create_app()
