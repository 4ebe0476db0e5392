from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from folio.app.api.routes import router
from folio.app.dependencies import get_database, get_settings, get_telemetry
from folio.app.logging_config import configure_application_logging
from folio.app.models.site_contracts import HealthResponse
from folio.app.repositories.common import StoreError
from folio.app.services.reader import ArticleNotFoundError

LOGGER = logging.getLogger("folio.http")


def health_check() -> HealthResponse:
    return HealthResponse()


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    database = get_database()
    LOGGER.info("store ready path=%s", database.path)
    yield


async def article_not_found_handler(request: Request, exc: Exception) -> Response:
    LOGGER.info("not found path=%s reason=%s", request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": "Not Found"})


async def store_error_handler(request: Request, exc: Exception) -> Response:
    LOGGER.error("store failure path=%s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "store_unavailable"})


def create_app() -> FastAPI:
    app = FastAPI(title="Folio API", version="0.1.0", lifespan=app_lifespan)

    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        telemetry = get_telemetry()
        incoming_request_id = request.headers.get("X-Request-ID")
        request_id = (
            incoming_request_id.strip()
            if isinstance(incoming_request_id, str) and incoming_request_id.strip()
            else str(uuid4())
        )
        context_tokens = bind_contextvars(
            http_request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        started_at = perf_counter()
        telemetry.emit(
            "http.request.start",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        except Exception as exc:
            telemetry.emit(
                "http.request.error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=int((perf_counter() - started_at) * 1000),
                error_type=type(exc).__name__,
            )
            raise
        else:
            response.headers["X-Request-ID"] = request_id
            telemetry.emit(
                "http.request.finish",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=int((perf_counter() - started_at) * 1000),
                status_code=response.status_code,
            )
            return response
        finally:
            reset_contextvars(**context_tokens)

    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(ArticleNotFoundError, article_not_found_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        response_model=HealthResponse,
        tags=["system"],
        operation_id="health_check",
    )
    app.include_router(router)

    return app


app = create_app()
