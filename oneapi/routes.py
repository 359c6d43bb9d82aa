from __future__ import annotations

import time
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import Response
from pydantic import BaseModel

from .auth import require_api_token
from .background import background_tasks
from .db import engine, init_db
from .deps import get_config_store, get_http_client
from .errors import GatewayError, handle_gateway_error, handle_unexpected_error
from .http_client import close_shared_http_client
from .log_sanitizer import sanitize_headers_for_log
from .logging_config import logger
from .provider import ProxyContext
from .schemas import RESPONSES_CHANNEL_TYPES, ApiToken, ModelsResponse
from .services import ProxyRouter, list_models
from .settings import settings
from .storage import ConfigStore


class HealthResponse(BaseModel):
    status: str = "ok"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - startup: create missing tables unless Alembic manages the schema;
    - shutdown: let detached usage tasks finish (bounded), then close the upstream client.
    """
    if settings.auto_create_tables:
        init_db(engine)

    yield

    await background_tasks.drain(settings.background_drain_timeout)
    await close_shared_http_client()


def create_app() -> FastAPI:
    app = FastAPI(title="AWSL One API", version="0.1.0", lifespan=lifespan)

    app.add_exception_handler(GatewayError, handle_gateway_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client_host = request.client.host if request.client else "-"
        logger.debug(
            "HTTP %s %s from %s, headers=%s",
            request.method,
            request.url.path,
            client_host,
            sanitize_headers_for_log(request.headers),
        )
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "HTTP %s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    async def _proxy(
        request: Request,
        token: ApiToken,
        store: ConfigStore,
        client: httpx.AsyncClient,
        *,
        allowed_types: frozenset[str] | None = None,
    ) -> Response:
        router = ProxyRouter(store, allowed_types=allowed_types)
        ctx = ProxyContext.from_request(request, client)
        return await router.route(ctx, token, await request.body())

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    @app.post("/v1/chat/completions")
    async def chat_completions(
        request: Request,
        token: ApiToken = Depends(require_api_token),
        store: ConfigStore = Depends(get_config_store),
        client: httpx.AsyncClient = Depends(get_http_client),
    ) -> Response:
        return await _proxy(request, token, store, client)

    @app.post("/v1/messages")
    async def messages(
        request: Request,
        token: ApiToken = Depends(require_api_token),
        store: ConfigStore = Depends(get_config_store),
        client: httpx.AsyncClient = Depends(get_http_client),
    ) -> Response:
        return await _proxy(request, token, store, client)

    @app.post("/v1/responses")
    async def responses(
        request: Request,
        token: ApiToken = Depends(require_api_token),
        store: ConfigStore = Depends(get_config_store),
        client: httpx.AsyncClient = Depends(get_http_client),
    ) -> Response:
        return await _proxy(
            request, token, store, client, allowed_types=RESPONSES_CHANNEL_TYPES
        )

    @app.get("/v1/models", response_model=ModelsResponse)
    async def models(
        token: ApiToken = Depends(require_api_token),
        store: ConfigStore = Depends(get_config_store),
    ) -> ModelsResponse:
        return await list_models(store, token)

    return app


__all__ = ["HealthResponse", "create_app"]
