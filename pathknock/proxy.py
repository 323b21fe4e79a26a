import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional
from urllib.parse import quote

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from pathknock.config import KnockConfig, Settings, load_config
from pathknock.core import Rule, classify
from pathknock.events import record
from pathknock.lists import UpdateError, UpdateResult, submit
from pathknock.logging import setup_logging

logger = logging.getLogger(__name__)

# set by Starlette/httpx for the body they actually send
EXCLUDED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


@dataclass(frozen=True)
class KnockOutcome:
    rule: Rule
    result: Optional[UpdateResult]
    logged: bool = False


def client_ip_of(request: Request, header: str) -> str:
    ip = request.headers.get(header)
    if ip:
        return ip.strip()
    return request.client.host if request.client else "unknown"


async def knock(
    client: httpx.AsyncClient,
    config: KnockConfig,
    ip: str,
    path: str,
    now: Optional[datetime] = None,
) -> Optional[KnockOutcome]:
    """
    Classify ``path`` and, on a match, update the rule's list then log the result.
    Update, then log; both are awaited before the caller forwards. Nothing raised
    in here reaches the caller.
    """
    rule = classify(path, config.rules)
    if rule is None:
        return None

    logger.info("Path knock detected from IP: %s on path: %s (rule %s)", ip, path, rule.name)
    now = now or datetime.now(timezone.utc)

    result: Optional[UpdateResult] = None
    logged = False
    try:
        result = await submit(client, config, ip, rule, now)
        if config.log_actions or isinstance(result, UpdateError):
            logged = record(ip, path, rule, result, events_path=config.events_path, now=now)
    except Exception:
        logger.exception("Unexpected error while knocking %s on list %s", ip, rule.name)
    return KnockOutcome(rule=rule, result=result, logged=logged)


async def forward_to_origin(
    client: httpx.AsyncClient,
    config: KnockConfig,
    request: Request,
    body: bytes,
) -> Response:
    # raw bytes: a decoded "%3F" must not turn into a query string
    raw_path = request.scope.get("raw_path")
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else quote(request.scope["path"])
    url = f"{config.origin_base}{path}"
    query = request.scope.get("query_string", b"").decode("latin-1")
    if query:
        url += f"?{query}"

    headers = dict(request.headers)
    headers.pop("host", None)

    try:
        resp = await client.request(
            method=request.method,
            url=url,
            headers=headers,
            content=body,
        )
    except httpx.HTTPError as exc:
        logger.error("Origin unreachable for %s %s: %r", request.method, url, exc)
        return JSONResponse(status_code=502, content={"detail": "origin unreachable"})

    response = Response(content=resp.content, status_code=resp.status_code)
    for key, value in resp.headers.multi_items():
        if key.lower() not in EXCLUDED_RESPONSE_HEADERS:
            response.headers.append(key, value)
    return response


def create_app(config: KnockConfig, client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the knocking proxy.

    Args:
        config: Immutable configuration shared by every request
        client: HTTP client for the list API and the origin. When omitted, one
            is created for the lifetime of the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if client is not None:
            app.state.http_client = client
            yield
            return
        async with httpx.AsyncClient(timeout=config.http_timeout) as http_client:
            app.state.http_client = http_client
            yield

    # no docs routes: every path belongs to the origin
    app = FastAPI(
        title="Path Knocking Proxy",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    if client is not None:
        app.state.http_client = client

    @app.api_route(
        "/{full_path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
        include_in_schema=False,
    )
    async def knock_proxy(full_path: str, request: Request):
        http_client: httpx.AsyncClient = request.app.state.http_client
        client_ip = client_ip_of(request, config.client_ip_header)
        body_bytes = await request.body()

        await knock(http_client, config, client_ip, request.scope["path"])
        return await forward_to_origin(http_client, config, request, body_bytes)

    return app


def build_app() -> FastAPI:
    """Entry point for ``uvicorn --factory pathknock.proxy:build_app``."""
    settings = Settings()
    setup_logging(settings.log_level)
    config = load_config(settings)
    logger.info("Loaded %d knock rule(s)", len(config.rules))
    return create_app(config)
