# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing Scout HTTP API.

Routes:
- GET  /health: liveness, always ``{"status": "ok"}``
- POST /scrape: ``{"startUrl": ..., "category": ...}`` -> one random listing

Every failure inside a scrape is caught at the request boundary and mapped
to ``500 {"success": false, "error": <message>}``. Each request runs in its
own task with its own browser session, so one failing request never affects
another. All logging goes to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
import uuid
from contextlib import asynccontextmanager, suppress

import structlog
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from . import pipeline
from .config import ScraperConfig
from .errors import ListingScoutError, sanitize_message

# Logging configured in main() via logging_config.configure()
logger = logging.getLogger("listingscout.server")

MISSING_FIELDS_ERROR = "startUrl or category missing"


class _BodyTooLarge(Exception):
    pass


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the request body, refusing anything over *limit* bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise _BodyTooLarge
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise _BodyTooLarge
        chunks.append(chunk)
    return b"".join(chunks)


def _required_str(body: dict, key: str) -> str | None:
    value = body.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# ── Routes ───────────────────────────────────────────────────────────


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def scrape(request: Request) -> JSONResponse:
    config: ScraperConfig = request.app.state.config

    try:
        raw = await _read_body(request, config.max_body_bytes)
    except _BodyTooLarge:
        return _error(413, "Request body too large")

    try:
        body = json.loads(raw) if raw else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Invalid JSON body")
    if not isinstance(body, dict):
        return _error(400, "Invalid JSON body")

    start_url = _required_str(body, "startUrl")
    category = _required_str(body, "category")
    if start_url is None or category is None:
        return _error(400, MISSING_FIELDS_ERROR)

    structlog.contextvars.bind_contextvars(request_id=uuid.uuid4().hex[:16], category=category)
    logger.info("scrape: start_url=%s", start_url)
    try:
        result = await pipeline.scrape_listing(start_url, category, config=config)
    except ListingScoutError as exc:
        logger.warning("scrape failed: %s: %s", type(exc).__name__, sanitize_message(str(exc)))
        return _error(500, sanitize_message(str(exc)))
    except Exception as exc:
        logger.error("scrape failed unexpectedly", exc_info=True)
        return _error(500, sanitize_message(str(exc)) or type(exc).__name__)
    finally:
        structlog.contextvars.unbind_contextvars("request_id", "category")

    return JSONResponse(result.to_dict())


async def _unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "Internal server error")


# ── App factory ──────────────────────────────────────────────────────


def create_app(config: ScraperConfig | None = None) -> Starlette:
    """Build the ASGI app. *config* defaults to ``ScraperConfig.from_env()``."""
    config = config or ScraperConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: Starlette):
        if not config.browser_ws:
            logger.warning("BROWSER_WS is not set; /scrape will fail until it is configured")
        logger.info("Listing Scout API ready (listing_origin=%s)", config.listing_origin)
        yield

    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/scrape", scrape, methods=["POST"]),
        ],
        exception_handlers={Exception: _unhandled_exception},
        lifespan=lifespan,
    )
    app.state.config = config
    return app


# ── Entry point ──────────────────────────────────────────────────────


def _parse_server_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args. Unset flags fall back to the environment (see config.py)."""
    parser = argparse.ArgumentParser(description="Listing Scout scrape API")
    parser.add_argument("--host", default=None, help="Bind address (env HOST, default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (env PORT, default 4000)")
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=None,
        help="Log renderer (env LISTINGSCOUT_LOG_JSON, default json)",
    )
    parser.add_argument("--log-level", default=None, help="Root log level (env LISTINGSCOUT_LOG_LEVEL)")
    args, _ = parser.parse_known_args(argv)
    return args


def _config_from_args(args: argparse.Namespace, base: ScraperConfig) -> ScraperConfig:
    replacements: dict = {}
    if args.host:
        replacements["host"] = args.host
    if args.port:
        replacements["port"] = args.port
    if args.log_format:
        replacements["log_json"] = args.log_format == "json"
    if args.log_level:
        replacements["log_level"] = args.log_level.upper()
    return dataclasses.replace(base, **replacements) if replacements else base


def _log_unhandled_loop_error(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Event-loop safety net: log stray task errors, keep serving."""
    exc = context.get("exception")
    logger.error("Unhandled event loop error: %s", context.get("message", "unknown"), exc_info=exc)


async def _run_http_server(config: ScraperConfig) -> None:
    import uvicorn

    asyncio.get_running_loop().set_exception_handler(_log_unhandled_loop_error)

    uv_config = uvicorn.Config(
        create_app(config),
        host=config.host,
        port=config.port,
        log_config=None,  # keep the structlog handler installed by configure()
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(uv_config)
    logger.info("Starting Listing Scout API (host=%s, port=%d)", config.host, config.port)
    await server.serve()


def main(argv: list[str] | None = None):
    """Entry point for the scrape API."""
    args = _parse_server_args(argv if argv is not None else sys.argv[1:])
    config = _config_from_args(args, ScraperConfig.from_env())

    # Configure structlog BEFORE any log output
    from .logging_config import configure as configure_logging

    configure_logging(json_output=config.log_json, level=config.log_level)

    import anyio

    with suppress(KeyboardInterrupt):
        anyio.run(_run_http_server, config)


if __name__ == "__main__":
    main()
