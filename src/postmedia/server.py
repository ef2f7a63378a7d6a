# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""HTTP surface: Starlette app wiring the resolver, merged-file mount and health.

Routes:
    POST /api/fetch-content   (alias /fetch-content)  {url} -> MediaRecord JSON
    GET  /health                                      status + server time
    GET  /debug/fetch?url=                            raw upstream body (dev only)
    GET  /temp/<key>_merged.mp4                       merged videos
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from . import problem_details
from .browser_capture import BrowserConfig, BrowserFallback
from .config import Settings
from .errors import PostMediaError
from .fetcher import PageFetcher
from .logging_config import request_context
from .muxer import MediaMuxer
from .pipeline import ExtractionPipeline, PostResolver

logger = logging.getLogger(__name__)

MERGED_FILES_PATH = "/temp"


class FetchContentRequest(BaseModel):
    url: str | None = None


@dataclass
class Services:
    """Long-lived collaborators shared by every request."""

    settings: Settings
    resolver: PostResolver
    fetcher: PageFetcher
    muxer: MediaMuxer

    async def aclose(self) -> None:
        await self.fetcher.aclose()
        await self.muxer.aclose()


def build_services(settings: Settings) -> Services:
    fetcher = PageFetcher(timeout=settings.fetch_timeout)
    muxer = MediaMuxer(
        settings.cache_dir,
        public_base_url=settings.public_base_url + MERGED_FILES_PATH,
    )
    fallback = BrowserFallback(
        BrowserConfig(
            executable_path=settings.chromium_executable,
            timeout_ms=settings.navigation_timeout_ms,
            settle_seconds=settings.settle_seconds,
        ),
        muxer=muxer,
        quality_tokens=settings.quality_tokens,
        audio_markers=settings.audio_markers,
    )
    resolver = PostResolver(fetcher, ExtractionPipeline(browser_fallback=fallback))
    return Services(settings=settings, resolver=resolver, fetcher=fetcher, muxer=muxer)


def _services(request: Request) -> Services:
    return request.app.state.services


async def fetch_content(request: Request) -> Response:
    services = _services(request)
    expose_debug = not services.settings.is_production
    instance = request.url.path
    try:
        payload = FetchContentRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return problem_details.from_validation("URL is required", instance=instance).to_response()

    with request_context(payload.url):
        try:
            logger.info("Fetching %s", payload.url)
            result = await services.resolver.resolve(payload.url)
            return JSONResponse(result.record.to_dict(now=datetime.now(UTC)))
        except PostMediaError as e:
            logger.info("Resolution failed: %s: %s", type(e).__name__, e)
            problem = problem_details.from_exception(e, instance=instance, expose_debug=expose_debug)
        except Exception as e:
            logger.error("Unexpected error while resolving content", exc_info=True)
            problem = problem_details.from_exception(e, instance=instance, expose_debug=expose_debug)
    return problem.to_response()


async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok", "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z")})


async def debug_fetch(request: Request) -> Response:
    """Proxy an arbitrary URL.  Unrestricted server-side fetch: development only."""
    url = request.query_params.get("url", "").strip()
    if not url:
        return PlainTextResponse("URL parameter is required", status_code=400)
    try:
        body = await _services(request).fetcher.fetch(url)
    except PostMediaError as e:
        status = 504 if isinstance(e, TimeoutError) else 500
        return PlainTextResponse(f"Error: {problem_details.sanitize_detail(str(e))}", status_code=status)
    return PlainTextResponse(body)


def create_app(settings: Settings | None = None, *, services: Services | None = None) -> Starlette:
    """Build the ASGI app.  *services* is injectable for tests."""
    settings = services.settings if services is not None else (settings or Settings.from_env())
    owned = services is None
    settings.cache_dir.mkdir(parents=True, exist_ok=True)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        svc = app.state.services
        if settings.cache_max_age_hours:
            svc.muxer.purge(settings.cache_max_age_hours * 3600)
        yield
        if owned:
            await svc.aclose()

    routes = [
        Route("/api/fetch-content", fetch_content, methods=["POST"]),
        Route("/fetch-content", fetch_content, methods=["POST"]),
        Route("/health", health, methods=["GET"]),
    ]
    if settings.debug_fetch_allowed:
        logger.warning("Debug fetch endpoint enabled: unrestricted server-side URL fetch")
        routes.append(Route("/debug/fetch", debug_fetch, methods=["GET"]))
    routes.append(Mount(MERGED_FILES_PATH, app=StaticFiles(directory=settings.cache_dir, check_dir=False)))

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=list(settings.cors_origins),
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["Content-Type"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)
    return app


def run(settings: Settings) -> None:
    """Serve with uvicorn.  Logging must already be configured."""
    import uvicorn

    app = create_app(settings)
    logger.info("Application: %s", settings.public_base_url)
    logger.info("  POST %s/api/fetch-content", settings.public_base_url)
    logger.info("  GET  %s/health", settings.public_base_url)
    logger.info("  GET  %s%s/:filename", settings.public_base_url, MERGED_FILES_PATH)
    logger.info(
        "Environment=%s cache_dir=%s chromium=%s",
        settings.environment,
        settings.cache_dir,
        settings.chromium_executable or "bundled",
    )
    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None)
    server = uvicorn.Server(config)
    asyncio.run(server.serve())
