"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build AppState (the composition root: renderer strategy, cache, repository)
- Register routes
- Serialise WikiError into the JSON error envelope
- Start uvicorn
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

import filewiki.tools.cache_admin as t_cache
import filewiki.tools.get_page as t_page
import filewiki.tools.navigation as t_navigation
import filewiki.tools.search as t_search
from filewiki import __version__
from filewiki.cache import Cache, FileStore
from filewiki.config import Settings
from filewiki.errors import WikiError
from filewiki.renderer import build_renderer
from filewiki.repository import WikiRepository
from filewiki.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.requests import Request

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Composition root
# ---------------------------------------------------------------------------


def _build_cache(settings: Settings) -> Cache | None:
    """File cache from settings, or None when disabled or unusable."""
    if not settings.cache.enabled:
        return None
    cache_dir = Path(settings.cache.dir).expanduser()
    try:
        store = FileStore(cache_dir)
    except OSError:
        log.warning("cache_dir_unavailable", cache_dir=str(cache_dir), exc_info=True)
        return None
    return Cache(store, default_ttl=settings.cache.default_ttl_seconds)


def build_state(settings: Settings) -> AppState:
    """Wire renderer, cache and repository. Strategy selection happens here, once."""
    renderer = build_renderer(settings.renderer)
    cache = _build_cache(settings)
    repository = WikiRepository.from_settings(settings, renderer, cache)

    log.info(
        "state_built",
        content_root=str(repository.content_dir),
        renderer=renderer.strategy,
        cache_enabled=cache is not None,
        has_content=repository.has_content(),
    )
    return AppState(settings=settings, renderer=renderer, repository=repository, cache=cache)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def _respond(
    tool: str, request: Request, call: Callable[[AppState], Awaitable[dict]]
) -> JSONResponse:
    state: AppState = request.app.state.wiki
    try:
        result = await call(state)
    except WikiError as exc:
        log.warning(
            "tool_error",
            tool=tool,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)
    except Exception:
        log.error("tool_unexpected_error", tool=tool, exc_info=True)
        raise
    return JSONResponse(result)


async def page(request: Request) -> JSONResponse:
    path = request.query_params.get("path", "")
    return await _respond("get_page", request, lambda state: t_page.handle(path, state))


async def search(request: Request) -> JSONResponse:
    query = request.query_params.get("q", "")
    response = await _respond("search", request, lambda state: t_search.handle(query, state))
    response.headers["Cache-Control"] = "no-cache, must-revalidate"
    return response


async def navigation(request: Request) -> JSONResponse:
    return await _respond("navigation", request, t_navigation.handle)


async def cache_stats(request: Request) -> JSONResponse:
    return await _respond("cache_stats", request, t_cache.handle_stats)


async def cache_clear(request: Request) -> JSONResponse:
    return await _respond("cache_clear", request, t_cache.handle_clear)


async def cache_cleanup(request: Request) -> JSONResponse:
    return await _respond("cache_cleanup", request, t_cache.handle_cleanup)


ROUTES = [
    Route("/api/page", page, methods=["GET"]),
    Route("/api/search", search, methods=["GET"]),
    Route("/api/navigation", navigation, methods=["GET"]),
    Route("/api/cache/stats", cache_stats, methods=["GET"]),
    Route("/api/cache/clear", cache_clear, methods=["POST"]),
    Route("/api/cache/cleanup", cache_cleanup, methods=["POST"]),
]


def create_app(settings: Settings | None = None, state: AppState | None = None) -> Starlette:
    """Build the Starlette app.

    A prebuilt ``state`` is used as-is (tests); otherwise it is built from
    ``settings`` when the app starts.
    """
    settings = state.settings if state is not None else (settings or Settings())

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if getattr(app.state, "wiki", None) is None:
            app.state.wiki = build_state(settings)
        log.info("server_started", version=__version__)
        try:
            yield
        finally:
            log.info("server_stopping")

    app = Starlette(
        debug=settings.server.debug,
        routes=ROUTES,
        middleware=[
            # Live search is called from the browser on any origin
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET"],
                allow_headers=["Content-Type"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.wiki = state
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        host=settings.server.host,
        port=settings.server.port,
    )

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
