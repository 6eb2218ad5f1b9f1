"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the stdio transport
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import spmcontext.tools.get_package_info as t_info
import spmcontext.tools.get_package_readme as t_readme
import spmcontext.tools.search_packages as t_search
from spmcontext import __version__
from spmcontext.cache import CacheManager
from spmcontext.config import Settings
from spmcontext.errors import SpmContextError
from spmcontext.parser import Vocabulary
from spmcontext.state import AppState
from spmcontext.upstream import GitHubClient, SwiftPackageIndexClient, build_http_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

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
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info("server_starting", version=__version__)

    cache = CacheManager.from_settings(settings.cache)
    http_client = build_http_client(settings.upstream)

    state = AppState(
        settings=settings,
        cache=cache,
        package_index=SwiftPackageIndexClient(http_client, cache, settings.upstream),
        source_host=GitHubClient(http_client, cache, settings.upstream),
        vocabulary=Vocabulary.from_settings(settings.parser),
        http_client=http_client,
    )

    log.info(
        "server_started",
        version=__version__,
        cache_ttl_seconds=settings.cache.ttl_seconds,
        cache_max_size_bytes=settings.cache.max_size_bytes,
    )

    try:
        yield state
    finally:
        await http_client.aclose()
        cache.clear_all()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("spmcontext", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg, so set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: SpmContextError) -> CallToolResult:
    """Convert a SpmContextError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: SpmContextError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def get_package_readme(
    package_name: str,
    ctx: Context,
    version: str = "latest",
    include_examples: bool = True,
) -> object:
    """Get a Swift package's README with parsed usage examples and installation snippets.

    package_name may be a package name, owner/repo, or a GitHub URL.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_readme.handle(package_name, version, include_examples, state)
    except SpmContextError as exc:
        _log_tool_error("get_package_readme", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="get_package_readme", exc_info=True)
        raise


@mcp.tool()
async def get_package_info(
    package_name: str,
    ctx: Context,
    include_dependencies: bool = True,
    include_dev_dependencies: bool = False,
) -> object:
    """Get a Swift package's metadata, dependencies, and popularity figures."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_info.handle(
            package_name, include_dependencies, include_dev_dependencies, state
        )
    except SpmContextError as exc:
        _log_tool_error("get_package_info", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="get_package_info", exc_info=True)
        raise


@mcp.tool()
async def search_packages(
    query: str,
    ctx: Context,
    limit: int = 20,
    quality: float | None = None,
    popularity: float | None = None,
) -> object:
    """Search the Swift Package Index, ranked by quality, popularity and maintenance."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_search.handle(query, limit, quality, popularity, state)
    except SpmContextError as exc:
        _log_tool_error("search_packages", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="search_packages", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
