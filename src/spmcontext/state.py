"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
The cache is owned here and passed by reference; nothing looks it up globally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from spmcontext.parser import DEFAULT_VOCABULARY, Vocabulary

if TYPE_CHECKING:
    import httpx

    from spmcontext.cache import CacheManager
    from spmcontext.config import Settings
    from spmcontext.protocols import PackageIndexProtocol, SourceHostProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    cache: CacheManager
    package_index: PackageIndexProtocol
    source_host: SourceHostProtocol
    vocabulary: Vocabulary = field(default_factory=lambda: DEFAULT_VOCABULARY)
    http_client: httpx.AsyncClient | None = None
