"""Protocol interfaces for swappable components.

Tool handlers and AppState reference these protocols, not the concrete
clients. Tests can hand in lightweight fakes, and a different package index
or source host can be plugged in without touching tool code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from spmcontext.models.upstream import (
        GitHubRelease,
        GitHubRepository,
        SearchResponse,
        SwiftPackageIndexPackage,
    )


class PackageIndexProtocol(Protocol):
    """Interface for the package index (Swift Package Index)."""

    async def get_package(self, owner: str, repo: str) -> SwiftPackageIndexPackage: ...

    async def search(self, query: str, limit: int) -> SearchResponse: ...


class SourceHostProtocol(Protocol):
    """Interface for the source-hosting API (GitHub)."""

    async def get_repository(self, owner: str, repo: str) -> GitHubRepository: ...

    async def get_latest_release(self, owner: str, repo: str) -> GitHubRelease | None: ...

    async def get_readme(self, owner: str, repo: str, ref: str | None = None) -> str: ...

    async def get_package_swift(
        self, owner: str, repo: str, ref: str | None = None
    ) -> str | None: ...
