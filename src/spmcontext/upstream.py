"""HTTP clients for the Swift Package Index and GitHub REST APIs.

Both clients share one ``httpx.AsyncClient`` received via constructor
injection; the lifespan owns the client lifecycle. Responses are memoised
in the ``general`` cache partition. Every upstream failure is translated to
an ``SpmContextError`` here so the tool handlers only deal with one error type.
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from spmcontext.errors import ErrorCode, SpmContextError
from spmcontext.models.upstream import (
    GitHubRelease,
    GitHubRepository,
    SearchResponse,
    SwiftPackageIndexPackage,
)

if TYPE_CHECKING:
    from spmcontext.cache import CacheManager
    from spmcontext.config import UpstreamSettings

log = structlog.get_logger()

PACKAGE_TTL_SECONDS = 3600
REPOSITORY_TTL_SECONDS = 3600
README_TTL_SECONDS = 1800
RELEASE_TTL_SECONDS = 600
MANIFEST_TTL_SECONDS = 1800

_PLATFORM_LABELS: list[tuple[str, str]] = [
    ("ios", "iOS"),
    ("macos", "macOS"),
    ("tvos", "tvOS"),
    ("watchos", "watchOS"),
]


def build_http_client(settings: UpstreamSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    service: str,
    headers: dict[str, str] | None = None,
    params: dict[str, str] | None = None,
) -> Any:
    """GET ``url`` and decode JSON, mapping failures to SpmContextError."""
    try:
        response = await client.get(url, headers=headers, params=params)
    except httpx.HTTPError as exc:
        raise SpmContextError(
            code=ErrorCode.NETWORK_ERROR,
            message=f"Network error calling {service}: {exc}",
            suggestion=f"{service} may be temporarily unreachable. Try again later.",
            recoverable=True,
        ) from exc

    if response.status_code == 404:
        raise SpmContextError(
            code=ErrorCode.PACKAGE_NOT_FOUND,
            message=f"{service} returned 404 for {url}",
            suggestion="Check the package name, or pass it as owner/repo or a GitHub URL.",
            recoverable=False,
        )
    if response.status_code == 429:
        retry_after = response.headers.get("retry-after", "60")
        raise SpmContextError(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=f"{service} rate limit exceeded (retry after {retry_after}s)",
            suggestion="Wait before retrying, or configure a GitHub token to raise the limit.",
            recoverable=True,
        )
    if not response.is_success:
        raise SpmContextError(
            code=ErrorCode.UPSTREAM_ERROR,
            message=f"{service} returned HTTP {response.status_code} for {url}",
            suggestion=f"{service} may be temporarily unavailable.",
            recoverable=True,
        )

    log.debug("upstream_response", service=service, url=url, status_code=response.status_code)
    try:
        return response.json()
    except ValueError as exc:
        raise SpmContextError(
            code=ErrorCode.UPSTREAM_ERROR,
            message=f"{service} returned invalid JSON for {url}",
            suggestion=f"{service} may be temporarily unavailable.",
            recoverable=True,
        ) from exc


def _invalid_payload(service: str, exc: ValidationError) -> SpmContextError:
    return SpmContextError(
        code=ErrorCode.UPSTREAM_ERROR,
        message=f"Unexpected {service} response shape: {exc.error_count()} validation errors",
        suggestion=f"The {service} API may have changed.",
        recoverable=False,
    )


def platforms_of(package: SwiftPackageIndexPackage) -> list[str]:
    """Human-readable minimum platform versions, e.g. ``"iOS 13.0"``."""
    platforms: list[str] = []
    compat = package.platform_compatibility
    for key, label in _PLATFORM_LABELS:
        value = compat.get(key)
        if value and isinstance(value, str):
            platforms.append(f"{label} {value}")
    if compat.get("linux") is True:
        platforms.append("Linux")
    return platforms


def swift_versions_of(package: SwiftPackageIndexPackage) -> list[str]:
    """Supported Swift versions, newest first."""
    return sorted(
        (version for version, supported in package.swift_compatibility.items() if supported),
        reverse=True,
    )


class SwiftPackageIndexClient:
    """Read-only client for the Swift Package Index API."""

    service = "Swift Package Index"

    def __init__(
        self, client: httpx.AsyncClient, cache: CacheManager, settings: UpstreamSettings
    ) -> None:
        self._client = client
        self._cache = cache
        self._base_url = settings.package_index_url.rstrip("/")

    async def get_package(self, owner: str, repo: str) -> SwiftPackageIndexPackage:
        cache_key = f"spi_package:{owner}:{repo}"
        cached = self._cache.get_general(cache_key)
        if cached is not None:
            log.debug("spi_package_cache_hit", owner=owner, repo=repo)
            return cached

        log.info("spi_package_fetching", owner=owner, repo=repo)
        data = await _get_json(
            self._client,
            f"{self._base_url}/packages/{quote(owner)}/{quote(repo)}",
            service=self.service,
            headers={"Accept": "application/json"},
        )
        try:
            package = SwiftPackageIndexPackage.model_validate(data)
        except ValidationError as exc:
            raise _invalid_payload(self.service, exc) from exc

        self._cache.set_general(cache_key, package, PACKAGE_TTL_SECONDS)
        return package

    async def search(self, query: str, limit: int) -> SearchResponse:
        log.info("spi_search", query=query, limit=limit)
        data = await _get_json(
            self._client,
            f"{self._base_url}/search",
            service=self.service,
            headers={"Accept": "application/json"},
            params={"query": query},
        )
        try:
            response = SearchResponse.model_validate(data)
        except ValidationError as exc:
            raise _invalid_payload(self.service, exc) from exc

        response.results = response.results[:limit]
        return response


class GitHubClient:
    """Read-only client for the GitHub REST API (v3)."""

    service = "GitHub"

    def __init__(
        self, client: httpx.AsyncClient, cache: CacheManager, settings: UpstreamSettings
    ) -> None:
        self._client = client
        self._cache = cache
        self._base_url = settings.github_api_url.rstrip("/")
        self._headers = {"Accept": "application/vnd.github.v3+json"}
        if settings.github_token:
            self._headers["Authorization"] = f"Bearer {settings.github_token}"
        else:
            log.warning("github_token_missing", message="GitHub requests may be rate limited")

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await _get_json(
            self._client,
            f"{self._base_url}{path}",
            service=self.service,
            headers=self._headers,
            params=params,
        )

    async def get_repository(self, owner: str, repo: str) -> GitHubRepository:
        cache_key = f"github_repo:{owner}:{repo}"
        cached = self._cache.get_general(cache_key)
        if cached is not None:
            log.debug("github_repo_cache_hit", owner=owner, repo=repo)
            return cached

        log.info("github_repo_fetching", owner=owner, repo=repo)
        data = await self._get(f"/repos/{quote(owner)}/{quote(repo)}")
        try:
            repository = GitHubRepository.model_validate(data)
        except ValidationError as exc:
            raise _invalid_payload(self.service, exc) from exc

        self._cache.set_general(cache_key, repository, REPOSITORY_TTL_SECONDS)
        return repository

    async def get_latest_release(self, owner: str, repo: str) -> GitHubRelease | None:
        """Latest published release, or None when the repository has none."""
        cache_key = f"github_latest_release:{owner}:{repo}"
        # None is a valid cached answer here, so check presence explicitly
        if self._cache.has_general(cache_key):
            return self._cache.get_general(cache_key)

        log.info("github_release_fetching", owner=owner, repo=repo)
        try:
            data = await self._get(f"/repos/{quote(owner)}/{quote(repo)}/releases/latest")
        except SpmContextError as exc:
            if exc.code == ErrorCode.PACKAGE_NOT_FOUND:
                self._cache.set_general(cache_key, None, RELEASE_TTL_SECONDS)
                return None
            raise

        try:
            release = GitHubRelease.model_validate(data)
        except ValidationError as exc:
            raise _invalid_payload(self.service, exc) from exc

        self._cache.set_general(cache_key, release, RELEASE_TTL_SECONDS)
        return release

    async def _get_file(self, path: str, ref: str | None) -> str:
        params = {"ref": ref} if ref else None
        data = await self._get(path, params=params)
        content = data.get("content", "") if isinstance(data, dict) else ""
        if isinstance(data, dict) and data.get("encoding") == "base64":
            return base64.b64decode(content).decode("utf-8", errors="replace")
        return content

    async def get_readme(self, owner: str, repo: str, ref: str | None = None) -> str:
        cache_key = f"github_readme:{owner}:{repo}:{ref or 'default'}"
        cached = self._cache.get_general(cache_key)
        if cached is not None:
            log.debug("github_readme_cache_hit", owner=owner, repo=repo, ref=ref)
            return cached

        log.info("github_readme_fetching", owner=owner, repo=repo, ref=ref)
        content = await self._get_file(f"/repos/{quote(owner)}/{quote(repo)}/readme", ref)
        self._cache.set_general(cache_key, content, README_TTL_SECONDS)
        return content

    async def get_package_swift(self, owner: str, repo: str, ref: str | None = None) -> str | None:
        """Contents of the root ``Package.swift``, or None when there is none."""
        cache_key = f"github_package_swift:{owner}:{repo}:{ref or 'default'}"
        if self._cache.has_general(cache_key):
            return self._cache.get_general(cache_key)

        log.info("github_manifest_fetching", owner=owner, repo=repo, ref=ref)
        try:
            content: str | None = await self._get_file(
                f"/repos/{quote(owner)}/{quote(repo)}/contents/Package.swift", ref
            )
        except SpmContextError as exc:
            if exc.code != ErrorCode.PACKAGE_NOT_FOUND:
                raise
            content = None

        self._cache.set_general(cache_key, content, MANIFEST_TTL_SECONDS)
        return content
