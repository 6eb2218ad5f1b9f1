"""Tool handler for get_package_info.

Receives AppState, orchestrates cache lookup / upstream fetch / manifest
parsing, and returns a structured dict. No MCP or FastMCP imports;
server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from spmcontext.errors import ErrorCode, SpmContextError
from spmcontext.manifest import parse_dependencies
from spmcontext.models.tools import (
    DownloadStats,
    GetPackageInfoInput,
    PackageInfoOutput,
    RepositoryInfo,
)
from spmcontext.resolver import resolve_package
from spmcontext.upstream import platforms_of, swift_versions_of

if TYPE_CHECKING:
    from spmcontext.models.upstream import SwiftPackageIndexPackage
    from spmcontext.resolver import RepositoryRef
    from spmcontext.state import AppState


async def handle(
    package_name: str,
    include_dependencies: bool,
    include_dev_dependencies: bool,
    state: AppState,
) -> dict:
    """Handle a get_package_info tool call."""
    log = structlog.get_logger().bind(tool="get_package_info", package_name=package_name)
    log.info(
        "handler_called",
        include_dependencies=include_dependencies,
        include_dev_dependencies=include_dev_dependencies,
    )

    # Validate input
    try:
        validated = GetPackageInfoInput(
            package_name=package_name,
            include_dependencies=include_dependencies,
            include_dev_dependencies=include_dev_dependencies,
        )
    except ValueError as exc:
        raise SpmContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a package name, owner/repo, or GitHub URL.",
            recoverable=False,
        ) from exc

    cache_key = (
        f"{validated.package_name}:{validated.include_dependencies}:"
        f"{validated.include_dev_dependencies}"
    )
    cached = state.cache.get_package_info(cache_key, "latest")
    if cached is not None:
        log.info("cache_hit")
        return cached.model_dump(mode="json")

    log.info("cache_miss_fetching")
    ref = await resolve_package(validated.package_name, state.package_index)

    spi_package: SwiftPackageIndexPackage | None
    try:
        spi_package = await state.package_index.get_package(ref.owner, ref.repo)
    except SpmContextError as exc:
        log.debug("spi_package_unavailable", owner=ref.owner, repo=ref.repo, code=exc.code)
        spi_package = None

    repository = await state.source_host.get_repository(ref.owner, ref.repo)

    release = await state.source_host.get_latest_release(ref.owner, ref.repo)
    if release is not None:
        latest_version = release.tag_name
    elif spi_package is not None and spi_package.latest_version:
        latest_version = spi_package.latest_version
    else:
        latest_version = "unknown"

    dependencies: dict[str, str] | None = None
    if validated.include_dependencies:
        dependencies = await _dependencies(ref, spi_package, state)

    metadata = spi_package.metadata if spi_package else None
    output = PackageInfoOutput(
        package_name=validated.package_name,
        latest_version=latest_version,
        description=(spi_package.summary if spi_package else None)
        or repository.description
        or "",
        author=repository.owner.login,
        license=(
            (repository.license.name if repository.license else None)
            or (spi_package.license_name if spi_package else None)
            or "Unknown"
        ),
        keywords=(metadata.keywords if metadata else None) or repository.topics,
        dependencies=dependencies,
        # SwiftPM manifests do not separate development dependencies
        dev_dependencies=None,
        download_stats=DownloadStats(
            stars=repository.stargazers_count,
            forks=repository.forks_count,
            issues=repository.open_issues_count,
        ),
        repository=RepositoryInfo(url=repository.clone_url or f"{ref.url}.git"),
        platforms=platforms_of(spi_package) if spi_package else [],
        swift_versions=swift_versions_of(spi_package) if spi_package else [],
    )

    state.cache.set_package_info(cache_key, "latest", output)
    log.info(
        "package_info_complete",
        latest_version=latest_version,
        dependencies_count=len(dependencies) if dependencies else 0,
    )
    return output.model_dump(mode="json")


async def _dependencies(
    ref: RepositoryRef,
    spi_package: SwiftPackageIndexPackage | None,
    state: AppState,
) -> dict[str, str] | None:
    """Index metadata first, then the repository's Package.swift.

    Non-fatal: a failed manifest fetch is logged and yields None.
    """
    metadata = spi_package.metadata if spi_package else None
    if metadata is not None:
        from_index = {
            dep.package_name: dep.requirement
            for dep in metadata.dependencies
            if dep.package_name and dep.requirement
        }
        if from_index:
            return from_index

    try:
        manifest = await state.source_host.get_package_swift(ref.owner, ref.repo)
    except SpmContextError as exc:
        structlog.get_logger().warning(
            "manifest_fetch_failed", owner=ref.owner, repo=ref.repo, code=exc.code
        )
        return None

    if not manifest:
        return None
    return parse_dependencies(manifest) or None
