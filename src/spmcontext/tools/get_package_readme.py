"""Tool handler for get_package_readme.

Receives AppState, orchestrates cache lookup / upstream fetch / README
parsing, and returns a structured dict. No MCP or FastMCP imports;
server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from spmcontext.errors import ErrorCode, SpmContextError
from spmcontext.models.readme import InstallationInfo
from spmcontext.models.tools import (
    GetPackageReadmeInput,
    PackageBasicInfo,
    PackageReadmeOutput,
    RepositoryInfo,
)
from spmcontext.parser import extract_installation_info, extract_keywords, extract_usage_examples
from spmcontext.resolver import resolve_package
from spmcontext.upstream import platforms_of, swift_versions_of

if TYPE_CHECKING:
    from spmcontext.models.upstream import SwiftPackageIndexPackage
    from spmcontext.resolver import RepositoryRef
    from spmcontext.state import AppState


def _default_spm_snippet(ref: RepositoryRef, version: str) -> str:
    return f'.package(\n    url: "{ref.url}",\n    from: "{version.removeprefix("v")}"\n)'


async def handle(
    package_name: str,
    version: str,
    include_examples: bool,
    state: AppState,
) -> dict:
    """Handle a get_package_readme tool call."""
    log = structlog.get_logger().bind(tool="get_package_readme", package_name=package_name)
    log.info("handler_called", version=version, include_examples=include_examples)

    # Validate input
    try:
        validated = GetPackageReadmeInput(
            package_name=package_name,
            version=version,
            include_examples=include_examples,
        )
    except ValueError as exc:
        raise SpmContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a package name, owner/repo, or GitHub URL and an optional version.",
            recoverable=False,
        ) from exc

    # Cache check. Examples are always cached so the flag only shapes the output.
    output = state.cache.get_package_readme(validated.package_name, validated.version)
    if output is not None:
        log.info("cache_hit")
    else:
        log.info("cache_miss_fetching")
        output = await _fetch(validated, state)
        state.cache.set_package_readme(validated.package_name, validated.version, output)
        log.info(
            "readme_complete",
            version=output.version,
            examples_count=len(output.usage_examples),
        )

    if not validated.include_examples:
        output = output.model_copy(update={"usage_examples": []})
    return output.model_dump(mode="json")


async def _fetch(validated: GetPackageReadmeInput, state: AppState) -> PackageReadmeOutput:
    log = structlog.get_logger().bind(
        tool="get_package_readme", package_name=validated.package_name
    )
    ref = await resolve_package(validated.package_name, state.package_index)

    spi_package: SwiftPackageIndexPackage | None
    try:
        spi_package = await state.package_index.get_package(ref.owner, ref.repo)
    except SpmContextError as exc:
        log.debug("spi_package_unavailable", owner=ref.owner, repo=ref.repo, code=exc.code)
        spi_package = None

    repository = await state.source_host.get_repository(ref.owner, ref.repo)

    target_version = validated.version
    if target_version == "latest":
        release = await state.source_host.get_latest_release(ref.owner, ref.repo)
        target_version = release.tag_name if release else repository.default_branch or "main"

    try:
        readme = await state.source_host.get_readme(ref.owner, ref.repo, ref=target_version)
    except SpmContextError as exc:
        if exc.code == ErrorCode.PACKAGE_NOT_FOUND and validated.version != "latest":
            raise SpmContextError(
                code=ErrorCode.VERSION_NOT_FOUND,
                message=(
                    f"Version '{validated.version}' of Swift package "
                    f"'{validated.package_name}' not found"
                ),
                suggestion="Omit the version to read the latest release.",
                recoverable=False,
            ) from exc
        raise

    examples = extract_usage_examples(readme, state.vocabulary)
    parsed = extract_installation_info(readme)
    installation = InstallationInfo(
        spm=parsed.spm or _default_spm_snippet(ref, target_version),
        carthage=parsed.carthage or f'github "{ref.owner}/{ref.repo}"',
        cocoapods=parsed.cocoapods,
    )

    metadata = spi_package.metadata if spi_package else None
    description = (spi_package.summary if spi_package else None) or repository.description or ""
    basic_info = PackageBasicInfo(
        name=(metadata.name if metadata else None) or repository.name,
        version=target_version,
        description=description,
        summary=spi_package.summary if spi_package else None,
        homepage=repository.homepage or None,
        documentation_url=spi_package.documentation_url if spi_package else None,
        license=(
            (repository.license.name if repository.license else None)
            or (spi_package.license_name if spi_package else None)
            or "Unknown"
        ),
        author=repository.owner.login,
        keywords=(metadata.keywords if metadata else None)
        or extract_keywords(readme, state.vocabulary),
        platforms=platforms_of(spi_package) if spi_package else [],
        swift_versions=swift_versions_of(spi_package) if spi_package else [],
    )

    return PackageReadmeOutput(
        package_name=validated.package_name,
        version=target_version,
        description=description,
        readme_content=readme,
        usage_examples=examples,
        installation=installation,
        basic_info=basic_info,
        repository=RepositoryInfo(url=repository.clone_url or f"{ref.url}.git"),
    )
