"""Tool handler for search_packages.

Receives AppState, orchestrates cache lookup / index search / per-hit
enrichment and scoring, and returns a structured dict. No MCP or FastMCP
imports; server.py handles the MCP wiring.
"""

from __future__ import annotations

import asyncio
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

import structlog

from spmcontext.errors import ErrorCode, SpmContextError
from spmcontext.models.tools import (
    PackageScore,
    PackageSearchResult,
    ScoreDetail,
    SearchPackagesInput,
    SearchPackagesOutput,
)
from spmcontext.upstream import platforms_of, swift_versions_of

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from spmcontext.models.upstream import GitHubRepository, SearchHit, SwiftPackageIndexPackage
    from spmcontext.state import AppState

T = TypeVar("T")

# Upper bound on concurrent per-hit enrichment requests
ENRICHMENT_CONCURRENCY = 5


def popularity_score(stars: int) -> float:
    """log10-scaled star count, saturating at 10k stars."""
    return min(1.0, math.log10(stars + 1) / 4)


def quality_score(
    hit: SearchHit,
    package: SwiftPackageIndexPackage | None,
    repository: GitHubRepository | None,
) -> float:
    """Weighted checklist: docs, description, license, keywords, releases."""
    score = 0.0
    if (package is not None and package.documentation_url) or hit.has_docs:
        score += 0.3
    if hit.summary and len(hit.summary) > 20:
        score += 0.2
    if (package is not None and package.license_name) or (
        repository is not None and repository.license is not None and repository.license.name
    ):
        score += 0.2
    if hit.keywords or (repository is not None and repository.topics):
        score += 0.1
    if package is not None and package.latest_version:
        score += 0.2
    return round(score, 6)


def _recency_points(moment: datetime | None, now: datetime, steps: tuple[float, ...]) -> float:
    """Points for activity within 30 / 90 / 365 days."""
    if moment is None:
        return 0.0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    days = (now - moment).total_seconds() / 86400
    for limit, points in zip((30, 90, 365), steps, strict=True):
        if days < limit:
            return points
    return 0.0


def maintenance_score(
    hit: SearchHit,
    repository: GitHubRepository | None,
    now: datetime | None = None,
) -> float:
    """Weighted checklist: recent index activity, recent pushes, issue ratio."""
    now = now or datetime.now(UTC)
    score = _recency_points(hit.last_activity_at, now, (0.4, 0.3, 0.2))

    if repository is not None:
        score += _recency_points(repository.pushed_at, now, (0.3, 0.2, 0.1))
        stars = repository.stargazers_count
        ratio = repository.open_issues_count / stars if stars > 0 else 0.0
        if ratio < 0.1:
            score += 0.3
        elif ratio < 0.2:
            score += 0.2
        elif ratio < 0.5:
            score += 0.1
    return round(score, 6)


async def _optional(awaitable: Awaitable[T]) -> T | None:
    """Await an upstream call, mapping expected upstream failures to None."""
    try:
        return await awaitable
    except SpmContextError as exc:
        structlog.get_logger().debug("search_enrichment_unavailable", code=exc.code)
        return None


async def _score_hit(
    hit: SearchHit,
    validated: SearchPackagesInput,
    state: AppState,
    semaphore: asyncio.Semaphore,
) -> PackageSearchResult | None:
    async with semaphore:
        package, repository = await asyncio.gather(
            _optional(state.package_index.get_package(hit.repository_owner, hit.repository_name)),
            _optional(state.source_host.get_repository(hit.repository_owner, hit.repository_name)),
        )

    stars = (repository.stargazers_count if repository else 0) or hit.stars or 0
    popularity = popularity_score(stars)
    quality = quality_score(hit, package, repository)
    maintenance = maintenance_score(hit, repository)

    if validated.quality is not None and quality < validated.quality:
        return None
    if validated.popularity is not None and popularity < validated.popularity:
        return None

    return PackageSearchResult(
        name=hit.package_name,
        version=(package.latest_version if package else None) or "unknown",
        description=hit.summary or (repository.description if repository else None) or "",
        summary=hit.summary,
        keywords=hit.keywords or (repository.topics if repository else []),
        author=hit.repository_owner,
        license=(package.license_name if package else None)
        or (repository.license.name if repository and repository.license else None)
        or "Unknown",
        platforms=platforms_of(package) if package else [],
        swift_versions=swift_versions_of(package) if package else [],
        stars=stars,
        repository_url=f"https://github.com/{hit.repository_owner}/{hit.repository_name}",
        score=PackageScore(
            final=(popularity + quality + maintenance) / 3,
            detail=ScoreDetail(quality=quality, popularity=popularity, maintenance=maintenance),
        ),
    )


async def handle(
    query: str,
    limit: int,
    quality: float | None,
    popularity: float | None,
    state: AppState,
) -> dict:
    """Handle a search_packages tool call."""
    log = structlog.get_logger().bind(tool="search_packages", query=query)
    log.info("handler_called", limit=limit, quality=quality, popularity=popularity)

    # Validate input
    try:
        validated = SearchPackagesInput(
            query=query,
            limit=limit,
            quality=quality,
            popularity=popularity,
        )
    except ValueError as exc:
        raise SpmContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a non-empty query, limit 1-250, and scores between 0 and 1.",
            recoverable=False,
        ) from exc

    query_hash = state.cache.create_query_hash(
        validated.query,
        {
            "limit": validated.limit,
            "quality": validated.quality,
            "popularity": validated.popularity,
        },
    )
    cached = state.cache.get_search_results(query_hash, validated.limit)
    if cached is not None:
        log.info("cache_hit")
        return cached.model_dump(mode="json")

    log.info("cache_miss_fetching")
    response = await state.package_index.search(validated.query, validated.limit)

    semaphore = asyncio.Semaphore(ENRICHMENT_CONCURRENCY)
    scored = await asyncio.gather(
        *(_score_hit(hit, validated, state, semaphore) for hit in response.results)
    )
    results = sorted(
        (result for result in scored if result is not None),
        key=lambda result: result.score.final,
        reverse=True,
    )[: validated.limit]

    output = SearchPackagesOutput(
        query=validated.query,
        total=len(results) + 1 if response.has_more_results else len(results),
        packages=results,
    )
    state.cache.set_search_results(query_hash, validated.limit, output)
    log.info("search_complete", results_count=len(results), total=output.total)
    return output.model_dump(mode="json")
