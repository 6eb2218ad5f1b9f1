"""Package name resolution.

Turns the ``package_name`` argument of a tool call into a GitHub
owner/repo pair. Accepts ``owner/repo``, a GitHub URL, or a bare package
name looked up through the package index search.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from rapidfuzz import fuzz, process

from spmcontext.errors import ErrorCode, SpmContextError

if TYPE_CHECKING:
    from spmcontext.models.upstream import SearchHit
    from spmcontext.protocols import PackageIndexProtocol

log = structlog.get_logger()

_GITHUB_URL_RE = re.compile(
    r"^https?://(?:www\.)?github\.com/([A-Za-z0-9._-]+)/([A-Za-z0-9._-]+?)(?:\.git)?/?$"
)
_OWNER_REPO_RE = re.compile(r"^([A-Za-z0-9._-]+)/([A-Za-z0-9._-]+)$")

FUZZY_SCORE_CUTOFF = 85
SEARCH_LIMIT = 20


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    repo: str

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"


def parse_repository_ref(package_name: str) -> RepositoryRef | None:
    """Parse ``owner/repo`` or a GitHub URL. Returns None for bare names."""
    name = package_name.strip()
    match = _GITHUB_URL_RE.match(name) or _OWNER_REPO_RE.match(name)
    if match is None:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return RepositoryRef(owner=owner, repo=repo)


def pick_search_match(package_name: str, hits: list[SearchHit]) -> SearchHit | None:
    """Choose the hit that best names ``package_name``.

    Exact name first, then case-insensitive, then substring containment
    either way, then the best fuzzy match above the cutoff.
    """
    if not hits:
        return None
    for hit in hits:
        if hit.package_name == package_name:
            return hit

    lowered = package_name.lower()
    for hit in hits:
        if hit.package_name.lower() == lowered:
            return hit
    for hit in hits:
        candidate = hit.package_name.lower()
        if candidate in lowered or lowered in candidate:
            return hit

    best = process.extractOne(
        lowered,
        [hit.package_name.lower() for hit in hits],
        scorer=fuzz.ratio,
        score_cutoff=FUZZY_SCORE_CUTOFF,
    )
    if best is None:
        return None
    _, _, index = best
    return hits[index]


async def resolve_package(package_name: str, index: PackageIndexProtocol) -> RepositoryRef:
    """Resolve a tool argument to a repository, searching the index if needed."""
    ref = parse_repository_ref(package_name)
    if ref is not None:
        return ref

    log.debug("package_resolving_via_search", package_name=package_name)
    response = await index.search(package_name, SEARCH_LIMIT)
    hit = pick_search_match(package_name, response.results)
    if hit is None:
        raise SpmContextError(
            code=ErrorCode.PACKAGE_NOT_FOUND,
            message=f"Swift package '{package_name}' not found",
            suggestion="Pass the package as owner/repo or a GitHub URL, or call search_packages.",
            recoverable=False,
        )
    log.debug(
        "package_resolved",
        package_name=package_name,
        owner=hit.repository_owner,
        repo=hit.repository_name,
    )
    return RepositoryRef(owner=hit.repository_owner, repo=hit.repository_name)
