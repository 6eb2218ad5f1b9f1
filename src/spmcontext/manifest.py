"""Dependency extraction from ``Package.swift`` manifests."""

from __future__ import annotations

import re

import structlog

log = structlog.get_logger()

_PACKAGE_CALL_RE = re.compile(r'\.package\s*\(\s*url:\s*"([^"]+)"\s*,\s*([^)]+)\)')
_FROM_RE = re.compile(r'from:\s*"([^"]+)"')
_EXACT_RE = re.compile(r'exact:\s*"([^"]+)"')
_UP_TO_NEXT_MAJOR_RE = re.compile(r'\.upToNextMajor\(from:\s*"([^"]+)"')


def _requirement(spec: str) -> str:
    if ".upToNextMajor" in spec:
        match = _UP_TO_NEXT_MAJOR_RE.search(spec)
        if match:
            return f"^{match.group(1)}"
    elif "from:" in spec:
        match = _FROM_RE.search(spec)
        if match:
            return f">={match.group(1)}"
    elif "exact:" in spec:
        match = _EXACT_RE.search(spec)
        if match:
            return match.group(1)
    return "latest"


def _package_name(url: str) -> str:
    name = url.rstrip("/").rsplit("/", 1)[-1]
    return name[: -len(".git")] if name.endswith(".git") else name


def parse_dependencies(manifest: str) -> dict[str, str]:
    """Map dependency package name to a version requirement.

    ``from: "1.2.0"`` → ``">=1.2.0"``, ``exact: "1.2.0"`` → ``"1.2.0"``,
    ``.upToNextMajor(from: "1.2.0")`` → ``"^1.2.0"``, anything else → ``"latest"``.
    """
    dependencies: dict[str, str] = {}
    for match in _PACKAGE_CALL_RE.finditer(manifest):
        url, spec = match.group(1), match.group(2)
        name = _package_name(url)
        if name:
            dependencies[name] = _requirement(spec)
    log.debug("manifest_dependencies_parsed", count=len(dependencies))
    return dependencies
