"""Payload models for the Swift Package Index and GitHub REST APIs.

Only the fields the tool handlers read are declared; everything else in the
upstream JSON is ignored.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PackageDependency(BaseModel):
    package_name: str = ""
    requirement: str = ""


class PackageMetadata(BaseModel):
    name: str | None = None
    summary: str | None = None
    description: str | None = None
    keywords: list[str] = []
    dependencies: list[PackageDependency] = []


class SwiftPackageIndexPackage(BaseModel):
    """``GET /packages/{owner}/{repo}`` response."""

    url: str = ""
    summary: str | None = None
    repository_owner: str = ""
    repository_name: str = ""
    latest_version: str | None = None
    license_name: str | None = None
    stars: int | None = None
    documentation_url: str | None = None
    swift_compatibility: dict[str, bool] = {}
    # Version string per platform, except ``linux`` which is a bool
    platform_compatibility: dict[str, str | bool] = {}
    metadata: PackageMetadata | None = None


class SearchHit(BaseModel):
    """Single result of ``GET /search``."""

    model_config = ConfigDict(populate_by_name=True)

    package_id: str = Field(default="", alias="packageId")
    package_name: str = Field(alias="packageName")
    repository_owner: str = Field(alias="repositoryOwner")
    repository_name: str = Field(alias="repositoryName")
    summary: str | None = None
    stars: int | None = None
    last_activity_at: datetime | None = Field(default=None, alias="lastActivityAt")
    has_docs: bool = Field(default=False, alias="hasDocs")
    keywords: list[str] = []


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_more_results: bool = Field(default=False, alias="hasMoreResults")
    results: list[SearchHit] = []


class GitHubOwner(BaseModel):
    login: str


class GitHubLicense(BaseModel):
    key: str = ""
    name: str = ""


class GitHubRepository(BaseModel):
    """``GET /repos/{owner}/{repo}`` response."""

    name: str
    full_name: str = ""
    description: str | None = None
    html_url: str = ""
    clone_url: str = ""
    homepage: str | None = None
    stargazers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    license: GitHubLicense | None = None
    topics: list[str] = []
    default_branch: str | None = None
    pushed_at: datetime | None = None
    owner: GitHubOwner


class GitHubRelease(BaseModel):
    tag_name: str
    name: str | None = None
    published_at: datetime | None = None
