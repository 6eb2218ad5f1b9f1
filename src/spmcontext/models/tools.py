from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from spmcontext.models.readme import InstallationInfo, UsageExample

_VERSION_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+/-]*$")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class GetPackageReadmeInput(BaseModel):
    package_name: str = Field(min_length=1, max_length=200)
    version: str = "latest"
    include_examples: bool = True

    @field_validator("package_name")
    @classmethod
    def strip_package_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("package_name must not be blank")
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        v = v.strip()
        if v != "latest" and not _VERSION_RE.match(v):
            raise ValueError(f"Invalid version: {v!r}")
        return v


class GetPackageInfoInput(BaseModel):
    package_name: str = Field(min_length=1, max_length=200)
    include_dependencies: bool = True
    include_dev_dependencies: bool = False

    @field_validator("package_name")
    @classmethod
    def strip_package_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("package_name must not be blank")
        return v


class SearchPackagesInput(BaseModel):
    query: str = Field(min_length=1, max_length=250)
    limit: int = Field(default=20, ge=1, le=250)
    quality: float | None = Field(default=None, ge=0.0, le=1.0)
    popularity: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be blank")
        return v


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class RepositoryInfo(BaseModel):
    type: str = "git"
    url: str


class DownloadStats(BaseModel):
    # The package index publishes no download counts; GitHub metrics stand in
    stars: int
    forks: int
    issues: int


class PackageBasicInfo(BaseModel):
    name: str
    version: str
    description: str
    summary: str | None = None
    homepage: str | None = None
    documentation_url: str | None = None
    license: str
    author: str
    keywords: list[str] = []
    platforms: list[str] = []
    swift_versions: list[str] = []


class PackageReadmeOutput(BaseModel):
    package_name: str
    version: str
    description: str
    readme_content: str
    usage_examples: list[UsageExample]
    installation: InstallationInfo
    basic_info: PackageBasicInfo
    repository: RepositoryInfo | None = None


class PackageInfoOutput(BaseModel):
    package_name: str
    latest_version: str
    description: str
    author: str
    license: str
    keywords: list[str]
    dependencies: dict[str, str] | None = None
    dev_dependencies: dict[str, str] | None = None
    download_stats: DownloadStats
    repository: RepositoryInfo | None = None
    platforms: list[str] = []
    swift_versions: list[str] = []


class ScoreDetail(BaseModel):
    quality: float
    popularity: float
    maintenance: float


class PackageScore(BaseModel):
    final: float
    detail: ScoreDetail


class PackageSearchResult(BaseModel):
    name: str
    version: str
    description: str
    summary: str | None = None
    keywords: list[str]
    author: str
    license: str
    platforms: list[str] = []
    swift_versions: list[str] = []
    stars: int
    repository_url: str
    score: PackageScore
    search_score: float = 1.0  # The index does not rank its own hits


class SearchPackagesOutput(BaseModel):
    query: str
    total: int
    packages: list[PackageSearchResult]
