from __future__ import annotations

from spmcontext.models.cache import CacheStats
from spmcontext.models.readme import InstallationInfo, UsageExample
from spmcontext.models.tools import (
    DownloadStats,
    GetPackageInfoInput,
    GetPackageReadmeInput,
    PackageBasicInfo,
    PackageInfoOutput,
    PackageReadmeOutput,
    PackageSearchResult,
    RepositoryInfo,
    SearchPackagesInput,
    SearchPackagesOutput,
)

__all__ = [
    # cache
    "CacheStats",
    # readme
    "UsageExample",
    "InstallationInfo",
    # tools
    "GetPackageReadmeInput",
    "GetPackageInfoInput",
    "SearchPackagesInput",
    "PackageReadmeOutput",
    "PackageInfoOutput",
    "SearchPackagesOutput",
    "PackageSearchResult",
    "PackageBasicInfo",
    "RepositoryInfo",
    "DownloadStats",
]
