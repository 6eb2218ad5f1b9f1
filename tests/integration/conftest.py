"""Integration test fixtures.

Provides a fully wired AppState: real upstream clients over an httpx client
whose traffic is served by respx routes for a small set of packages.
"""

from __future__ import annotations

import base64
import os
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from spmcontext.config import Settings, UpstreamSettings
from spmcontext.state import AppState
from spmcontext.upstream import GitHubClient, SwiftPackageIndexClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from spmcontext.cache import CacheManager

SPI = "https://swiftpackageindex.com/api"
GH = "https://api.github.com"

README = """\
# Alamofire

Alamofire is an HTTP networking library written in Swift.

## Usage

Make a request and print the response:

```swift
AF.request("https://httpbin.org/get").response { response in
    debugPrint(response)
}
```

## Installation

### Swift Package Manager

```swift
dependencies: [
    .package(url: "https://github.com/Alamofire/Alamofire.git", .upToNextMajor(from: "5.9.1"))
]
```

### CocoaPods

```ruby
pod 'Alamofire', '~> 5.9'
```
"""

MANIFEST = """\
// swift-tools-version:5.7
import PackageDescription

let package = Package(
    name: "Alamofire",
    dependencies: [
        .package(url: "https://github.com/apple/swift-docc-plugin", from: "1.3.0"),
    ]
)
"""

PACKAGE_PAYLOAD = {
    "url": "https://github.com/Alamofire/Alamofire.git",
    "summary": "Elegant HTTP Networking in Swift",
    "repository_owner": "Alamofire",
    "repository_name": "Alamofire",
    "latest_version": "5.9.1",
    "license_name": "MIT",
    "stars": 40000,
    "documentation_url": "https://swiftpackageindex.com/Alamofire/Alamofire/documentation",
    "swift_compatibility": {"5.8": True, "5.9": True, "5.10": False},
    "platform_compatibility": {"ios": "12.0", "macos": "10.13", "linux": True},
}

REPO_PAYLOAD = {
    "name": "Alamofire",
    "full_name": "Alamofire/Alamofire",
    "description": "Elegant HTTP Networking in Swift",
    "html_url": "https://github.com/Alamofire/Alamofire",
    "clone_url": "https://github.com/Alamofire/Alamofire.git",
    "stargazers_count": 40000,
    "forks_count": 7500,
    "open_issues_count": 40,
    "license": {"key": "mit", "name": "MIT License"},
    "topics": ["networking", "swift"],
    "default_branch": "master",
    "pushed_at": "2026-09-01T10:00:00Z",
    "owner": {"login": "Alamofire"},
}

IMAGE_REPO_PAYLOAD = {
    "name": "AlamofireImage",
    "description": "Image component library for Alamofire",
    "clone_url": "https://github.com/Alamofire/AlamofireImage.git",
    "stargazers_count": 4000,
    "open_issues_count": 2000,
    "owner": {"login": "Alamofire"},
}

SEARCH_PAYLOAD = {
    "hasMoreResults": True,
    "results": [
        {
            "packageId": "1",
            "packageName": "Alamofire",
            "repositoryOwner": "Alamofire",
            "repositoryName": "Alamofire",
            "summary": "Elegant HTTP Networking in Swift",
            "stars": 40000,
            "hasDocs": True,
            "keywords": ["networking"],
        },
        {
            "packageId": "2",
            "packageName": "AlamofireImage",
            "repositoryOwner": "Alamofire",
            "repositoryName": "AlamofireImage",
            "summary": "Image component library for Alamofire",
            "stars": 4000,
        },
    ],
}


def _contents(text: str) -> dict[str, str]:
    return {"content": base64.b64encode(text.encode("utf-8")).decode("ascii"), "encoding": "base64"}


@pytest.fixture()
def upstream() -> Iterator[respx.MockRouter]:
    """respx routes for the Alamofire packages on both upstream APIs."""
    with respx.mock(assert_all_called=False) as router:
        router.get(f"{SPI}/search", name="search").mock(
            return_value=httpx.Response(200, json=SEARCH_PAYLOAD)
        )
        router.get(f"{SPI}/packages/Alamofire/Alamofire").mock(
            return_value=httpx.Response(200, json=PACKAGE_PAYLOAD)
        )
        router.get(f"{SPI}/packages/Alamofire/AlamofireImage").mock(
            return_value=httpx.Response(404)
        )
        router.get(f"{GH}/repos/Alamofire/Alamofire").mock(
            return_value=httpx.Response(200, json=REPO_PAYLOAD)
        )
        router.get(f"{GH}/repos/Alamofire/AlamofireImage", name="image_repo").mock(
            return_value=httpx.Response(200, json=IMAGE_REPO_PAYLOAD)
        )
        router.get(f"{GH}/repos/Alamofire/Alamofire/releases/latest", name="release").mock(
            return_value=httpx.Response(200, json={"tag_name": "5.9.1"})
        )
        # Specific ref first: routes are matched in the order they are added
        router.get(
            f"{GH}/repos/Alamofire/Alamofire/readme", params={"ref": "9.9.9"}
        ).mock(return_value=httpx.Response(404))
        router.get(f"{GH}/repos/Alamofire/Alamofire/readme", name="readme").mock(
            return_value=httpx.Response(200, json=_contents(README))
        )
        router.get(
            f"{GH}/repos/Alamofire/Alamofire/contents/Package.swift", name="manifest"
        ).mock(return_value=httpx.Response(200, json=_contents(MANIFEST)))
        yield router


@pytest.fixture()
async def app_state(
    upstream: respx.MockRouter, cache_manager: CacheManager
) -> AsyncIterator[AppState]:
    """Full AppState wired against the mocked upstream APIs."""
    settings = Settings(upstream=UpstreamSettings(github_token="ghp_test"))
    async with httpx.AsyncClient() as client:
        yield AppState(
            settings=settings,
            cache=cache_manager,
            package_index=SwiftPackageIndexClient(client, cache_manager, settings.upstream),
            source_host=GitHubClient(client, cache_manager, settings.upstream),
            http_client=client,
        )


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Points both upstream APIs at an unroutable address so nothing reaches the
    network, and isolates the platform config dir.
    """
    env = os.environ.copy()
    env["SPMCONTEXT__UPSTREAM__PACKAGE_INDEX_URL"] = "http://127.0.0.1:1"
    env["SPMCONTEXT__UPSTREAM__GITHUB_API_URL"] = "http://127.0.0.1:1"
    env["SPMCONTEXT__LOGGING__FORMAT"] = "json"
    env["XDG_CONFIG_HOME"] = str(tmp_path)
    return env
