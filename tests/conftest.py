"""Shared test fixtures for verifiedindex."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml

from verifiedindex.config import IndexSettings
from verifiedindex.core.fetcher import FetchedBuild
from verifiedindex.core.reconciler import ArtifactLocation

ARTIFACT_REPO = "DeployDAO/verified-program-artifacts"
ARTIFACT_BASE = f"https://raw.githubusercontent.com/{ARTIFACT_REPO}"
SOURCE_HOST = "https://raw.githubusercontent.com"


class FakeArtifactRepo:
    """In-memory artifact repository served through ``httpx.MockTransport``.

    Unknown URLs answer 404, like the raw-content host does for branches that
    were never published.
    """

    def __init__(self) -> None:
        self.responses: dict[str, tuple[int, dict[str, Any]]] = {}
        self.requested: list[str] = []

    def add(self, url: str, payload: Any, status_code: int = 200) -> None:
        self.responses[url] = (status_code, {"json": payload})

    def add_text(self, url: str, text: str, status_code: int = 200) -> None:
        self.responses[url] = (status_code, {"text": text})

    def fail(self, url: str, status_code: int) -> None:
        self.responses[url] = (status_code, {"text": "error"})

    def build_url(self, slug: str, file: str) -> str:
        return f"{ARTIFACT_BASE}/verify-{slug}/{file}"

    def add_build(
        self,
        slug: str,
        *,
        addresses: dict[str, str],
        checksums: dict[str, str],
        info: dict[str, Any] | None = None,
        sizes: dict[str, str] | None = None,
        idls: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.add(self.build_url(slug, "addresses.json"), addresses)
        self.add(self.build_url(slug, "checksums.json"), checksums)
        if info is not None:
            self.add(self.build_url(slug, "build-info.json"), info)
        if sizes is not None:
            self.add(self.build_url(slug, "sizes.json"), sizes)
        for name, idl in (idls or {}).items():
            self.add(self.build_url(slug, f"idl/{name}.json"), idl)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        status_code, body = self.responses.get(url, (404, {"text": "404: Not Found"}))
        return httpx.Response(status_code, **body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def program_checksums(program: str, tag: str, *, trimmed: bool = True, idl: bool = True) -> dict[str, str]:
    """Checksum document for a single-program build; checksums embed the tag."""
    checksums = {
        f"src-{tag}": "release.tar.gz",
        f"bin-{program}-{tag}": f"artifacts/verifiable/{program}.so",
    }
    if trimmed:
        checksums[f"trim-{program}-{tag}"] = f"artifacts/verifiable-trimmed/{program}.so"
    if idl:
        checksums[f"idl-{program}-{tag}"] = f"artifacts/idl/{program}.json"
    return checksums


@pytest.fixture
def artifact_repo() -> FakeArtifactRepo:
    """Provide an empty fake artifact repository."""
    return FakeArtifactRepo()


@pytest.fixture
def location() -> ArtifactLocation:
    return ArtifactLocation(artifact_repo=ARTIFACT_REPO, artifact_base_url=ARTIFACT_BASE)


@pytest.fixture
def write_declarations(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """Factory fixture: write programs.yml / organizations.yml into tmp_path."""

    def _factory(
        programs: dict[str, list[str]],
        organizations: dict[str, dict[str, Any]] | None = None,
    ) -> tuple[Path, Path]:
        programs_path = tmp_path / "programs.yml"
        organizations_path = tmp_path / "organizations.yml"
        programs_path.write_text(yaml.safe_dump(programs), encoding="utf-8")
        organizations_path.write_text(yaml.safe_dump(organizations or {}), encoding="utf-8")
        return programs_path, organizations_path

    return _factory


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., IndexSettings]:
    """Factory fixture: IndexSettings rooted in tmp_path."""

    def _factory(**overrides: Any) -> IndexSettings:
        defaults: dict[str, Any] = {
            "programs_path": tmp_path / "programs.yml",
            "organizations_path": tmp_path / "organizations.yml",
            "index_dir": tmp_path / "index",
            "workflows_dir": tmp_path / "out" / ".github" / "workflows",
            "manifest_cache_dir": tmp_path / "cache",
            "artifact_repo": ARTIFACT_REPO,
            "artifact_host": "https://raw.githubusercontent.com",
            "source_host": SOURCE_HOST,
        }
        defaults.update(overrides)
        return IndexSettings(**defaults)

    return _factory


@pytest.fixture
def make_fetched() -> Callable[..., FetchedBuild]:
    """Factory fixture: FetchedBuild for a single-program build."""

    def _factory(
        program: str = "token_swap",
        tag: str = "v1.0.0",
        address: str = "Swap111111111111111111111111111111111111111",
        **overrides: Any,
    ) -> FetchedBuild:
        defaults: dict[str, Any] = {
            "addresses": {program: address},
            "checksums": program_checksums(program, tag),
        }
        defaults.update(overrides)
        return FetchedBuild(**defaults)

    return _factory


def read_json(path: Path) -> Any:
    return json.loads(path.read_bytes())


@pytest.fixture
def load_json() -> Callable[[Path], Any]:
    return read_json


@pytest.fixture
def checksums_for() -> Callable[..., dict[str, str]]:
    return program_checksums
