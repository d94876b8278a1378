"""Fetches the documents a build publishes to the artifact repository.

Every document lives at ``<artifact-base>/verify-<slug>/<file>``. HTTP 404
means "not published yet" and is the only tolerated failure: required
documents raise ``ArtifactNotFoundError`` (the caller skips the build),
optional ones return ``None``. Any other HTTP error or transport failure
propagates and aborts the run.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from verifiedindex.models.programs import Build, BuildInfo

logger = logging.getLogger(__name__)

_STRING_MAP = TypeAdapter(dict[str, str])
_SIZE_MAP = TypeAdapter(dict[str, int])
_JSON_OBJECT = TypeAdapter(dict[str, Any])


class ArtifactNotFoundError(RuntimeError):
    """Raised when a required build document returns HTTP 404."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Not found: {url}")
        self.url = url


class MalformedDocumentError(RuntimeError):
    """Raised when a fetched document is not valid JSON of the expected shape."""


class FetchedBuild(BaseModel):
    """The four per-build documents, as fetched."""

    model_config = ConfigDict(frozen=True)

    addresses: dict[str, str]
    checksums: dict[str, str]  # checksum -> path
    info: BuildInfo | None = None
    sizes: dict[str, int] | None = None  # path -> bytes


class ArtifactFetcher:
    """Reads build documents from the artifact repository.

    Parameters
    ----------
    client:
        An open ``httpx.AsyncClient``; the caller owns its lifecycle.
    artifact_base_url:
        Raw-content root of the artifact repository, e.g.
        ``https://raw.githubusercontent.com/DeployDAO/verified-program-artifacts``.
    """

    def __init__(self, client: httpx.AsyncClient, artifact_base_url: str) -> None:
        self._client = client
        self._base = artifact_base_url.rstrip("/")

    def artifact_url(self, build: Build, file: str) -> str:
        return f"{self._base}/verify-{build.slug}/{file}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get_json(self, url: str) -> Any:
        response = await self._client.get(url)
        if response.status_code == 404:
            raise ArtifactNotFoundError(url)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedDocumentError(f"{url}: response is not JSON") from exc

    async def _get_optional_json(self, url: str) -> Any | None:
        try:
            return await self._get_json(url)
        except ArtifactNotFoundError:
            return None

    @staticmethod
    def _validate(adapter: TypeAdapter, payload: Any, url: str) -> Any:
        try:
            return adapter.validate_python(payload)
        except ValidationError as exc:
            raise MalformedDocumentError(f"{url}: unexpected document shape: {exc}") from exc

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def fetch_build_addresses(self, build: Build) -> dict[str, str]:
        """Program name -> deployed address. Required."""
        url = self.artifact_url(build, "addresses.json")
        return self._validate(_STRING_MAP, await self._get_json(url), url)

    async def fetch_build_checksums(self, build: Build) -> dict[str, str]:
        """Checksum -> artifact path. Required."""
        url = self.artifact_url(build, "checksums.json")
        return self._validate(_STRING_MAP, await self._get_json(url), url)

    async def fetch_build_info(self, build: Build) -> BuildInfo | None:
        url = self.artifact_url(build, "build-info.json")
        payload = await self._get_optional_json(url)
        if payload is None:
            return None
        try:
            return BuildInfo.model_validate(payload)
        except ValidationError as exc:
            raise MalformedDocumentError(f"{url}: unexpected document shape: {exc}") from exc

    async def fetch_sizes(self, build: Build) -> dict[str, int] | None:
        """Path -> size in bytes. Sizes are published as strings."""
        url = self.artifact_url(build, "sizes.json")
        payload = await self._get_optional_json(url)
        if payload is None:
            return None
        return self._validate(_SIZE_MAP, payload, url)

    async def fetch_idl(self, build: Build, program_name: str) -> dict[str, Any] | None:
        url = self.artifact_url(build, f"idl/{program_name}.json")
        payload = await self._get_optional_json(url)
        if payload is None:
            logger.warning(
                "Could not find IDL for %s in %s %s", program_name, build.repo, build.tag
            )
            return None
        return self._validate(_JSON_OBJECT, payload, url)

    async def fetch_build(self, build: Build) -> FetchedBuild:
        """Fetch all per-build documents, one request at a time."""
        addresses = await self.fetch_build_addresses(build)
        checksums = await self.fetch_build_checksums(build)
        info = await self.fetch_build_info(build)
        sizes = await self.fetch_sizes(build)
        return FetchedBuild(
            addresses=addresses,
            checksums=checksums,
            info=info,
            sizes=sizes,
        )
