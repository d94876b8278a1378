"""Build, artifact, program and release records (all frozen).

Records serialize with camelCase keys (``repoName``, ``downloadURL``,
``trimmedArtifact``...) because the JSON index is consumed by clients that
expect that shape. Always dump with ``by_alias=True``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from verifiedindex.models.declarations import VerifiedOrganization


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to the JSON-compatible shape written into the index."""
        return self.model_dump(mode="json", by_alias=True)


class Build(_Record):
    """Identifier of a verified program build: one (repository, tag) pair."""

    slug: str  # "<org>__<repo>-<tag>"
    org: str
    repo_name: str
    source: str
    tag: str

    @property
    def repo(self) -> str:
        return f"{self.org}/{self.repo_name}"


class BuildInfo(_Record):
    """Miscellaneous information about a build (``build-info.json``)."""

    anchor_version: str
    created_at: str
    repo: str
    tag: str
    slug: str


class ArtifactInfo(_Record):
    """A single file produced by a build."""

    path: str  # relative to the build's output tree
    checksum: str
    size: int | None = None
    download_url: str = Field(alias="downloadURL")


class Author(_Record):
    """Author of a build: the GitHub organization plus verified info."""

    name: str
    info: VerifiedOrganization | None = None


class BuildDetails(_Record):
    """Full description of a verified program build."""

    build: Build
    addresses: dict[str, str]
    info: BuildInfo | None = None
    artifacts: list[ArtifactInfo]
    workspace_url: str = Field(alias="workspaceURL")
    author: Author


class GithubRef(_Record):
    organization: str
    repo: str


class ProgramInfo(_Record):
    """A program published to the registry.

    ``id`` (``org/repoName/programName``) is stable across releases.
    """

    id: str
    name: str
    label: str
    address: str
    author: Author
    github: GithubRef


class VerifiableProgramRelease(_Record):
    """One program at one tag, linked to the build that produced it.

    ``id`` is in the form ``@org/programName@tag``.
    """

    id: str
    program: ProgramInfo
    artifact: ArtifactInfo
    trimmed_artifact: ArtifactInfo
    idl: ArtifactInfo | None = None
    build: BuildDetails


class ProgramDetails(_Record):
    """A program and every known release of it."""

    program: ProgramInfo
    releases: list[VerifiableProgramRelease]


class IndexSummary(_Record):
    """Top-level counts written to ``summary.json``."""

    last_updated: datetime
    artifact_count: int
    organization_count: int
    repository_count: int
    program_count: int
