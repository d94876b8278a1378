"""Release/program reconciliation — turns fetched build documents into records.

Everything in this module is pure: the driver owns the accumulated programs
and releases and threads them through ``merge_programs`` and
``group_releases``.

Latest policy: the latest tag of a repository is the *last tag declared* for
it in ``programs.yml``. Tags are never compared as versions.

Program identity is first-seen-wins: the first build that publishes a program
defines its canonical ``ProgramInfo`` (label and address). Later releases keep
their own ``program`` snapshot but never replace the registered one, so a
registered address can lag behind a redeployed program.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Mapping

from pydantic import BaseModel, ConfigDict

from verifiedindex.core.builds import make_program_label
from verifiedindex.core.fetcher import FetchedBuild, MalformedDocumentError
from verifiedindex.models.declarations import VerifiedOrganization
from verifiedindex.models.programs import (
    ArtifactInfo,
    Author,
    Build,
    BuildDetails,
    GithubRef,
    ProgramDetails,
    ProgramInfo,
    VerifiableProgramRelease,
)

VERIFIABLE_DIR = "artifacts/verifiable/"
TRIMMED_DIR = "artifacts/verifiable-trimmed/"
IDL_DIR = "artifacts/idl/"
BINARY_EXTENSION = ".so"

# The CI publishes ``artifacts/`` as the root of the build's branch.
_PUBLISHED_ROOT = "artifacts/"


class MissingRequiredArtifactError(RuntimeError):
    """Raised when a program binary has no trimmed counterpart."""


class ArtifactLocation(BaseModel):
    """Where a build's published files can be browsed and downloaded."""

    model_config = ConfigDict(frozen=True)

    artifact_repo: str  # "DeployDAO/verified-program-artifacts"
    artifact_base_url: str  # raw-content root of artifact_repo

    def published_file(self, path: str) -> str:
        return path.removeprefix(_PUBLISHED_ROOT)

    def raw_url(self, build: Build, path: str) -> str:
        return f"{self.artifact_base_url.rstrip('/')}/verify-{build.slug}/{self.published_file(path)}"

    def download_url(self, build: Build, path: str) -> str:
        if path.endswith(BINARY_EXTENSION):
            file = self.published_file(path)
            return f"https://github.com/{self.artifact_repo}/raw/verify-{build.slug}/{file}"
        return self.raw_url(build, path)

    def workspace_url(self, build: Build) -> str:
        return f"https://github.com/{self.artifact_repo}/tree/verify-{build.slug}"


class ReconciledBuild(BaseModel):
    """One build's details plus the releases it contributes."""

    model_config = ConfigDict(frozen=True)

    details: BuildDetails
    releases: list[VerifiableProgramRelease]


# ---------------------------------------------------------------------------
# Latest resolution
# ---------------------------------------------------------------------------


def resolve_latest_tags(programs: Mapping[str, list[str]]) -> dict[str, str]:
    """Map each repository to its last declared tag."""
    return {repo: tags[-1] for repo, tags in programs.items() if tags}


def is_latest(build: Build, latest_tags: Mapping[str, str]) -> bool:
    return latest_tags.get(build.repo) == build.tag


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


def build_artifacts(
    build: Build,
    checksums: Mapping[str, str],
    sizes: Mapping[str, int] | None,
    location: ArtifactLocation,
) -> list[ArtifactInfo]:
    """One ``ArtifactInfo`` per checksum entry, in document order."""
    sizes = sizes or {}
    return [
        ArtifactInfo(
            path=path,
            checksum=checksum,
            size=sizes.get(path),
            download_url=location.download_url(build, path),
        )
        for checksum, path in checksums.items()
    ]


def is_program_binary(path: str) -> bool:
    if not path.startswith(VERIFIABLE_DIR) or not path.endswith(BINARY_EXTENSION):
        return False
    return "/" not in path[len(VERIFIABLE_DIR):]


def program_name_of(path: str) -> str:
    return posixpath.splitext(posixpath.basename(path))[0]


# ---------------------------------------------------------------------------
# Build reconciliation
# ---------------------------------------------------------------------------


def make_author(org: str, organizations: Mapping[str, VerifiedOrganization]) -> Author:
    return Author(name=org, info=organizations.get(org))


def reconcile_build(
    build: Build,
    fetched: FetchedBuild,
    organizations: Mapping[str, VerifiedOrganization],
    location: ArtifactLocation,
) -> ReconciledBuild:
    """Combine a build's documents into its details and program releases.

    Raises
    ------
    MissingRequiredArtifactError
        A program binary has no ``artifacts/verifiable-trimmed/<name>.so``.
    MalformedDocumentError
        A program binary has no entry in ``addresses.json``.
    """
    author = make_author(build.org, organizations)
    artifacts = build_artifacts(build, fetched.checksums, fetched.sizes, location)
    by_path = {artifact.path: artifact for artifact in artifacts}

    details = BuildDetails(
        build=build,
        addresses=fetched.addresses,
        info=fetched.info,
        artifacts=artifacts,
        workspace_url=location.workspace_url(build),
        author=author,
    )

    releases: list[VerifiableProgramRelease] = []
    for artifact in artifacts:
        if not is_program_binary(artifact.path):
            continue
        name = program_name_of(artifact.path)

        trimmed = by_path.get(f"{TRIMMED_DIR}{name}{BINARY_EXTENSION}")
        if trimmed is None:
            raise MissingRequiredArtifactError(
                f"Missing trimmed artifact for program {name!r} in {build.repo} {build.tag}"
            )
        address = fetched.addresses.get(name)
        if address is None:
            raise MalformedDocumentError(
                f"addresses.json for {build.repo} {build.tag} has no address for {name!r}"
            )

        program = ProgramInfo(
            id=f"{build.org}/{build.repo_name}/{name}",
            name=name,
            label=make_program_label(author, name),
            address=address,
            author=author,
            github=GithubRef(organization=build.org, repo=build.repo_name),
        )
        releases.append(
            VerifiableProgramRelease(
                id=f"@{build.org}/{name}@{build.tag}",
                program=program,
                artifact=artifact,
                trimmed_artifact=trimmed,
                idl=by_path.get(f"{IDL_DIR}{name}.json"),
                build=details,
            )
        )

    return ReconciledBuild(details=details, releases=releases)


# ---------------------------------------------------------------------------
# Accumulation
# ---------------------------------------------------------------------------


def merge_programs(
    programs: Mapping[str, ProgramInfo],
    releases: Iterable[VerifiableProgramRelease],
) -> dict[str, ProgramInfo]:
    """Register the programs of ``releases``; the first one seen per id wins."""
    merged = dict(programs)
    for release in releases:
        merged.setdefault(release.program.id, release.program)
    return merged


def group_releases(
    programs: Mapping[str, ProgramInfo],
    releases: Iterable[VerifiableProgramRelease],
) -> list[ProgramDetails]:
    """Group releases by program id, in program registration order."""
    grouped: dict[str, list[VerifiableProgramRelease]] = {pid: [] for pid in programs}
    for release in releases:
        grouped.setdefault(release.program.id, []).append(release)
    return [
        ProgramDetails(program=programs[pid], releases=grouped[pid])
        for pid in programs
    ]
