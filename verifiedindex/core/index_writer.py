"""Index writer — serializes reconciled records into the index directory.

Layout (under ``index_dir``)::

    releases/by-checksum/{checksum}.json
    releases/by-trimmed-checksum/{checksum}.json
    releases/by-name/@{org}/{program}@{tag}.json
    releases/by-name/@{org}/{program}@latest.json
    idls/@{org}/{program}@{tag}.json
    idls/{address}.json                      (latest release only)
    artifacts/{checksum}.json                (.so binaries only)
    programs/{address}.json
    programs.json  builds.json  artifacts.json  summary.json

Every file holds one record as canonical JSON. Writes overwrite in place with
no partial-write protection; a failed run leaves a part-written index that the
next run replaces. Directories are created on first write into them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from verifiedindex.core.reconciler import BINARY_EXTENSION, ArtifactLocation
from verifiedindex.models.programs import (
    BuildDetails,
    IndexSummary,
    ProgramDetails,
    ProgramInfo,
    VerifiableProgramRelease,
)

logger = logging.getLogger(__name__)


class UnsafeIndexPathError(ValueError):
    """Raised when a record key would place a file outside the index."""


def canonical_json_bytes(obj: Any) -> bytes:
    """Deterministic, sorted, compact JSON bytes."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


class IndexWriter:
    """Writes index records under a root directory.

    Parameters
    ----------
    index_dir:
        Root of the generated index. Wiped by ``reset()``.
    """

    def __init__(self, index_dir: Path) -> None:
        self._base = Path(index_dir)

    @property
    def base_path(self) -> Path:
        return self._base

    def reset(self) -> None:
        """Remove any previous index so the run regenerates it from scratch."""
        if self._base.exists():
            shutil.rmtree(self._base)
        self._base.mkdir(parents=True, exist_ok=True)

    def _target(self, relative_path: str) -> Path:
        # Keys come from fetched documents
        path = PurePosixPath(relative_path)
        if path.is_absolute() or ".." in path.parts or not path.parts:
            raise UnsafeIndexPathError(f"Refusing to write outside the index: {relative_path!r}")
        return self._base.joinpath(*path.parts)

    def write_json(self, relative_path: str, data: Any) -> Path:
        target = self._target(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(canonical_json_bytes(data))
        logger.debug("IndexWriter: wrote %s", target)
        return target

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @staticmethod
    def scoped_name(release: VerifiableProgramRelease, tag: str) -> str:
        return f"@{release.build.build.org}/{release.program.name}@{tag}"

    def release_paths(
        self, release: VerifiableProgramRelease, *, latest: bool
    ) -> list[str]:
        paths = [
            f"releases/by-checksum/{release.artifact.checksum}.json",
            f"releases/by-trimmed-checksum/{release.trimmed_artifact.checksum}.json",
            f"releases/by-name/{self.scoped_name(release, release.build.build.tag)}.json",
        ]
        if latest:
            paths.append(f"releases/by-name/{self.scoped_name(release, 'latest')}.json")
        return paths

    # ------------------------------------------------------------------
    # Write-through records
    # ------------------------------------------------------------------

    def _write_release_files(
        self, release: VerifiableProgramRelease, latest: bool
    ) -> list[Path]:
        data = release.to_json_dict()
        return [self.write_json(path, data) for path in self.release_paths(release, latest=latest)]

    async def write_release(
        self, release: VerifiableProgramRelease, *, latest: bool
    ) -> list[Path]:
        """Write one release under all of its keys (plus ``@latest`` if latest)."""
        return await asyncio.to_thread(self._write_release_files, release, latest)

    def write_idl(
        self,
        release: VerifiableProgramRelease,
        idl: dict[str, Any],
        *,
        latest: bool,
    ) -> list[Path]:
        written = [
            self.write_json(
                f"idls/{self.scoped_name(release, release.build.build.tag)}.json", idl
            )
        ]
        if latest:
            written.append(self.write_json(f"idls/{release.program.address}.json", idl))
        return written

    def write_build_artifacts(
        self, details: BuildDetails, location: ArtifactLocation
    ) -> list[Path]:
        """Write each binary artifact under its checksum.

        The record is the artifact plus ``url``, its raw-content address.
        """
        written = []
        for artifact in details.artifacts:
            if not artifact.path.endswith(BINARY_EXTENSION):
                continue
            record = {
                **artifact.to_json_dict(),
                "url": location.raw_url(details.build, artifact.path),
            }
            written.append(self.write_json(f"artifacts/{artifact.checksum}.json", record))
        return written

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def write_program_details(self, details: Iterable[ProgramDetails]) -> list[Path]:
        return [
            self.write_json(f"programs/{entry.program.address}.json", entry.to_json_dict())
            for entry in details
        ]

    def write_aggregates(
        self,
        programs: Iterable[ProgramInfo],
        builds: Iterable[BuildDetails],
        summary: IndexSummary,
    ) -> None:
        builds = list(builds)
        artifacts = {
            artifact.checksum: artifact.to_json_dict()
            for details in builds
            for artifact in details.artifacts
        }
        self.write_json("programs.json", [program.to_json_dict() for program in programs])
        self.write_json("builds.json", [details.to_json_dict() for details in builds])
        self.write_json("artifacts.json", artifacts)
        self.write_json("summary.json", summary.to_json_dict())
