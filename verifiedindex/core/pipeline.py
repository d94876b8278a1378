"""Index pipeline driver — the only owner of the run's accumulators.

For each declared ``(repo, tag)`` in declaration order: describe the build,
fetch its documents, reconcile them, write IDLs and releases through to the
index, then fold the results into the accumulated programs/builds/releases.
After the last build, program details, aggregates and the summary are
written.

Per-build index files are written on worker threads through
``asyncio.to_thread``; the event loop itself only waits on HTTP.

A 404 on a required build document skips that build with a warning. Every
other failure propagates and aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

import httpx
from pydantic import BaseModel, ConfigDict

from verifiedindex.config import IndexSettings
from verifiedindex.core.builds import describe_build
from verifiedindex.core.declarations import (
    iter_declared_builds,
    load_organizations,
    load_programs,
)
from verifiedindex.core.fetcher import ArtifactFetcher, ArtifactNotFoundError
from verifiedindex.core.index_writer import IndexWriter
from verifiedindex.core.reconciler import (
    ArtifactLocation,
    group_releases,
    is_latest,
    merge_programs,
    reconcile_build,
    resolve_latest_tags,
)
from verifiedindex.models.programs import (
    BuildDetails,
    IndexSummary,
    ProgramDetails,
    ProgramInfo,
    VerifiableProgramRelease,
)

logger = logging.getLogger(__name__)


class IndexRun(BaseModel):
    """Everything one index run produced."""

    model_config = ConfigDict(frozen=True)

    summary: IndexSummary
    programs: list[ProgramInfo]
    builds: list[BuildDetails]
    releases: list[VerifiableProgramRelease]
    details: list[ProgramDetails]
    skipped: list[str]  # "org/repo@tag" of builds with no published artifacts


def summarize(
    programs: Mapping[str, ProgramInfo],
    builds: Iterable[BuildDetails],
    now: datetime | None = None,
) -> IndexSummary:
    builds = list(builds)
    return IndexSummary(
        last_updated=now or datetime.now(timezone.utc),
        artifact_count=len(
            {artifact.checksum for details in builds for artifact in details.artifacts}
        ),
        organization_count=len({details.build.org for details in builds}),
        repository_count=len({details.build.repo for details in builds}),
        program_count=len(programs),
    )


async def generate_index(
    settings: IndexSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    now: datetime | None = None,
) -> IndexRun:
    """Regenerate the whole index described by ``settings``.

    Parameters
    ----------
    settings:
        Declaration paths, index directory and artifact repository.
    transport:
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    now:
        Timestamp recorded as ``lastUpdated``; defaults to the current time.
    """
    declared = load_programs(settings.programs_path)
    organizations = load_organizations(settings.organizations_path)
    latest_tags = resolve_latest_tags(declared)
    location = ArtifactLocation(
        artifact_repo=settings.artifact_repo,
        artifact_base_url=settings.artifact_base_url,
    )

    writer = IndexWriter(settings.index_dir)
    writer.reset()

    programs: dict[str, ProgramInfo] = {}
    builds: list[BuildDetails] = []
    releases: list[VerifiableProgramRelease] = []
    skipped: list[str] = []

    async with httpx.AsyncClient(
        transport=transport,
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
    ) as client:
        fetcher = ArtifactFetcher(client, settings.artifact_base_url)

        for repo, tag in iter_declared_builds(declared):
            build = describe_build(repo, tag)
            try:
                fetched = await fetcher.fetch_build(build)
            except ArtifactNotFoundError as exc:
                logger.warning("Could not find artifacts for %s %s: %s", repo, tag, exc.url)
                skipped.append(f"{repo}@{tag}")
                continue

            reconciled = reconcile_build(build, fetched, organizations, location)
            latest = is_latest(build, latest_tags)

            for release in reconciled.releases:
                idl = await fetcher.fetch_idl(build, release.program.name)
                if idl is not None:
                    await asyncio.to_thread(writer.write_idl, release, idl, latest=latest)

            await asyncio.to_thread(writer.write_build_artifacts, reconciled.details, location)
            await asyncio.gather(
                *(writer.write_release(release, latest=latest) for release in reconciled.releases)
            )

            programs = merge_programs(programs, reconciled.releases)
            builds.append(reconciled.details)
            releases.extend(reconciled.releases)
            logger.info(
                "Indexed %s %s: %d program(s)%s",
                repo,
                tag,
                len(reconciled.releases),
                " [latest]" if latest else "",
            )

    details = group_releases(programs, releases)
    writer.write_program_details(details)

    summary = summarize(programs, builds, now)
    writer.write_aggregates(programs.values(), builds, summary)

    return IndexRun(
        summary=summary,
        programs=list(programs.values()),
        builds=builds,
        releases=releases,
        details=details,
        skipped=skipped,
    )
