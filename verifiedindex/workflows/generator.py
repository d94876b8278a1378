"""Workflow pipeline — one ``verify-<slug>.yml`` per declared build."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from verifiedindex.config import IndexSettings
from verifiedindex.core.builds import describe_build
from verifiedindex.core.declarations import iter_declared_builds, load_programs
from verifiedindex.workflows.manifest import (
    DEFAULT_ANCHOR_PACKAGE,
    ManifestCache,
    fetch_manifest,
    select_anchor_package,
)
from verifiedindex.workflows.template import render_workflow, workflow_file_name

logger = logging.getLogger(__name__)


async def generate_workflows(
    settings: IndexSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Path]:
    """Write a workflow for every declared ``(repo, tag)``.

    When ``settings.fetch_manifests`` is set, each build's ``Anchor.toml`` is
    fetched (or read from the manifest cache) to pick its toolchain package.
    Otherwise every workflow uses the newest known package.
    """
    declared = load_programs(settings.programs_path)
    cache = ManifestCache(settings.manifest_cache_dir)
    out_dir = Path(settings.workflows_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    async with httpx.AsyncClient(
        transport=transport,
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
    ) as client:
        for repo, tag in iter_declared_builds(declared):
            build = describe_build(repo, tag)

            anchor_package = DEFAULT_ANCHOR_PACKAGE
            if settings.fetch_manifests:
                manifest = await fetch_manifest(
                    client,
                    cache,
                    repo=repo,
                    tag=tag,
                    slug=build.slug,
                    source_host=settings.source_host,
                )
                anchor_package = select_anchor_package(manifest)

            target = out_dir / workflow_file_name(build.slug)
            target.write_text(
                render_workflow(
                    repo=repo,
                    tag=tag,
                    slug=build.slug,
                    anchor_package=anchor_package,
                    artifact_repo=settings.artifact_repo,
                ),
                encoding="utf-8",
            )
            logger.info("Wrote %s (anchor-%s)", target, anchor_package)
            written.append(target)

    return written
