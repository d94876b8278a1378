"""Source-repository manifests (``Anchor.toml``) and toolchain selection.

A manifest is fetched once per build slug and cached as pretty-printed JSON
under the cache directory. A cached file is reused forever: there is no TTL
and no invalidation. A 404 is treated as "no manifest" and nothing is cached.
"""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from verifiedindex.core.fetcher import MalformedDocumentError

logger = logging.getLogger(__name__)

# Anchor release -> nix package suffix exposed by the build flake, oldest first.
ANCHOR_PACKAGES: dict[str, str] = {
    "0.18.0": "0_18_0",
    "0.18.2": "0_18_2",
    "0.19.0": "0_19_0",
    "0.20.0": "0_20_0",
    "0.20.1": "0_20_1",
    "0.21.0": "0_21_0",
    "0.22.0": "0_22_0",
}
DEFAULT_ANCHOR_PACKAGE = list(ANCHOR_PACKAGES.values())[-1]


def manifest_anchor_version(manifest: Mapping[str, Any]) -> str | None:
    """Read ``anchor_version`` from ``[toolchain]`` or the top level."""
    toolchain = manifest.get("toolchain")
    if isinstance(toolchain, Mapping) and isinstance(toolchain.get("anchor_version"), str):
        return toolchain["anchor_version"]
    version = manifest.get("anchor_version")
    return version if isinstance(version, str) else None


def select_anchor_package(manifest: Mapping[str, Any] | None) -> str:
    """Pick the toolchain package for a manifest; newest known on no match."""
    if manifest is None:
        return DEFAULT_ANCHOR_PACKAGE
    version = manifest_anchor_version(manifest)
    if version is None:
        return DEFAULT_ANCHOR_PACKAGE
    package = ANCHOR_PACKAGES.get(version.removeprefix("v"))
    if package is None:
        logger.warning(
            "Unknown Anchor version %s; using %s", version, DEFAULT_ANCHOR_PACKAGE
        )
        return DEFAULT_ANCHOR_PACKAGE
    return package


class ManifestCache:
    """Slug-keyed on-disk cache of parsed manifests.

    Layout: {cache_dir}/{slug}.json
    """

    def __init__(self, cache_dir: Path) -> None:
        self._base = Path(cache_dir)

    def path_for(self, slug: str) -> Path:
        return self._base / f"{slug}.json"

    def load(self, slug: str) -> dict[str, Any] | None:
        path = self.path_for(slug)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def store(self, slug: str, manifest: Mapping[str, Any]) -> Path:
        path = self.path_for(slug)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(manifest, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        return path


async def fetch_manifest(
    client: httpx.AsyncClient,
    cache: ManifestCache,
    *,
    repo: str,
    tag: str,
    slug: str,
    source_host: str,
) -> dict[str, Any] | None:
    """Return the cached manifest for ``slug``, fetching it on first use."""
    cached = cache.load(slug)
    if cached is not None:
        logger.debug("Using cached manifest for %s", slug)
        return cached

    url = f"{source_host.rstrip('/')}/{repo}/{tag}/Anchor.toml"
    response = await client.get(url)
    if response.status_code == 404:
        logger.warning("No Anchor.toml for %s %s", repo, tag)
        return None
    response.raise_for_status()
    try:
        manifest = tomllib.loads(response.text)
    except tomllib.TOMLDecodeError as exc:
        raise MalformedDocumentError(f"{url}: invalid TOML: {exc}") from exc

    cache.store(slug, manifest)
    return manifest
