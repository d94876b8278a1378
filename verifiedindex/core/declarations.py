"""Loaders for the two declaration documents.

``programs.yml`` maps ``org/repo`` to an ordered list of release tags (oldest
first). ``organizations.yml`` maps a GitHub organization to its verified
display metadata. Both are read once per process.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from verifiedindex.models.declarations import VerifiedOrganization


class DeclarationError(RuntimeError):
    """Raised when a declaration document is missing or malformed."""


def _read_yaml(path: Path) -> Any:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise DeclarationError(f"Cannot read {path}: {exc}") from exc
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise DeclarationError(f"Invalid YAML in {path}: {exc}") from exc


def load_programs(path: Path) -> dict[str, list[str]]:
    """Load ``programs.yml``.

    Every repository must list at least one tag; tags keep their declared
    order.
    """
    document = _read_yaml(path)
    if not isinstance(document, dict):
        raise DeclarationError(f"{path}: expected a mapping of repository -> tags")

    programs: dict[str, list[str]] = {}
    for repo, tags in document.items():
        if not isinstance(repo, str):
            raise DeclarationError(f"{path}: repository key {repo!r} is not a string")
        if not isinstance(tags, list) or not tags:
            raise DeclarationError(f"{path}: no tags for {repo}")
        # YAML turns unquoted versions like 1.0 into floats
        if not all(isinstance(tag, str) for tag in tags):
            raise DeclarationError(f"{path}: tags for {repo} must be strings")
        programs[repo] = list(tags)
    return programs


def load_organizations(path: Path) -> dict[str, VerifiedOrganization]:
    """Load ``organizations.yml``, reusing each key as the ``github`` field."""
    document = _read_yaml(path)
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise DeclarationError(f"{path}: expected a mapping of organization -> info")

    organizations: dict[str, VerifiedOrganization] = {}
    for github, entry in document.items():
        if not isinstance(entry, dict):
            raise DeclarationError(f"{path}: entry for {github!r} is not a mapping")
        try:
            organizations[str(github)] = VerifiedOrganization(
                **{**entry, "github": str(github)}
            )
        except ValidationError as exc:
            raise DeclarationError(f"{path}: invalid entry for {github!r}: {exc}") from exc
    return organizations


def iter_declared_builds(programs: Mapping[str, list[str]]) -> Iterator[tuple[str, str]]:
    """Yield every ``(repo, tag)`` pair in declaration order."""
    for repo, tags in programs.items():
        for tag in tags:
            yield repo, tag
