"""Build descriptors and display labels.

A build is fully determined by its ``(repo, tag)`` pair; nothing here touches
the network or the filesystem.
"""

from __future__ import annotations

import re

from verifiedindex.models.programs import Author, Build

# Lowercase runs, Capitalized runs, ACRONYMS (not followed by lowercase), digits.
_WORD_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")


class InvalidRepoFormatError(ValueError):
    """Raised when a repository is not in ``owner/name`` form."""


def split_repo(repo: str) -> tuple[str, str]:
    """Split ``owner/name`` into its two non-empty parts."""
    parts = repo.split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidRepoFormatError(f"Invalid repo format: {repo!r} (expected owner/name)")
    return parts[0], parts[1]


def make_slug(repo: str, tag: str) -> str:
    """Key of a build in the artifact store: ``org__repo-tag``."""
    return f"{repo.replace('/', '__')}-{tag}"


def describe_build(repo: str, tag: str) -> Build:
    org, repo_name = split_repo(repo)
    return Build(
        slug=make_slug(repo, tag),
        org=org,
        repo_name=repo_name,
        source=f"https://github.com/{org}/{repo_name}/tree/{tag}",
        tag=tag,
    )


def start_case(text: str) -> str:
    """Render an identifier as space-separated capitalized words.

    Words are ASCII only: letters outside A-Z/a-z are dropped, unlike lodash
    ``startCase``. Program names come from Rust crate names, which are ASCII.

    >>> start_case("myProgram-v2")
    'My Program V 2'
    """
    return " ".join(word[0].upper() + word[1:] for word in _WORD_RE.findall(text))


def make_program_label(author: Author, program_name: str) -> str:
    """Human-readable label, e.g. ``"Acme Corp - Token Swap"``."""
    owner = author.info.name if author.info is not None else f"@{author.name}"
    return f"{owner} - {start_case(program_name)}"
