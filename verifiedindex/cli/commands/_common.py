"""Helpers shared by CLI commands."""

from __future__ import annotations

from typing import Any

from rich.console import Console

from verifiedindex.config import IndexSettings, settings

err_console = Console(stderr=True)


def resolve_settings(**overrides: Any) -> IndexSettings:
    """Apply CLI options that were actually given on top of the env settings."""
    given = {key: value for key, value in overrides.items() if value is not None}
    return settings.model_copy(update=given)
