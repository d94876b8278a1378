"""Declared organization metadata, loaded from ``organizations.yml``."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class VerifiedOrganization(BaseModel):
    """A verified organization.

    ``github`` is not written in the YAML entry itself; it is the mapping key
    the entry is declared under.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    github: str
    website: str | None = None
