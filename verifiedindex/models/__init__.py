"""verifiedindex data models — all Pydantic v2, all frozen (immutable)."""

from verifiedindex.models.declarations import VerifiedOrganization
from verifiedindex.models.programs import (
    ArtifactInfo,
    Author,
    Build,
    BuildDetails,
    BuildInfo,
    GithubRef,
    IndexSummary,
    ProgramDetails,
    ProgramInfo,
    VerifiableProgramRelease,
)

__all__ = [
    # declarations
    "VerifiedOrganization",
    # builds
    "Build",
    "BuildInfo",
    "BuildDetails",
    "ArtifactInfo",
    "Author",
    # programs
    "GithubRef",
    "ProgramInfo",
    "ProgramDetails",
    "VerifiableProgramRelease",
    # index
    "IndexSummary",
]
