"""Runtime configuration — env-driven, one settings object per process.

Centralized config using pydantic-settings. Reads from a .env file and
VERIFIEDINDEX_* environment variables; CLI options override single fields
with ``settings.model_copy(update=...)``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class IndexSettings(BaseSettings):
    """Settings for the index and workflow pipelines.

    Examples
    --------
    Override via environment::

        export VERIFIEDINDEX_LOG_LEVEL=DEBUG
        export VERIFIEDINDEX_INDEX_DIR=/srv/registry/index

    Or via .env file::

        VERIFIEDINDEX_ARTIFACT_REPO=DeployDAO/verified-program-artifacts
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="VERIFIEDINDEX_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Declarations
    programs_path: Path = Path("programs.yml")
    organizations_path: Path = Path("organizations.yml")

    # Outputs
    index_dir: Path = Path("index")
    workflows_dir: Path = Path("out/.github/workflows")
    manifest_cache_dir: Path = Path(".cache/manifests")

    # Remote artifact store
    artifact_repo: str = "DeployDAO/verified-program-artifacts"
    artifact_host: str = "https://raw.githubusercontent.com"
    source_host: str = "https://raw.githubusercontent.com"
    http_timeout_seconds: float = 30.0

    # Workflow generation
    fetch_manifests: bool = True

    @property
    def artifact_base_url(self) -> str:
        """Raw-content root of the artifact repository."""
        return f"{self.artifact_host.rstrip('/')}/{self.artifact_repo}"


# Module-level singleton: `from verifiedindex.config import settings`
settings = IndexSettings()
