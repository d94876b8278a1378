"""End-to-end tests for the index pipeline against a fake artifact repository.

These tests exercise declarations, fetcher, reconciler and writer together
through ``generate_index``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from verifiedindex.core.pipeline import generate_index
from verifiedindex.core.reconciler import MissingRequiredArtifactError

NOW = datetime(2022, 1, 1, tzinfo=timezone.utc)
SWAP_TAGS = ["v1.0.0", "v1.1.0", "v2.0.0"]
SWAP_ADDRESSES = {"v1.0.0": "Swap1", "v1.1.0": "Swap1", "v2.0.0": "Swap2"}


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


class TestIndexPipeline:
    @pytest.fixture
    def settings(self, make_settings, write_declarations):
        write_declarations(
            {"acme/swap-program": SWAP_TAGS, "other/pool": ["v0.1.0"]},
            {"acme": {"name": "Acme Corp", "website": "https://acme.example"}},
        )
        return make_settings()

    @pytest.fixture
    def published(self, artifact_repo, checksums_for):
        for tag in SWAP_TAGS:
            artifact_repo.add_build(
                f"acme__swap-program-{tag}",
                addresses={"token_swap": SWAP_ADDRESSES[tag]},
                checksums=checksums_for("token_swap", tag),
                sizes={"artifacts/verifiable/token_swap.so": "2048"},
                idls={"token_swap": {"name": "token_swap", "version": tag}},
            )
        return artifact_repo

    async def _run(self, settings, repo):
        return await generate_index(settings, transport=repo.transport(), now=NOW)

    @pytest.mark.asyncio
    async def test_latest_alias_matches_latest_tag(self, settings, published):
        await self._run(settings, published)
        by_name = settings.index_dir / "releases/by-name/@acme"
        latest = (by_name / "token_swap@latest.json").read_bytes()
        assert latest == (by_name / "token_swap@v2.0.0.json").read_bytes()
        assert latest != (by_name / "token_swap@v1.0.0.json").read_bytes()

    @pytest.mark.asyncio
    async def test_unpublished_build_is_skipped(self, settings, published, load_json):
        result = await self._run(settings, published)
        assert result.skipped == ["other/pool@v0.1.0"]
        assert len(result.releases) == 3
        assert not (settings.index_dir / "releases/by-name/@other").exists()
        assert load_json(settings.index_dir / "summary.json")["repositoryCount"] == 1

    @pytest.mark.asyncio
    async def test_program_dedup_first_seen_wins(self, settings, published, load_json):
        result = await self._run(settings, published)
        programs = load_json(settings.index_dir / "programs.json")
        assert len(programs) == 1
        assert programs[0]["id"] == "acme/swap-program/token_swap"
        assert programs[0]["address"] == "Swap1"
        assert programs[0]["label"] == "Acme Corp - Token Swap"
        assert [p.address for p in result.programs] == ["Swap1"]

    @pytest.mark.asyncio
    async def test_program_details_group_all_releases(self, settings, published, load_json):
        await self._run(settings, published)
        details = load_json(settings.index_dir / "programs/Swap1.json")
        assert [r["id"] for r in details["releases"]] == [
            "@acme/token_swap@v1.0.0",
            "@acme/token_swap@v1.1.0",
            "@acme/token_swap@v2.0.0",
        ]
        # The latest release keeps its own address snapshot
        assert details["releases"][-1]["program"]["address"] == "Swap2"

    @pytest.mark.asyncio
    async def test_release_keys_and_sizes(self, settings, published, load_json):
        await self._run(settings, published)
        base = settings.index_dir
        release = load_json(base / "releases/by-checksum/bin-token_swap-v1.1.0.json")
        assert release["id"] == "@acme/token_swap@v1.1.0"
        assert release["artifact"]["size"] == 2048
        assert release["build"]["info"] is None
        assert (base / "releases/by-trimmed-checksum/trim-token_swap-v1.1.0.json").exists()

    @pytest.mark.asyncio
    async def test_binary_artifact_records(self, settings, published, load_json):
        await self._run(settings, published)
        base = settings.index_dir / "artifacts"
        record = load_json(base / "trim-token_swap-v2.0.0.json")
        assert record["url"].endswith(
            "/verify-acme__swap-program-v2.0.0/verifiable-trimmed/token_swap.so"
        )
        assert sorted(path.name for path in base.iterdir()) == sorted(
            f"{kind}-token_swap-{tag}.json" for kind in ("bin", "trim") for tag in SWAP_TAGS
        )

    @pytest.mark.asyncio
    async def test_idls_written_through(self, settings, published, load_json):
        await self._run(settings, published)
        base = settings.index_dir
        assert load_json(base / "idls/@acme/token_swap@v1.0.0.json")["version"] == "v1.0.0"
        # Only the latest release is aliased by address
        assert load_json(base / "idls/Swap2.json")["version"] == "v2.0.0"
        assert not (base / "idls/Swap1.json").exists()

    @pytest.mark.asyncio
    async def test_summary(self, settings, published, load_json):
        await self._run(settings, published)
        summary = load_json(settings.index_dir / "summary.json")
        assert summary == {
            "lastUpdated": "2022-01-01T00:00:00Z",
            "artifactCount": 12,
            "organizationCount": 1,
            "repositoryCount": 1,
            "programCount": 1,
        }
        assert len(load_json(settings.index_dir / "builds.json")) == 3
        assert len(load_json(settings.index_dir / "artifacts.json")) == 12

    @pytest.mark.asyncio
    async def test_deterministic_output(self, settings, published):
        await self._run(settings, published)
        first = _snapshot(settings.index_dir)
        await self._run(settings, published)
        assert _snapshot(settings.index_dir) == first

    @pytest.mark.asyncio
    async def test_stale_files_removed(self, settings, published):
        stale = settings.index_dir / "releases/by-name/@gone/old@v0.json"
        stale.parent.mkdir(parents=True)
        stale.write_text("{}")
        await self._run(settings, published)
        assert not stale.exists()


class TestFatalFailures:
    @pytest.fixture
    def settings(self, make_settings, write_declarations):
        write_declarations({"acme/swap-program": SWAP_TAGS})
        return make_settings()

    @pytest.mark.asyncio
    async def test_server_error_aborts_run(self, settings, artifact_repo, checksums_for):
        for tag in SWAP_TAGS:
            artifact_repo.add_build(
                f"acme__swap-program-{tag}",
                addresses={"token_swap": "Swap1"},
                checksums=checksums_for("token_swap", tag),
            )
        artifact_repo.fail(
            artifact_repo.build_url("acme__swap-program-v1.1.0", "checksums.json"), 500
        )
        with pytest.raises(httpx.HTTPStatusError):
            await generate_index(settings, transport=artifact_repo.transport(), now=NOW)

        by_name = settings.index_dir / "releases/by-name/@acme"
        assert (by_name / "token_swap@v1.0.0.json").exists()
        assert not (by_name / "token_swap@v2.0.0.json").exists()
        assert not (settings.index_dir / "summary.json").exists()

    @pytest.mark.asyncio
    async def test_missing_trimmed_artifact_aborts_run(
        self, settings, artifact_repo, checksums_for
    ):
        artifact_repo.add_build(
            "acme__swap-program-v1.0.0",
            addresses={"foo": "Foo1"},
            checksums=checksums_for("foo", "v1.0.0", trimmed=False),
        )
        with pytest.raises(MissingRequiredArtifactError, match="foo"):
            await generate_index(settings, transport=artifact_repo.transport(), now=NOW)
