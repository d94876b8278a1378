"""GitHub Actions workflow template for one verifiable build.

The job body is fixed; everything build-specific reaches the steps through
the workflow-level ``env`` block (REPO, TAG, SLUG, ANCHOR_PACKAGE).
"""

from __future__ import annotations

from typing import Any

import yaml

JOB_TEMPLATE = """\
jobs:
  release-binaries:
    runs-on: ubuntu-latest
    name: Release verifiable binaries
    steps:
      - uses: actions/checkout@v2
      - uses: cachix/install-nix-action@v16
      - name: Setup Cachix
        uses: cachix/cachix-action@v10
        with:
          name: saber
          authToken: ${{ secrets.CACHIX_AUTH_TOKEN }}
      - name: Download sources from GitHub
        run: curl -L https://github.com/${REPO}/archive/refs/tags/${TAG}.tar.gz > release.tar.gz
      - name: Extract sources
        run: echo $(tar xzvf release.tar.gz | head -1 | cut -f1 -d"/") > dirname
      - name: Login to Anchor
        run: nix shell ./#${ANCHOR_PACKAGE} --command anchor login ${{ secrets.ANCHOR_AUTH_TOKEN }}
      - name: Extract addresses
        run: |
          cd $(cat dirname)
          nix shell ../#devShell --command bash -c 'cat Anchor.toml | yj -t | jq .programs.mainnet > addresses.json'
          echo "Addresses"
          cat addresses.json
      - name: Perform verifiable build
        run: |
          cd $(cat dirname)
          nix shell ../#devShell --command bash -c 'cat addresses.json | jq -r ". | keys | .[]" > programs.txt'
          for PROGRAM in $(cat programs.txt); do
            nix shell ../#${ANCHOR_PACKAGE} --command anchor build --verifiable --program-name "$PROGRAM"
          done
      - name: Publish build to Anchor Registry
        run: |
          cd $(cat dirname)
          for PROGRAM in $(cat programs.txt); do
            yes 'yes' | nix shell ../#${ANCHOR_PACKAGE} --command anchor publish "$PROGRAM" --provider.cluster mainnet
          done
      - name: Record program artifacts
        run: |
          mkdir artifacts
          mv $(cat dirname)/target/verifiable/ artifacts/verifiable/
          mv $(cat dirname)/target/idl/ artifacts/idl/
          mv $(cat dirname)/addresses.json artifacts/addresses.json

          # Trimmed binary: the verifiable build without its trailing zero padding
          mkdir -p artifacts/verifiable-trimmed
          for BINARY in artifacts/verifiable/*.so; do
            perl -0777 -pe 's/\\x00+\\z//' "$BINARY" > "artifacts/verifiable-trimmed/$(basename "$BINARY")"
          done

          sha256sum release.tar.gz >> artifacts/checksums.txt
          sha256sum artifacts/verifiable/* >> artifacts/checksums.txt
          sha256sum artifacts/verifiable-trimmed/* >> artifacts/checksums.txt
          if compgen -G "artifacts/idl/*" > /dev/null; then
            sha256sum artifacts/idl/* >> artifacts/checksums.txt
          fi
          cat artifacts/checksums.txt | jq -R '. | split("  ") | [{key:.[0],value:.[1]}] | from_entries' | jq -s add > artifacts/checksums.json

          echo "{}" > artifacts/sizes.json
          for FILE in artifacts/verifiable/* artifacts/verifiable-trimmed/* artifacts/idl/*; do
            [ -f "$FILE" ] || continue
            jq --arg k "$FILE" --arg v "$(stat -c %s "$FILE")" '. + {($k): $v}' artifacts/sizes.json > sizes.tmp
            mv sizes.tmp artifacts/sizes.json
          done

          jq -n \\
            --arg anchorVersion "$(nix shell .#${ANCHOR_PACKAGE} --command anchor --version)" \\
            --arg createdAt "$(date -u +"%Y-%m-%dT%H:%M:%SZ")" \\
            --arg repo "${REPO}" --arg tag "${TAG}" --arg slug "${SLUG}" \\
            '{anchorVersion: $anchorVersion, createdAt: $createdAt, repo: $repo, tag: $tag, slug: $slug}' \\
            > artifacts/build-info.json

          {
            echo '---'
            jq -r 'to_entries[] | "\\(.key): \\(.value | tojson)"' artifacts/build-info.json
            echo '---'
            echo "# ${REPO} ${TAG}"
            echo '## Checksums'
            echo '```'
            cat artifacts/checksums.txt
            echo '```'
          } > artifacts/README.md
      - name: Upload
        uses: peaceiris/actions-gh-pages@v3
        with:
          deploy_key: ${{ secrets.DIST_DEPLOY_KEY }}
          external_repository: ${{ env.ARTIFACT_REPO }}
          publish_branch: verify-${{ env.SLUG }}
          publish_dir: ./artifacts/
"""


class WorkflowDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


WorkflowDumper.add_representer(str, _str_representer)


def workflow_file_name(slug: str) -> str:
    return f"verify-{slug}.yml"


def build_workflow(
    *,
    repo: str,
    tag: str,
    slug: str,
    anchor_package: str,
    artifact_repo: str,
) -> dict[str, Any]:
    """Merge the per-build header with the fixed job template."""
    header: dict[str, Any] = {
        "name": f"Verify {repo} {tag}",
        "on": {"push": {"paths": [f".github/workflows/{workflow_file_name(slug)}"]}},
        "env": {
            "REPO": repo,
            "TAG": tag,
            "SLUG": slug,
            "ANCHOR_PACKAGE": f"anchor-{anchor_package}",
            "ARTIFACT_REPO": artifact_repo,
        },
    }
    return {**header, **yaml.safe_load(JOB_TEMPLATE)}


def render_workflow(
    *,
    repo: str,
    tag: str,
    slug: str,
    anchor_package: str,
    artifact_repo: str,
) -> str:
    document = build_workflow(
        repo=repo,
        tag=tag,
        slug=slug,
        anchor_package=anchor_package,
        artifact_repo=artifact_repo,
    )
    return yaml.dump(
        document,
        Dumper=WorkflowDumper,
        default_flow_style=False,
        sort_keys=False,
        width=1000,
    )
