"""Shared fixtures: throwaway site source trees and a build helper."""

import textwrap
from pathlib import Path

import pytest
from staticpress.build import build_site
from staticpress.config import load_config, merge_cli_overrides
from staticpress.content import Collection, ContentReader, SourceEntry
from staticpress.resolver import resolve_document


def _write(root: Path, files: dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")


@pytest.fixture
def site_dir(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def make_site(site_dir):
    """Write ``{relative path: text}`` into the site source directory."""

    def _make(files: dict[str, str], config: str | None = None) -> Path:
        _write(site_dir, files)
        if config is not None:
            _write(site_dir, {"_config.yml": config})
        return site_dir

    return _make


@pytest.fixture
def build(site_dir):
    """Build the site with optional CLI-style overrides.

    Returns ``(output_dir, report)``.
    """

    def _build(**overrides):
        config = merge_cli_overrides(load_config(source_dir=site_dir), **overrides)
        report = build_site(config, site_dir)
        return site_dir / config.destination, report

    return _build


@pytest.fixture
def resolve(site_dir):
    """Read and resolve one document of the site."""

    def _resolve(rel: str, config):
        collection = Collection.POSTS if "_posts/" in rel else Collection.PAGES
        document = ContentReader(config, site_dir).read_document(
            SourceEntry(path=rel, collection=collection)
        )
        return resolve_document(config, document)

    return _resolve


def snapshot(directory: Path) -> dict[str, bytes]:
    """Every file under ``directory`` keyed by relative POSIX path."""
    return {
        path.relative_to(directory).as_posix(): path.read_bytes()
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def take_snapshot():
    return snapshot
