"""Write rendered pages and static assets to the output directory.

Output is built in a sibling staging directory and swapped into place only
after every file has been written, so a failed build never leaves a
half-written site where the previous one used to be.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

from staticpress.compress import compress_html
from staticpress.config import SiteConfig
from staticpress.errors import ConfigurationError, OutputCollisionError
from staticpress.site import RenderedPage

logger = logging.getLogger(__name__)


def _atomic_write(path: Path, content: str | bytes) -> None:
    """Write ``content`` to ``path`` via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8") if isinstance(content, str) else content
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def staging_dir_for(output_dir: Path) -> Path:
    return output_dir.parent / f".{output_dir.name}.staging"


def backup_dir_for(output_dir: Path) -> Path:
    return output_dir.parent / f".{output_dir.name}.previous"


class StaticEmitter:
    """Writes the site into ``output_dir``."""

    def __init__(self, config: SiteConfig, source_dir: Path, output_dir: Path) -> None:
        self.config = config
        self.source_dir = source_dir
        self.output_dir = output_dir
        self._check_locations()

    def _check_locations(self) -> None:
        source = self.source_dir.resolve()
        output = self.output_dir.resolve()
        if output == source or source.is_relative_to(output):
            raise ConfigurationError(
                f"Output directory {self.output_dir} would overwrite the site sources"
            )

    def render_output(self, page: RenderedPage) -> str:
        """Final text of a page, compressed when enabled."""
        if page.is_html and self.config.compression_enabled:
            compress = self.config.compress_html
            return compress_html(
                page.content,
                strip_comments=bool(compress and compress.strip_comments),
            )
        return page.content

    def emit(self, pages: list[RenderedPage], assets: list[str]) -> list[str]:
        """Write every page and asset, then swap the result into place.

        Returns:
            Output paths written, relative to the output directory.

        Raises:
            OutputCollisionError: If a page and an asset share an output path.
        """
        page_paths = {page.output_path: page for page in pages}
        for asset in assets:
            if asset in page_paths:
                raise OutputCollisionError(asset, asset, page_paths[asset].origin)

        staging = staging_dir_for(self.output_dir)
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)

        written: list[str] = []
        try:
            for asset in sorted(assets):
                target = staging / asset
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(self.source_dir / asset, target)
                written.append(asset)

            for page in sorted(pages, key=lambda p: p.output_path):
                _atomic_write(staging / page.output_path, self.render_output(page))
                written.append(page.output_path)

            self._swap(staging)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("Wrote %d files to %s", len(written), self.output_dir)
        return sorted(written)

    def _swap(self, staging: Path) -> None:
        backup = backup_dir_for(self.output_dir)
        if backup.exists():
            shutil.rmtree(backup)
        if self.output_dir.exists():
            os.replace(self.output_dir, backup)
        os.replace(staging, self.output_dir)
        shutil.rmtree(backup, ignore_errors=True)

    def clean(self) -> bool:
        """Remove the output directory and any leftover staging directories."""
        removed = False
        for path in (self.output_dir, staging_dir_for(self.output_dir), backup_dir_for(self.output_dir)):
            if path.exists():
                shutil.rmtree(path)
                removed = True
        return removed
