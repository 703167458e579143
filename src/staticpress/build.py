"""Build pipeline: read → resolve → transform/assemble → emit."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path

from staticpress.assembler import SiteAssembler
from staticpress.config import SiteConfig
from staticpress.content import ContentReader
from staticpress.emitter import StaticEmitter
from staticpress.errors import BuildReport, ContentError, SiteError
from staticpress.resolver import ResolvedDocument, resolve_document
from staticpress.transform import ContentTransformer

logger = logging.getLogger(__name__)


def read_documents(
    config: SiteConfig,
    source_dir: Path,
    report: BuildReport,
) -> tuple[list[ResolvedDocument], list[str]]:
    """Discover, parse and resolve every document.

    Returns:
        Resolved documents and the static asset paths.

    Raises:
        ContentError: For an unreadable document, unless ``skip_invalid``.
        ConfigurationError: If a document is missing a required setting.
    """
    reader = ContentReader(config, source_dir)
    inventory = reader.discover()

    resolved: list[ResolvedDocument] = []
    for entry in inventory.documents:
        try:
            document = reader.read_document(entry)
        except ContentError as exc:
            if not config.skip_invalid:
                raise
            logger.warning("Skipping %s: %s", exc.source, exc.message)
            report.skip("read", exc)
            continue
        resolved.append(resolve_document(config, document))

    counts = Counter(
        "drafts" if r.document.draft else r.document.collection.value for r in resolved
    )
    report.documents = dict(sorted(counts.items()))
    report.assets = len(inventory.assets)
    return resolved, inventory.assets


def build_site(
    config: SiteConfig,
    source_dir: Path,
    output_dir: Path | None = None,
    *,
    report: BuildReport | None = None,
) -> BuildReport:
    """Build the site from ``source_dir`` into ``output_dir``.

    Every page is rendered in memory before anything is written, so a
    configuration, content or collision error leaves the previous output
    untouched.

    Args:
        config: Effective site configuration.
        source_dir: Directory holding ``_config.yml`` and the content.
        output_dir: Target directory; defaults to ``config.destination``
            relative to the source directory.
        report: Report to fill in; a new one is created if omitted.

    Returns:
        The build report.
    """
    report = report or BuildReport()
    report.environment = config.environment
    output_dir = output_dir or (source_dir / config.destination)

    stage = "read"
    try:
        emitter = StaticEmitter(config, source_dir, output_dir)

        documents, assets = read_documents(config, source_dir, report)
        report.mark_stage_complete("read")

        stage = "assemble"
        transformer = ContentTransformer(config, source_dir)
        assembler = SiteAssembler(config, transformer, report)
        pages = assembler.assemble(documents)
        report.mark_stage_complete("assemble")

        stage = "emit"
        report.outputs_written = emitter.emit(pages, assets)
        report.mark_stage_complete("emit")
    except SiteError as exc:
        report.fail(stage, exc)
        report.finish()
        raise

    report.finish()
    logger.info("Built %d files into %s", len(report.outputs_written), output_dir)
    return report
