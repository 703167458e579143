"""Assemble transformed documents and generated indexes into output pages."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from staticpress.config import SiteConfig
from staticpress.content import Collection
from staticpress.diagrams import render_client_script, resolve_diagram_theme
from staticpress.errors import BuildReport, ContentError, OutputCollisionError
from staticpress.generators import IndexGenerator, create_generators
from staticpress.permalink import resolve_url, validate_pattern
from staticpress.resolver import ResolvedDocument
from staticpress.site import PageKind, RenderedPage, SiteBuild
from staticpress.transform import ContentTransformer

logger = logging.getLogger(__name__)


def sort_posts(entries: list[tuple[ResolvedDocument, str]]) -> list[tuple[ResolvedDocument, str]]:
    """Newest first; ties broken by source path so the order is stable."""
    return sorted(
        entries,
        key=lambda item: (item[0].document.date, item[0].source_path),
        reverse=True,
    )


def check_collisions(pages: list[RenderedPage]) -> None:
    """Raise if two pages would be written to the same output path."""
    owners: dict[str, RenderedPage] = {}
    for page in pages:
        key = page.output_path.lower()
        if key in owners:
            raise OutputCollisionError(page.output_path, owners[key].origin, page.origin)
        owners[key] = page


class SiteAssembler:
    """Renders every document and runs the enabled index generators."""

    def __init__(
        self,
        config: SiteConfig,
        transformer: ContentTransformer,
        report: BuildReport | None = None,
        generators: list[IndexGenerator] | None = None,
    ) -> None:
        self.config = config
        self.transformer = transformer
        self.report = report or BuildReport()
        self.generators = create_generators(config) if generators is None else generators

    def assemble(self, documents: list[ResolvedDocument]) -> list[RenderedPage]:
        """Produce every rendered page of the site.

        Raises:
            ConfigurationError: On invalid permalinks or layouts.
            ContentError: On a broken document, unless ``skip_invalid`` is set.
            OutputCollisionError: If two pages share an output path.
        """
        validate_pattern(self.config.permalink)
        self.transformer.layouts.validate()

        routed: list[tuple[ResolvedDocument, str]] = []
        for resolved in documents:
            if not resolved.document.published:
                logger.debug("Skipping unpublished %s", resolved.source_path)
                continue
            routed.append((resolved, resolve_url(self.config, resolved)))

        posts = sort_posts([e for e in routed if e[0].document.collection is Collection.POSTS])
        pages = [e for e in routed if e[0].document.collection is Collection.PAGES]

        claims_home = any(g.claims_home for g in self.generators)
        home = next((r for r, url in pages if url == "/"), None) if claims_home else None

        site, post_dicts = self._site_payload(posts, pages)
        build = SiteBuild(self.config, self.transformer, site, post_dicts, home=home)

        for (resolved, url), post in zip(posts, list(post_dicts)):
            rendered = self._render_document(resolved, url, site)
            if rendered is None:
                self._drop_post(site, post)
                continue
            post["content"] = rendered.content_fragment
            post["excerpt"] = rendered.page.excerpt
            build.pages.append(rendered.page)

        for resolved, url in pages:
            if home is not None and resolved is home:
                continue
            rendered = self._render_document(resolved, url, site)
            if rendered is not None:
                build.pages.append(rendered.page)

        for generator in self.generators:
            try:
                generated = generator.generate(build)
            except ContentError as exc:
                self._content_failed(exc)
                continue
            logger.debug("%s produced %d pages", generator.name, len(generated))
            build.pages.extend(generated)
            self.report.mark_stage_complete(generator.name)

        if self.config.diagrams.enabled:
            build.pages.append(
                RenderedPage.at(
                    self.config.diagrams.script_path,
                    render_client_script(self.config),
                    kind=PageKind.ASSET,
                    sitemap=False,
                    search=False,
                )
            )

        check_collisions(build.pages)
        kinds = Counter(page.kind.value for page in build.pages)
        self.report.pages = dict(sorted(kinds.items()))
        return build.pages

    def _site_payload(
        self,
        posts: list[tuple[ResolvedDocument, str]],
        pages: list[tuple[ResolvedDocument, str]],
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """The ``site`` template variable, with collections attached."""
        site = self.config.to_template_dict()
        post_dicts = [self.transformer.page_context(r, url) for r, url in posts]
        categories: dict[str, list[dict[str, Any]]] = {}
        tags: dict[str, list[dict[str, Any]]] = {}
        for post in post_dicts:
            for category in post["categories"]:
                categories.setdefault(category, []).append(post)
            for tag in post["tags"]:
                tags.setdefault(tag, []).append(post)

        site["posts"] = post_dicts
        site["pages"] = [self.transformer.page_context(r, url) for r, url in pages]
        site["categories"] = categories
        site["tags"] = tags
        site["time"] = max((p["date"] for p in post_dicts if p["date"]), default=None)
        site["diagram_theme"] = resolve_diagram_theme(self.config.skin)
        return site, post_dicts

    def _drop_post(self, site: dict[str, Any], post: dict[str, Any]) -> None:
        # In place: generators share this list.
        site["posts"][:] = [p for p in site["posts"] if p is not post]
        for taxonomy in ("categories", "tags"):
            for value in post[taxonomy]:
                group = [p for p in site[taxonomy].get(value, []) if p is not post]
                if group:
                    site[taxonomy][value] = group
                else:
                    site[taxonomy].pop(value, None)

    def _render_document(
        self, resolved: ResolvedDocument, url: str, site: dict[str, Any]
    ) -> _Rendered | None:
        try:
            transformed = self.transformer.transform(resolved, url, site)
        except ContentError as exc:
            self._content_failed(exc)
            return None

        if transformed.invalid_diagrams:
            message = f"{transformed.invalid_diagrams} diagram block(s) with an unknown diagram type"
            logger.warning("%s: %s", resolved.source_path, message)
            self.report.warn(
                "transform", message, source=resolved.source_path, kind="invalid_diagram"
            )

        doc = resolved.document
        settings = resolved.settings
        page = RenderedPage.at(
            url,
            transformed.html,
            kind=PageKind.DOCUMENT,
            source=doc.source_path,
            title=str(settings.get("title") or doc.title),
            excerpt=transformed.excerpt,
            last_modified=doc.last_modified,
            sitemap=not doc.draft and settings.get("sitemap", True) is not False,
            search=settings.get("search", True) is not False,
            categories=list(doc.categories),
            tags=list(doc.tags),
        )
        return _Rendered(page, transformed.content)

    def _content_failed(self, exc: ContentError) -> None:
        if not self.config.skip_invalid:
            raise exc
        logger.warning("Skipping %s: %s", exc.source, exc.message)
        self.report.skip("transform", exc)


class _Rendered:
    __slots__ = ("page", "content_fragment")

    def __init__(self, page: RenderedPage, content_fragment: str) -> None:
        self.page = page
        self.content_fragment = content_fragment
