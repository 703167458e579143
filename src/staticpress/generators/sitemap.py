"""XML sitemap of every publicly routable HTML page."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from staticpress.generators.base import IndexGenerator
from staticpress.site import PageKind, RenderedPage, SiteBuild

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
SITEMAP_URL = "/sitemap.xml"

# 404 pages are routable but never canonical.
EXCLUDED_OUTPUTS = frozenset({"404.html"})


def sitemap_entries(pages: list[RenderedPage]) -> list[RenderedPage]:
    """Pages that belong in the sitemap, sorted by URL."""
    selected = [
        page
        for page in pages
        if page.is_html
        and page.sitemap
        and page.kind is not PageKind.REDIRECT
        and page.output_path not in EXCLUDED_OUTPUTS
    ]
    return sorted(selected, key=lambda page: page.url)


class SitemapGenerator(IndexGenerator):
    """Runs last so it sees every other page."""

    name = "jekyll-sitemap"

    def generate(self, build: SiteBuild) -> list[RenderedPage]:
        config = build.config
        urlset = ET.Element("urlset", {"xmlns": SITEMAP_NS})
        for page in sitemap_entries(build.pages):
            entry = ET.SubElement(urlset, "url")
            ET.SubElement(entry, "loc").text = config.absolute_url(page.url)
            if page.last_modified is not None:
                ET.SubElement(entry, "lastmod").text = page.last_modified.isoformat()

        ET.indent(urlset)
        content = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            + ET.tostring(urlset, encoding="unicode")
            + "\n"
        )
        return [
            RenderedPage.at(
                SITEMAP_URL,
                content,
                kind=PageKind.SITEMAP,
                sitemap=False,
                search=False,
            )
        ]
