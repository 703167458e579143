"""Client-side search index (JSON) for the theme's search page."""

from __future__ import annotations

import json
import re

from staticpress.generators.base import IndexGenerator
from staticpress.site import PageKind, RenderedPage, SiteBuild

SEARCH_INDEX_URL = "/assets/js/search-data.json"
EXCERPT_WORDS = 50

_TAG = re.compile(r"<[^>]+>")


def plain_excerpt(html: str, words: int = EXCERPT_WORDS) -> str:
    text = _TAG.sub(" ", html)
    return " ".join(text.split()[:words])


class SearchIndexGenerator(IndexGenerator):
    """One entry per searchable document page."""

    name = "search"

    def generate(self, build: SiteBuild) -> list[RenderedPage]:
        entries = [
            {
                "title": page.title,
                "url": build.config.relative_url(page.url),
                "excerpt": plain_excerpt(page.excerpt),
                "categories": page.categories,
                "tags": page.tags,
            }
            for page in sorted(build.pages, key=lambda p: p.url)
            if page.kind is PageKind.DOCUMENT and page.is_html and page.search
        ]
        content = json.dumps(entries, indent=2, ensure_ascii=False) + "\n"
        return [
            RenderedPage.at(
                SEARCH_INDEX_URL,
                content,
                kind=PageKind.SEARCH,
                sitemap=False,
                search=False,
            )
        ]
