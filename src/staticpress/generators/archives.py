"""Category and tag archives: one page per distinct value plus an overview."""

from __future__ import annotations

import logging
from typing import Any

from staticpress.config import ArchiveConfig
from staticpress.generators.base import IndexGenerator
from staticpress.permalink import archive_base_path, archive_slug, normalize_url
from staticpress.site import PageKind, RenderedPage, SiteBuild

logger = logging.getLogger(__name__)


def group_posts(posts: list[dict[str, Any]], taxonomy: str) -> dict[str, dict[str, list[Any]]]:
    """Group posts by the archive slug of every ``taxonomy`` value they carry.

    Each group holds ``names`` (every spelling mapping to the slug, first
    seen first) and ``posts`` (newest first, each post once). Groups are
    sorted by slug.
    """
    groups: dict[str, dict[str, list[Any]]] = {}
    for post in posts:
        for value in post.get(taxonomy) or []:
            group = groups.setdefault(archive_slug(value), {"names": [], "posts": []})
            if value not in group["names"]:
                group["names"].append(value)
            if not any(member is post for member in group["posts"]):
                group["posts"].append(post)
    return {slug: groups[slug] for slug in sorted(groups)}


class TaxonomyArchiveGenerator(IndexGenerator):
    """Archive pages for ``categories`` or ``tags``."""

    def __init__(self, taxonomy: str, archive: ArchiveConfig) -> None:
        if taxonomy not in ("categories", "tags"):
            raise ValueError(f"Unknown taxonomy: {taxonomy!r}")
        self.taxonomy = taxonomy
        self.archive = archive
        self.name = "category-archive" if taxonomy == "categories" else "tag-archive"
        self.base_path = archive_base_path(taxonomy, archive)

    @property
    def label(self) -> str:
        return "Category" if self.taxonomy == "categories" else "Tag"

    def archive_url(self, slug: str) -> str:
        return normalize_url(f"{self.base_path}{slug}/")

    def generate(self, build: SiteBuild) -> list[RenderedPage]:
        groups = group_posts(build.posts, self.taxonomy)
        pages: list[RenderedPage] = []
        summaries: list[dict[str, Any]] = []

        for slug, group in groups.items():
            url = self.archive_url(slug)
            title = ", ".join(group["names"])
            posts = group["posts"]
            summaries.append(
                {"name": title, "names": group["names"], "slug": slug, "url": url, "posts": posts}
            )
            page = {
                "title": title,
                "names": group["names"],
                "url": url,
                "layout": self.archive.layout,
                "taxonomy": self.taxonomy,
                "taxonomy_label": self.label,
                "posts": posts,
            }
            pages.append(
                RenderedPage.at(
                    url,
                    build.render_layout(self.archive.layout, page),
                    kind=PageKind.ARCHIVE,
                    title=f"{self.label}: {title}",
                    last_modified=_newest(posts),
                    search=False,
                )
            )

        overview_url = normalize_url(self.base_path)
        if build.has_url(overview_url):
            logger.debug("%s overview at %s provided by a document", self.label, overview_url)
        elif summaries:
            page = {
                "title": "Categories" if self.taxonomy == "categories" else "Tags",
                "url": overview_url,
                "layout": self.archive.layout,
                "taxonomy": self.taxonomy,
                "taxonomy_label": self.label,
                "groups": summaries,
            }
            pages.append(
                RenderedPage.at(
                    overview_url,
                    build.render_layout(self.archive.layout, page),
                    kind=PageKind.ARCHIVE,
                    title=page["title"],
                    last_modified=build.newest_post_time(),
                    search=False,
                )
            )

        logger.debug("Generated %d %s archive pages", len(pages), self.taxonomy)
        return pages


def _newest(posts: list[dict[str, Any]]) -> Any:
    times = [p["last_modified_at"] for p in posts if p.get("last_modified_at")]
    return max(times) if times else None
