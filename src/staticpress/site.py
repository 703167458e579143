"""Rendered pages and the shared state handed to index generators."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from staticpress.config import SiteConfig
from staticpress.permalink import url_to_output_path

if TYPE_CHECKING:
    from staticpress.resolver import ResolvedDocument
    from staticpress.transform import ContentTransformer


class PageKind(StrEnum):
    """What produced a rendered page."""

    DOCUMENT = "document"
    ARCHIVE = "archive"
    PAGINATION = "pagination"
    REDIRECT = "redirect"
    FEED = "feed"
    SITEMAP = "sitemap"
    SEARCH = "search"
    ASSET = "asset"


class RenderedPage(BaseModel):
    """Final output artifact: a URL, its output path and its text."""

    url: str
    output_path: str
    content: str
    kind: PageKind = PageKind.DOCUMENT
    source: str | None = None
    title: str = ""
    excerpt: str = ""
    last_modified: datetime | None = None
    sitemap: bool = True
    search: bool = True
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def at(cls, url: str, content: str, **kwargs: Any) -> RenderedPage:
        """Build a page whose output path is derived from its URL."""
        return cls(url=url, output_path=url_to_output_path(url), content=content, **kwargs)

    @property
    def is_html(self) -> bool:
        return self.output_path.endswith((".html", ".htm"))

    @property
    def origin(self) -> str:
        """Source path, or a description of the generator for synthetic pages."""
        if self.source:
            return self.source
        return f"<generated {self.kind.value} {self.url}>"


class SiteBuild:
    """Everything generators may read while producing index pages.

    ``posts`` holds the ``page`` dicts of every successfully rendered post,
    newest first; ``pages`` grows as documents and generators emit output.
    """

    def __init__(
        self,
        config: SiteConfig,
        transformer: ContentTransformer,
        site: dict[str, Any],
        posts: list[dict[str, Any]],
        *,
        home: ResolvedDocument | None = None,
        home_url: str = "/",
    ) -> None:
        self.config = config
        self.transformer = transformer
        self.site = site
        self.posts = posts
        self.home = home
        self.home_url = home_url
        self.pages: list[RenderedPage] = []

    def has_url(self, url: str) -> bool:
        return any(page.url == url for page in self.pages)

    def newest_post_time(self) -> datetime | None:
        times = [post["last_modified_at"] for post in self.posts if post.get("last_modified_at")]
        return max(times) if times else None

    def render_layout(self, layout: str, page: dict[str, Any], **extra: Any) -> str:
        """Render a generated page through a layout chain with empty content."""
        context = {"site": self.site, "page": page, "paginator": extra.pop("paginator", None)}
        context.update(extra)
        html, _ = self.transformer.apply_layouts("", layout, context, source=page.get("url", ""))
        return html
