"""Home page pagination.

Page 1 is the home page itself. Pages 2..n live at ``paginate_path``. The
explicit page-1 URL (``/page1/`` with the default path) is emitted as a
redirect to the home page so both addresses always agree.
"""

from __future__ import annotations

import html
import logging
import math
from typing import Any

from staticpress.generators.base import IndexGenerator
from staticpress.permalink import normalize_url, paginate_url, validate_paginate_path
from staticpress.site import PageKind, RenderedPage, SiteBuild

logger = logging.getLogger(__name__)

HOME_LAYOUT = "home"

REDIRECT_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Redirecting&hellip;</title>
<link rel="canonical" href="{absolute}">
<meta http-equiv="refresh" content="0; url={target}">
<meta name="robots" content="noindex">
</head>
<body>
<h1>Redirecting&hellip;</h1>
<a href="{target}">Click here if you are not redirected.</a>
<script>location="{target}"</script>
</body>
</html>
"""


def redirect_page(url: str, target_url: str, build: SiteBuild) -> RenderedPage:
    """A static page that sends browsers to ``target_url``."""
    target = html.escape(build.config.relative_url(target_url), quote=True)
    absolute = html.escape(build.config.absolute_url(target_url), quote=True)
    return RenderedPage.at(
        url,
        REDIRECT_TEMPLATE.format(target=target, absolute=absolute),
        kind=PageKind.REDIRECT,
        sitemap=False,
        search=False,
    )


def paginate(posts: list[dict[str, Any]], per_page: int) -> list[list[dict[str, Any]]]:
    """Split posts (already newest first) into fixed-size buckets.

    Always returns at least one (possibly empty) bucket.
    """
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total_pages = max(1, math.ceil(len(posts) / per_page))
    return [posts[i * per_page:(i + 1) * per_page] for i in range(total_pages)]


class PaginationGenerator(IndexGenerator):
    """jekyll-paginate compatible paginator for the home page."""

    name = "jekyll-paginate"
    claims_home = True

    def generate(self, build: SiteBuild) -> list[RenderedPage]:
        config = build.config
        per_page = config.paginate or 0
        validate_paginate_path(config.paginate_path)
        buckets = paginate(build.posts, per_page)
        total_pages = len(buckets)
        urls = [paginate_url(config, num, build.home_url) for num in range(1, total_pages + 1)]

        pages: list[RenderedPage] = []
        for index, bucket in enumerate(buckets):
            num = index + 1
            paginator = {
                "page": num,
                "per_page": per_page,
                "posts": bucket,
                "total_posts": len(build.posts),
                "total_pages": total_pages,
                "previous_page": num - 1 if num > 1 else None,
                "previous_page_path": urls[index - 1] if num > 1 else None,
                "next_page": num + 1 if num < total_pages else None,
                "next_page_path": urls[index + 1] if num < total_pages else None,
            }
            pages.append(self._render(build, urls[index], num, paginator))

        first_alias = normalize_url(config.paginate_path.replace(":num", "1"))
        if first_alias != build.home_url:
            pages.append(redirect_page(first_alias, build.home_url, build))

        logger.debug("Paginated %d posts into %d pages", len(build.posts), total_pages)
        return pages

    def _render(
        self, build: SiteBuild, url: str, num: int, paginator: dict[str, Any]
    ) -> RenderedPage:
        modified = build.newest_post_time()
        if build.home is not None:
            transformed = build.transformer.transform(
                build.home, url, build.site, paginator=paginator
            )
            doc = build.home.document
            return RenderedPage.at(
                url,
                transformed.html,
                kind=PageKind.DOCUMENT if num == 1 else PageKind.PAGINATION,
                source=doc.source_path if num == 1 else None,
                title=str(build.home.settings.get("title") or build.config.title),
                excerpt=transformed.excerpt,
                last_modified=max(filter(None, [modified, doc.last_modified])),
                sitemap=build.home.settings.get("sitemap", True) is not False,
                search=False,
            )

        title = build.config.title if num == 1 else f"{build.config.title} - Page {num}"
        page = {"title": title, "url": url, "layout": HOME_LAYOUT}
        return RenderedPage.at(
            url,
            build.render_layout(HOME_LAYOUT, page, paginator=paginator),
            kind=PageKind.DOCUMENT if num == 1 else PageKind.PAGINATION,
            title=title,
            last_modified=modified,
            search=False,
        )
