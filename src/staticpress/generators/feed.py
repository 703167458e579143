"""Atom feed of the most recent posts (jekyll-feed compatible path)."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import UTC, datetime

from staticpress.generators.base import IndexGenerator
from staticpress.site import PageKind, RenderedPage, SiteBuild

ATOM_NS = "http://www.w3.org/2005/Atom"
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _sub(parent: ET.Element, tag: str, text: str | None = None, **attrs: str) -> ET.Element:
    element = ET.SubElement(parent, tag, attrs)
    if text is not None:
        element.text = text
    return element


class FeedGenerator(IndexGenerator):
    name = "jekyll-feed"

    def generate(self, build: SiteBuild) -> list[RenderedPage]:
        config = build.config
        feed_url = config.feed.path
        published = [post for post in build.posts if not post.get("draft")]
        posts = published[: config.feed.posts_limit]
        updated = max(
            (post["last_modified_at"] for post in published if post.get("last_modified_at")),
            default=EPOCH,
        )

        feed = ET.Element("feed", {"xmlns": ATOM_NS})
        _sub(feed, "generator", "staticpress")
        _sub(feed, "link", href=config.absolute_url(feed_url), rel="self", type="application/atom+xml")
        _sub(feed, "link", href=config.absolute_url("/"), rel="alternate", type="text/html")
        _sub(feed, "updated", updated.isoformat())
        _sub(feed, "id", config.absolute_url(feed_url))
        _sub(feed, "title", config.title or "Feed", type="html")
        if config.description:
            _sub(feed, "subtitle", config.description)
        if config.author.name:
            author = _sub(feed, "author")
            _sub(author, "name", config.author.name)

        for post in posts:
            url = config.absolute_url(post["url"])
            entry = _sub(feed, "entry")
            _sub(entry, "title", str(post.get("title", "")), type="html")
            _sub(entry, "link", href=url, rel="alternate", type="text/html", title=str(post.get("title", "")))
            if post.get("date"):
                _sub(entry, "published", post["date"].isoformat())
            _sub(entry, "updated", (post.get("last_modified_at") or post.get("date") or EPOCH).isoformat())
            _sub(entry, "id", url)
            _sub(entry, "content", post.get("content", ""), type="html", **{"xml:base": url})
            for category in post.get("categories") or []:
                _sub(entry, "category", term=category)
            for tag in post.get("tags") or []:
                _sub(entry, "category", term=tag)
            if post.get("excerpt"):
                _sub(entry, "summary", post["excerpt"], type="html")

        ET.indent(feed)
        xml = ET.tostring(feed, encoding="unicode", xml_declaration=False)
        content = '<?xml version="1.0" encoding="utf-8"?>\n' + xml + "\n"
        return [
            RenderedPage.at(
                feed_url,
                content,
                kind=PageKind.FEED,
                title=config.title,
                last_modified=updated,
                sitemap=False,
                search=False,
            )
        ]
