"""Permalink patterns: document metadata → URL → output path."""

from __future__ import annotations

import posixpath
import re
import unicodedata
from urllib.parse import quote

from staticpress.config import ArchiveConfig, SiteConfig
from staticpress.content import Collection
from staticpress.errors import ConfigurationError
from staticpress.resolver import ResolvedDocument

STYLES: dict[str, str] = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

PLACEHOLDERS = frozenset({
    "categories",
    "title",
    "slug",
    "name",
    "year",
    "short_year",
    "month",
    "i_month",
    "day",
    "i_day",
    "y_day",
    "hour",
    "minute",
    "second",
    "path",
    "basename",
    "output_ext",
})

DATE_PLACEHOLDERS = frozenset({
    "year", "short_year", "month", "i_month", "day", "i_day", "y_day", "hour", "minute", "second",
})

_PLACEHOLDER = re.compile(r":([a-z_]+)")


def slugify(text: str) -> str:
    """Lowercase, ASCII-fold and hyphenate ``text`` for use in a URL."""
    normalized = unicodedata.normalize("NFKD", str(text)).encode("ascii", "ignore").decode()
    cleaned = re.sub(r"[^a-z0-9]+", "-", normalized.lower())
    return cleaned.strip("-")


def expand_style(pattern: str) -> str:
    return STYLES.get(pattern, pattern)


def validate_pattern(pattern: str | None) -> str:
    """Expand a named style and check the pattern is usable.

    Raises:
        ConfigurationError: If the pattern is empty, relative or uses an
            unknown placeholder.
    """
    if not pattern:
        raise ConfigurationError("Permalink pattern is empty")
    expanded = expand_style(str(pattern))
    if not expanded.startswith("/"):
        raise ConfigurationError(f"Permalink pattern must start with '/': {pattern!r}")
    unknown = sorted(set(_PLACEHOLDER.findall(expanded)) - PLACEHOLDERS)
    if unknown:
        raise ConfigurationError(
            f"Unknown permalink placeholder(s) {', '.join(':' + u for u in unknown)} "
            f"in {pattern!r}"
        )
    return expanded


def validate_paginate_path(path: str) -> str:
    if ":num" not in path:
        raise ConfigurationError(f"paginate_path must contain ':num': {path!r}")
    if not path.startswith("/"):
        raise ConfigurationError(f"paginate_path must start with '/': {path!r}")
    return path


def _page_pattern(config: SiteConfig, resolved: ResolvedDocument) -> str:
    doc = resolved.document
    site_pattern = expand_style(str(config.permalink or "date"))
    if doc.output_ext != ".html":
        return "/:path/:basename:output_ext"
    if posixpath.splitext(posixpath.basename(doc.source_path))[0] == "index":
        return "/:path/"
    if site_pattern.endswith("/"):
        return "/:path/:basename/"
    return "/:path/:basename:output_ext"


def placeholder_values(resolved: ResolvedDocument) -> dict[str, str]:
    """Values substituted into a permalink pattern for a document."""
    doc = resolved.document
    directory, filename = posixpath.split(doc.source_path)
    basename = posixpath.splitext(filename)[0]
    values = {
        "categories": "/".join(slugify(c) for c in doc.categories),
        "title": slugify(doc.slug),
        "slug": slugify(doc.slug),
        "name": slugify(basename),
        "path": directory,
        "basename": basename,
        "output_ext": doc.output_ext,
    }
    if doc.date is not None:
        d = doc.date
        values.update({
            "year": f"{d.year:04d}",
            "short_year": f"{d.year % 100:02d}",
            "month": f"{d.month:02d}",
            "i_month": str(d.month),
            "day": f"{d.day:02d}",
            "i_day": str(d.day),
            "y_day": f"{d.timetuple().tm_yday:03d}",
            "hour": f"{d.hour:02d}",
            "minute": f"{d.minute:02d}",
            "second": f"{d.second:02d}",
        })
    return values


def resolve_url(config: SiteConfig, resolved: ResolvedDocument) -> str:
    """Substitute document metadata into its permalink pattern.

    Pages without an explicit permalink follow their source path; the site
    pattern only decides whether they get pretty (trailing slash) URLs.

    Raises:
        ConfigurationError: If the pattern is invalid or needs a date the
            document does not have.
    """
    doc = resolved.document
    if doc.collection is Collection.PAGES and not resolved.permalink_explicit:
        pattern = _page_pattern(config, resolved)
    else:
        pattern = validate_pattern(resolved.settings.get("permalink"))

    values = placeholder_values(resolved)

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            if name in DATE_PLACEHOLDERS:
                raise ConfigurationError(
                    f"Permalink {pattern!r} needs a date but {doc.source_path} has none"
                )
            raise ConfigurationError(f"Unknown permalink placeholder :{name} in {pattern!r}")
        return values[name]

    url = _PLACEHOLDER.sub(_substitute, pattern)
    return normalize_url(url)


def normalize_url(url: str) -> str:
    """Collapse duplicate slashes, keeping a trailing slash if present."""
    trailing = url.endswith("/")
    parts = [part for part in url.split("/") if part]
    if not parts:
        return "/"
    normalized = "/" + "/".join(parts)
    return normalized + "/" if trailing else normalized


def url_to_output_path(url: str) -> str:
    """Map a site URL to a POSIX path relative to the output directory.

    Raises:
        ConfigurationError: If the URL escapes the output directory.
    """
    path = url.lstrip("/")
    if not path or url.endswith("/"):
        path = posixpath.join(path, "index.html")
    elif "." not in posixpath.basename(path):
        path += ".html"
    normalized = posixpath.normpath(path)
    if normalized.startswith("..") or posixpath.isabs(normalized):
        raise ConfigurationError(f"URL {url!r} escapes the output directory")
    return normalized


def paginate_url(config: SiteConfig, num: int, home_url: str = "/") -> str:
    """URL of pagination page ``num``; page 1 lives at the home URL."""
    if num == 1:
        return home_url
    return normalize_url(validate_paginate_path(config.paginate_path).replace(":num", str(num)))


def archive_slug(value: str) -> str:
    """URL segment for a category or tag value.

    Values that differ only in case or punctuation (``Azure``/``azure``,
    ``C#``/``C++``) share a slug and therefore one archive page.
    """
    return slugify(value) or quote(value.lower(), safe="")


def archive_base_path(taxonomy: str, archive: ArchiveConfig) -> str:
    """Directory holding the archives of ``taxonomy``; ``/`` means the default."""
    return archive.path if archive.path != "/" else f"/{taxonomy}/"


def archive_url(config: SiteConfig, taxonomy: str, value: str) -> str:
    """URL of the archive page listing ``value``, or ``""`` when archives are off."""
    archive = config.category_archive if taxonomy == "categories" else config.tag_archive
    if archive is None:
        return ""
    return normalize_url(f"{archive_base_path(taxonomy, archive)}{archive_slug(value)}/")
