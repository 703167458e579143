"""Template tokens, Markdown conversion and layout wrapping.

Each document body goes through three steps, in order:

1. Template tokens (``{{ site.title }}``, ``{% if %}``, ...) are evaluated
   with Jinja2 against the document's ``page`` settings and the ``site``
   payload. Unresolved tokens are errors. ``{% raw %}`` regions pass through
   untouched.
2. Markdown documents are converted to HTML with Python-Markdown.
3. The result is wrapped in the document's layout chain.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape as xml_escape

import markdown
from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateError,
    TemplateSyntaxError,
    Undefined,
)
from pydantic import BaseModel, ConfigDict, Field

from staticpress.config import SiteConfig
from staticpress.content import split_front_matter
from staticpress.diagrams import invalid_mermaid_blocks
from staticpress.errors import ConfigurationError, ContentError
from staticpress.permalink import archive_url, slugify
from staticpress.resolver import ResolvedDocument

logger = logging.getLogger(__name__)

THEME_DIR = Path(__file__).parent / "theme"
LAYOUTS_DIR = "_layouts"
INCLUDES_DIR = "_includes"

MARKDOWN_EXTENSIONS = [
    "fenced_code",
    "tables",
    "toc",
    "sane_lists",
    "attr_list",
    "footnotes",
]

WORDS_PER_MINUTE = 200

_TAG = re.compile(r"<[^>]+>")


class Layout(BaseModel):
    """A layout template and the parent it declares."""

    model_config = ConfigDict(frozen=True)

    name: str
    origin: str
    source: str
    front_matter: dict[str, Any] = Field(default_factory=dict)

    @property
    def parent(self) -> str | None:
        value = self.front_matter.get("layout")
        if value in (None, "", "none"):
            return None
        return str(value)


class TransformedDocument(BaseModel):
    """Output of the transformer for one document."""

    source_path: str
    url: str
    content: str
    excerpt: str = ""
    toc: str = ""
    html: str
    layout_chain: list[str] = Field(default_factory=list)
    invalid_diagrams: int = 0


def _strip_html(value: object) -> str:
    return _TAG.sub("", str(value))


def _to_datetime(value: object) -> datetime | date | None:
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class MarkdownConverter:
    """Thin wrapper around a reusable Python-Markdown instance."""

    def __init__(self) -> None:
        self._md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, output_format="html")

    def convert(self, text: str) -> tuple[str, str]:
        """Convert Markdown, returning ``(html, toc_html)``."""
        self._md.reset()
        html = self._md.convert(text)
        toc = getattr(self._md, "toc", "")
        return html, toc


def build_environment(
    config: SiteConfig,
    source_dir: Path,
    converter: MarkdownConverter,
    *,
    strict: bool,
) -> Environment:
    """Create a Jinja2 environment with Liquid-style comments and filters."""
    env = Environment(
        loader=FileSystemLoader([str(source_dir / INCLUDES_DIR), str(THEME_DIR / INCLUDES_DIR)]),
        undefined=StrictUndefined if strict else Undefined,
        autoescape=False,
        keep_trailing_newline=True,
        comment_start_string="{% comment %}",
        comment_end_string="{% endcomment %}",
    )

    def _date(value: object, fmt: str = "%Y-%m-%d") -> str:
        parsed = _to_datetime(value)
        return parsed.strftime(fmt) if parsed else ""

    def _xmlschema(value: object) -> str:
        parsed = _to_datetime(value)
        return parsed.isoformat() if parsed else ""

    def _markdownify(value: object) -> str:
        return converter.convert(str(value))[0]

    def _words(value: object) -> int:
        return len(_strip_html(value).split())

    env.filters.update({
        "relative_url": lambda value: config.relative_url(str(value)),
        "absolute_url": lambda value: config.absolute_url(str(value)),
        "date": _date,
        "date_to_xmlschema": _xmlschema,
        "date_to_string": lambda value: _date(value, "%d %b %Y"),
        "date_to_long_string": lambda value: _date(value, "%d %B %Y"),
        "slugify": lambda value: slugify(str(value)),
        "category_url": lambda value: archive_url(config, "categories", str(value)),
        "tag_url": lambda value: archive_url(config, "tags", str(value)),
        "xml_escape": lambda value: xml_escape(str(value), {'"': "&quot;"}),
        "markdownify": _markdownify,
        "strip_html": _strip_html,
        "number_of_words": _words,
        "reading_time": lambda value: max(1, round(_words(value) / WORDS_PER_MINUTE)),
        "jsonify": lambda value: json.dumps(value, default=str, sort_keys=True),
    })
    return env


class LayoutLibrary:
    """Layouts from the site's ``_layouts`` directory and the built-in theme.

    Site layouts shadow theme layouts of the same name.
    """

    def __init__(self, env: Environment, search_dirs: list[Path]) -> None:
        self._env = env
        self._layouts: dict[str, Layout] = {}
        self._templates: dict[str, Template] = {}
        for directory in search_dirs:
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*.html")):
                name = path.stem
                if name in self._layouts:
                    continue
                self._layouts[name] = self._load(path)

    @classmethod
    def for_site(cls, env: Environment, source_dir: Path) -> LayoutLibrary:
        return cls(env, [source_dir / LAYOUTS_DIR, THEME_DIR / LAYOUTS_DIR])

    @staticmethod
    def _load(path: Path) -> Layout:
        text = path.read_text(encoding="utf-8")
        try:
            front_matter, body = split_front_matter(text, str(path))
        except ContentError as exc:
            raise ConfigurationError(f"Layout {path}: {exc.message}") from exc
        return Layout(name=path.stem, origin=str(path), source=body, front_matter=front_matter)

    def names(self) -> list[str]:
        return sorted(self._layouts)

    def __contains__(self, name: object) -> bool:
        return name in self._layouts

    def get(self, name: str) -> Layout:
        return self._layouts[name]

    def chain(self, name: str) -> list[Layout]:
        """Layouts from ``name`` outwards, ending at a layout with no parent.

        Raises:
            ConfigurationError: On a cyclic or dangling parent reference.
        """
        chain: list[Layout] = []
        seen: list[str] = []
        current: str | None = name
        while current is not None:
            if current in seen:
                cycle = " -> ".join([*seen[seen.index(current):], current])
                raise ConfigurationError(f"Cyclic layout reference: {cycle}")
            if current not in self._layouts:
                where = f" (parent of {seen[-1]!r})" if seen else ""
                raise ConfigurationError(f"Unknown layout {current!r}{where}")
            seen.append(current)
            layout = self._layouts[current]
            chain.append(layout)
            current = layout.parent
        return chain

    def validate(self) -> None:
        """Check every layout's chain and compile every template.

        Called before any document is rendered so misconfigured layouts abort
        the build early.
        """
        for name in self.names():
            self.chain(name)
            self.template(name)

    def template(self, name: str) -> Template:
        if name not in self._templates:
            layout = self._layouts[name]
            try:
                self._templates[name] = self._env.from_string(layout.source)
            except TemplateSyntaxError as exc:
                raise ConfigurationError(
                    f"Layout {layout.origin}: template syntax error on line {exc.lineno}: {exc.message}"
                ) from exc
        return self._templates[name]


class ContentTransformer:
    """Turns resolved documents into final HTML."""

    def __init__(self, config: SiteConfig, source_dir: Path) -> None:
        self.config = config
        self.source_dir = source_dir
        self.converter = MarkdownConverter()
        self.body_env = build_environment(config, source_dir, self.converter, strict=True)
        self.layout_env = build_environment(config, source_dir, self.converter, strict=False)
        self.layouts = LayoutLibrary.for_site(self.layout_env, source_dir)

    def page_context(self, resolved: ResolvedDocument, url: str) -> dict[str, Any]:
        """The ``page`` variable seen by templates."""
        doc = resolved.document
        page = dict(resolved.settings)
        page.update({
            "url": url,
            "id": url,
            "path": doc.source_path,
            "collection": doc.collection.value,
            "slug": doc.slug,
            "title": page.get("title") or doc.title,
            "date": doc.date,
            "last_modified_at": doc.last_modified,
            "categories": list(doc.categories),
            "tags": list(doc.tags),
            "draft": doc.draft,
        })
        return page

    def render_tokens(self, text: str, context: dict[str, Any], *, source: str) -> str:
        """Evaluate template tokens in ``text``.

        Raises:
            ContentError: On a syntax error or an unresolved token.
        """
        try:
            return self.body_env.from_string(text).render(context)
        except TemplateSyntaxError as exc:
            raise ContentError(
                source, f"template syntax error on line {exc.lineno}: {exc.message}"
            ) from exc
        except TemplateError as exc:
            raise ContentError(source, f"unresolved template token: {exc}") from exc

    def apply_layouts(
        self,
        content: str,
        layout_name: str | None,
        context: dict[str, Any],
        *,
        source: str,
    ) -> tuple[str, list[str]]:
        """Wrap ``content`` in its layout chain, innermost first."""
        if layout_name is None:
            return content, []
        if layout_name not in self.layouts:
            raise ContentError(source, f"unknown layout {layout_name!r}")
        chain = self.layouts.chain(layout_name)
        for layout in chain:
            layout_context = dict(context, content=content, layout=layout.front_matter)
            content = self.layouts.template(layout.name).render(layout_context)
        return content, [layout.name for layout in chain]

    def transform(
        self,
        resolved: ResolvedDocument,
        url: str,
        site: dict[str, Any],
        *,
        paginator: dict[str, Any] | None = None,
        page_extra: dict[str, Any] | None = None,
    ) -> TransformedDocument:
        """Run the full token → Markdown → layout pipeline for one document."""
        doc = resolved.document
        page = self.page_context(resolved, url)
        if page_extra:
            page.update(page_extra)
        context = {"site": site, "page": page, "paginator": paginator}

        text = self.render_tokens(doc.body, context, source=doc.source_path)

        invalid = 0
        toc = ""
        if doc.is_markdown:
            invalid = len(invalid_mermaid_blocks(text))
            content, toc = self.converter.convert(text)
            excerpt = self._excerpt(resolved, text, context)
        else:
            content = text
            excerpt = ""

        page["content"] = content
        page["excerpt"] = excerpt
        page["toc_html"] = toc
        html, chain = self.apply_layouts(content, resolved.layout, context, source=doc.source_path)

        return TransformedDocument(
            source_path=doc.source_path,
            url=url,
            content=content,
            excerpt=excerpt,
            toc=toc,
            html=html,
            layout_chain=chain,
            invalid_diagrams=invalid,
        )

    def _excerpt(self, resolved: ResolvedDocument, text: str, context: dict[str, Any]) -> str:
        explicit = resolved.settings.get("excerpt")
        if explicit:
            source = self.render_tokens(str(explicit), context, source=resolved.source_path)
        else:
            stripped = text.lstrip()
            separator = self.config.excerpt_separator
            source = stripped.split(separator, 1)[0] if separator else stripped
        return self.converter.convert(source)[0]
