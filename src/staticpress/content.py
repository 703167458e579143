"""Source discovery and document parsing.

Walks the site source directory, classifies every file as a post, a page or
a static asset, and parses front matter into immutable ``Document`` models.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from datetime import date, datetime, time
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from staticpress.config import SiteConfig
from staticpress.errors import ContentError

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"

_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
_POST_FILENAME = re.compile(r"^(\d{4}-\d{2}-\d{2})-(.+)$")


class Collection(StrEnum):
    """Collections a document can belong to."""

    POSTS = "posts"
    PAGES = "pages"


class SourceEntry(BaseModel):
    """A discovered source file that will become a document."""

    model_config = ConfigDict(frozen=True)

    path: str
    collection: Collection
    draft: bool = False


class SourceInventory(BaseModel):
    """Everything found in the source directory, in a stable order."""

    documents: list[SourceEntry] = Field(default_factory=list)
    assets: list[str] = Field(default_factory=list)


class Document(BaseModel):
    """Parsed source document: front matter plus raw body."""

    model_config = ConfigDict(frozen=True)

    source_path: str
    collection: Collection
    front_matter: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    date: datetime | None = None
    modified: datetime
    slug: str
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_markdown: bool = True
    output_ext: str = ".html"
    draft: bool = False

    @property
    def title(self) -> str:
        value = self.front_matter.get("title")
        if value:
            return str(value)
        return self.slug.replace("-", " ").strip().capitalize()

    @property
    def published(self) -> bool:
        return self.front_matter.get("published", True) is not False

    @property
    def last_modified(self) -> datetime:
        """Best known modification time: front matter, then date, then mtime."""
        value = self.front_matter.get("last_modified_at")
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=self.modified.tzinfo)
        if isinstance(value, date):
            return datetime.combine(value, time.min, tzinfo=self.modified.tzinfo)
        return self.date or self.modified


def has_front_matter(path: Path) -> bool:
    """True if the file starts with a ``---`` front-matter fence."""
    with open(path, "rb") as f:
        head = f.read(5)
    return head.startswith((b"---\n", b"---\r\n", b"--- ")) or head == b"---"


def split_front_matter(text: str, source: str = "<string>") -> tuple[dict[str, Any], str]:
    """Split raw text into a front-matter mapping and the body.

    Text without a front-matter block yields an empty mapping.

    Raises:
        ContentError: If the block is not valid YAML or not a mapping.
    """
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise ContentError(source, f"malformed front matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ContentError(source, "front matter must be a mapping")
    return data, text[match.end():]


def parse_date(value: object, zone: Any, source: str = "<string>") -> datetime:
    """Normalize a front-matter date into an aware datetime in the site zone."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        parsed = _parse_date_string(value.strip(), source)
    else:
        raise ContentError(source, f"invalid date {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _parse_date_string(value: str, source: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M %z", "%Y-%m-%d %H:%M"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ContentError(source, f"invalid date {value!r}")


def _as_list(value: object) -> list[str]:
    """Jekyll semantics: strings split on whitespace, lists kept in order."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split()
    elif isinstance(value, (list, tuple, set)):
        items = [str(v).strip() for v in value if v is not None]
    else:
        items = [str(value)]
    seen: dict[str, None] = {}
    for item in items:
        if item:
            seen.setdefault(item, None)
    return list(seen)


class ContentReader:
    """Discovers and reads documents from the site source directory."""

    def __init__(self, config: SiteConfig, source_dir: Path) -> None:
        self.config = config
        self.source_dir = source_dir
        self._destination = (source_dir / config.destination).resolve()

    def discover(self) -> SourceInventory:
        """Classify every file under the source directory."""
        inventory = SourceInventory()
        for path in sorted(self.source_dir.rglob("*")):
            if not path.is_file():
                continue
            if path.resolve().is_relative_to(self._destination):
                continue
            rel = path.relative_to(self.source_dir).as_posix()
            if self._is_excluded(rel):
                continue

            parts = rel.split("/")
            if POSTS_DIR in parts[:-1]:
                if self._is_content_file(path):
                    inventory.documents.append(SourceEntry(path=rel, collection=Collection.POSTS))
                continue
            if DRAFTS_DIR in parts[:-1]:
                if self.config.show_drafts and self._is_content_file(path):
                    inventory.documents.append(
                        SourceEntry(path=rel, collection=Collection.POSTS, draft=True)
                    )
                continue
            if self._is_hidden(parts):
                continue
            if has_front_matter(path):
                inventory.documents.append(SourceEntry(path=rel, collection=Collection.PAGES))
            else:
                inventory.assets.append(rel)

        logger.debug(
            "Discovered %d documents and %d assets in %s",
            len(inventory.documents),
            len(inventory.assets),
            self.source_dir,
        )
        return inventory

    def read_document(self, entry: SourceEntry) -> Document:
        """Read and parse a single document.

        Raises:
            ContentError: If the file cannot be read or its metadata is invalid.
        """
        path = self.source_dir / entry.path
        try:
            text = path.read_text(encoding=self.config.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentError(entry.path, f"could not read file: {exc}") from exc

        front_matter, body = split_front_matter(text, entry.path)
        zone = self.config.zone
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=zone)
        is_markdown = path.suffix.lower() in self.config.markdown_extensions
        output_ext = ".html" if is_markdown else path.suffix

        stem = path.stem
        post_date: datetime | None = None
        categories = _as_list(front_matter.get("categories")) or _as_list(
            front_matter.get("category")
        )

        if entry.collection is Collection.POSTS:
            match = _POST_FILENAME.match(stem)
            if match:
                stem = match.group(2)
                post_date = parse_date(match.group(1), zone, entry.path)
            elif not entry.draft:
                raise ContentError(
                    entry.path, "post filename must look like YYYY-MM-DD-title.ext"
                )
            else:
                post_date = modified
            # Directories above _posts are categories too.
            parts = entry.path.split("/")
            marker = DRAFTS_DIR if entry.draft else POSTS_DIR
            dir_categories = parts[: parts.index(marker)]
            categories = _as_list(dir_categories + categories)

        if "date" in front_matter:
            post_date = parse_date(front_matter["date"], zone, entry.path)

        slug = str(front_matter.get("slug") or stem)
        tags = _as_list(front_matter.get("tags")) or _as_list(front_matter.get("tag"))

        return Document(
            source_path=entry.path,
            collection=entry.collection,
            front_matter=front_matter,
            body=body,
            date=post_date,
            modified=modified,
            slug=slug,
            categories=categories,
            tags=tags,
            is_markdown=is_markdown,
            output_ext=output_ext,
            draft=entry.draft,
        )

    def _is_content_file(self, path: Path) -> bool:
        suffix = path.suffix.lower()
        return suffix in self.config.markdown_extensions or suffix == ".html"

    def _is_hidden(self, parts: list[str]) -> bool:
        for part in parts:
            if part.startswith((".", "_")) and part not in self.config.include:
                return True
        return False

    def _is_excluded(self, rel: str) -> bool:
        for pattern in self.config.exclude:
            pattern = pattern.strip("/")
            if not pattern:
                continue
            if rel == pattern or rel.startswith(pattern + "/"):
                return True
            if fnmatch.fnmatch(rel, pattern):
                return True
        return False
