"""Merge scoped site defaults with per-document front matter."""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from staticpress.config import DefaultsRule, SiteConfig
from staticpress.content import Document
from staticpress.errors import ConfigurationError

REQUIRED_KEYS = ("permalink",)


class ResolvedDocument(BaseModel):
    """A document together with its effective settings."""

    model_config = ConfigDict(frozen=True)

    document: Document
    settings: dict[str, Any] = Field(default_factory=dict)
    permalink_explicit: bool = False

    @property
    def source_path(self) -> str:
        return self.document.source_path

    @property
    def layout(self) -> str | None:
        value = self.settings.get("layout")
        if value in (None, "", "none", "null"):
            return None
        return str(value)


def _path_segments(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]


def scope_matches(rule: DefaultsRule, document: Document) -> bool:
    """True if a defaults rule applies to the document.

    ``scope.path`` matches whole leading path segments; an empty path matches
    everything.
    """
    scope = rule.scope
    if scope.type is not None and scope.type != document.collection.value:
        return False
    prefix = _path_segments(scope.path)
    if not prefix:
        return True
    return _path_segments(document.source_path)[: len(prefix)] == prefix


def _specificity(indexed: tuple[int, DefaultsRule]) -> tuple[int, int, int]:
    index, rule = indexed
    return (len(_path_segments(rule.scope.path)), int(rule.scope.type is not None), index)


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``overlay``; nested mappings are merged."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def effective_defaults(config: SiteConfig, document: Document) -> dict[str, Any]:
    """Merge every matching defaults rule, least specific first."""
    matching = [
        (index, rule)
        for index, rule in enumerate(config.defaults)
        if scope_matches(rule, document)
    ]
    merged: dict[str, Any] = {}
    for _, rule in sorted(matching, key=_specificity):
        merged = deep_merge(merged, rule.values)
    return merged


def resolve_document(config: SiteConfig, document: Document) -> ResolvedDocument:
    """Produce the effective settings view for a document.

    Site defaults for the document's collection and path come first; the
    document's own front matter always wins.

    Raises:
        ConfigurationError: If a required key is missing after the merge.
    """
    settings = deep_merge(effective_defaults(config, document), document.front_matter)
    explicit = "permalink" in settings
    settings.setdefault("permalink", config.permalink)

    for key in REQUIRED_KEYS:
        if settings.get(key) in (None, ""):
            raise ConfigurationError(
                f"Required setting {key!r} is missing for {document.source_path}"
            )

    return ResolvedDocument(document=document, settings=settings, permalink_explicit=explicit)
