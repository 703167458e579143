"""Whitespace compression for emitted HTML.

Runs of whitespace in text are collapsed to a single character (a newline if
the run contained one, else a space), which a browser renders identically.
Tags, attribute values, and the contents of whitespace-sensitive elements are
left untouched.
"""

from __future__ import annotations

import re

PRESERVED_ELEMENTS = ("pre", "textarea", "script", "style", "code")

_PRESERVED = re.compile(
    r"(<(%s)\b[^>]*>.*?</\2\s*>)" % "|".join(PRESERVED_ELEMENTS),
    re.IGNORECASE | re.DOTALL,
)
_TAG = re.compile(r"(<!--.*?-->|<[^>]*>)", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_CONDITIONAL_COMMENT = re.compile(r"<!--\[if|<!\[endif\]")


def _collapse(match: re.Match[str]) -> str:
    return "\n" if "\n" in match.group(0) else " "


def _compress_segment(segment: str, strip_comments: bool) -> str:
    parts = _TAG.split(segment)
    out: list[str] = []
    for index, part in enumerate(parts):
        if index % 2:
            if strip_comments and part.startswith("<!--") and not _CONDITIONAL_COMMENT.match(part):
                continue
            out.append(part)
        else:
            out.append(_WHITESPACE.sub(_collapse, part))
    return "".join(out)


def compress_html(html: str, *, strip_comments: bool = False) -> str:
    """Compress ``html`` without changing how it renders."""
    pieces = _PRESERVED.split(html)
    out: list[str] = []
    # re.split yields [text, whole_match, element_name, text, ...]
    for index in range(0, len(pieces), 3):
        out.append(_compress_segment(pieces[index], strip_comments))
        if index + 1 < len(pieces):
            out.append(pieces[index + 1])
    return "".join(out).strip() + "\n"
