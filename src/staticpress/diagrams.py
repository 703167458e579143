"""Mermaid diagram support.

Build-time validation of ```mermaid blocks and generation of the client
script that renders them in the browser with a theme matching the site skin.
"""

from __future__ import annotations

import json
import re
from importlib import resources

from staticpress.config import SiteConfig

DEFAULT_DIAGRAM_THEME = "default"

# Skin name → Mermaid theme. Skins without a dark or tinted counterpart use
# the default theme.
SKIN_DIAGRAM_THEMES: dict[str, str] = {
    "air": "default",
    "aqua": "default",
    "contrast": "default",
    "dark": "dark",
    "default": "default",
    "dirt": "default",
    "mint": "forest",
    "neon": "dark",
    "plum": "dark",
    "sunrise": "default",
}

VALID_DIAGRAM_TYPES = frozenset({
    "graph",
    "flowchart",
    "sequencediagram",
    "classdiagram",
    "statediagram",
    "statediagram-v2",
    "erdiagram",
    "journey",
    "gantt",
    "pie",
    "quadrantchart",
    "requirementdiagram",
    "timeline",
    "gitgraph",
    "mindmap",
    "c4context",
    "sankey-beta",
    "xychart-beta",
    "block-beta",
})

_MERMAID_FENCE = re.compile(r"```mermaid\s*\n(.*?)```", re.DOTALL)


def resolve_diagram_theme(skin: str | None) -> str:
    """Map a skin name to its diagram theme, falling back to the default."""
    if not skin:
        return DEFAULT_DIAGRAM_THEME
    return SKIN_DIAGRAM_THEMES.get(skin, DEFAULT_DIAGRAM_THEME)


def extract_mermaid_blocks(text: str) -> list[str]:
    """Extract ```mermaid ... ``` blocks from Markdown.

    Returns the content of each block (without the fence markers).
    """
    return [m.group(1).strip() for m in _MERMAID_FENCE.finditer(text)]


def validate_mermaid(block: str) -> bool:
    """Basic syntax validation for a Mermaid block.

    Checks that the first meaningful line starts with a recognized diagram
    type keyword. Front-matter and ``%%`` comment lines are skipped.
    """
    lines = [line.strip() for line in block.strip().splitlines()]
    if lines and lines[0] == "---":
        try:
            end = lines.index("---", 1)
        except ValueError:
            return False
        lines = lines[end + 1:]
    lines = [line for line in lines if line and not line.startswith("%%")]
    if not lines:
        return False

    first_line = lines[0].lower()
    for dtype in VALID_DIAGRAM_TYPES:
        if first_line.startswith(dtype):
            return True

    return bool(first_line.startswith("state diagram"))


def invalid_mermaid_blocks(text: str) -> list[str]:
    """Return the Mermaid blocks in ``text`` that fail validation."""
    return [block for block in extract_mermaid_blocks(text) if not validate_mermaid(block)]


def render_client_script(config: SiteConfig) -> str:
    """Fill the packaged client script with the site's skin and theme table.

    The skin is baked in as a string constant; the script resolves it through
    the same table as :func:`resolve_diagram_theme`.
    """
    template = resources.files("staticpress").joinpath("static", "diagrams.js").read_text(
        encoding="utf-8"
    )
    replacements = {
        "__SKIN__": json.dumps(config.skin),
        "__THEMES__": json.dumps(SKIN_DIAGRAM_THEMES, sort_keys=True),
        "__DEFAULT_THEME__": json.dumps(DEFAULT_DIAGRAM_THEME),
        "__SELECTOR__": json.dumps(config.diagrams.selector),
    }
    for marker, value in replacements.items():
        template = template.replace(marker, value)
    return template
