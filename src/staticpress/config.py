"""Site configuration loaded from _config.yml, env vars, and CLI flags.

Loading order: defaults → YAML file → env vars → CLI flags.
The resulting ``SiteConfig`` is frozen and passed explicitly to every stage
of the build.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from staticpress.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "_config.yml"
CONFIG_FALLBACK_FILENAMES = ["_config.yml", "_config.yaml"]

DEFAULT_EXCLUDE = [
    ".sass-cache",
    ".jekyll-cache",
    "gemfiles",
    "Gemfile",
    "Gemfile.lock",
    "node_modules",
    "vendor",
]


class ScopeRule(BaseModel):
    """``scope`` of a defaults entry."""

    model_config = ConfigDict(frozen=True)

    path: str = ""
    type: str | None = None


class DefaultsRule(BaseModel):
    """One entry of the ``defaults`` list."""

    model_config = ConfigDict(frozen=True)

    scope: ScopeRule = Field(default_factory=ScopeRule)
    values: dict[str, Any] = Field(default_factory=dict)


class LinkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    url: str = ""
    icon: str = ""


class AuthorConfig(BaseModel):
    """``author`` section, shown in the author sidebar of single posts."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    avatar: str = ""
    bio: str = ""
    location: str = ""
    email: str = ""
    links: list[LinkConfig] = Field(default_factory=list)


class FooterConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    links: list[LinkConfig] = Field(default_factory=list)


class AnalyticsConfig(BaseModel):
    """``analytics`` section. Only the provider snippet is emitted."""

    model_config = ConfigDict(frozen=True)

    provider: str | None = None
    google: dict[str, Any] = Field(default_factory=dict)

    @property
    def tracking_id(self) -> str:
        return str(self.google.get("tracking_id", ""))


class ArchiveConfig(BaseModel):
    """``category_archive`` / ``tag_archive`` sections."""

    model_config = ConfigDict(frozen=True)

    type: str = "liquid"
    path: str = "/"
    layout: str = "archive"

    @field_validator("path")
    @classmethod
    def _slashes(cls, value: str) -> str:
        return "/" + value.strip("/") + "/" if value.strip("/") else "/"


class CompressIgnore(BaseModel):
    model_config = ConfigDict(frozen=True)

    envs: list[str] = Field(default_factory=list)

    @field_validator("envs", mode="before")
    @classmethod
    def _listify(cls, value: object) -> object:
        if isinstance(value, str):
            return [value]
        return value


class CompressConfig(BaseModel):
    """``compress_html`` section."""

    model_config = ConfigDict(frozen=True)

    clippings: str | list[str] = "all"
    strip_comments: bool = False
    ignore: CompressIgnore = Field(default_factory=CompressIgnore)


class FeedConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str = "/feed.xml"
    posts_limit: int = Field(default=10, ge=1)


class DiagramsConfig(BaseModel):
    """Client-side diagram rendering."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    renderer_url: str = "https://cdn.jsdelivr.net/npm/mermaid@10/dist/mermaid.min.js"
    selector: str = ".language-mermaid"
    script_path: str = "/assets/js/diagrams.js"


class SiteConfig(BaseModel):
    """Top-level site configuration.

    Unknown keys are kept so that templates can read any custom
    ``site.<key>`` value.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    title: str = ""
    description: str = ""
    url: str = ""
    baseurl: str = ""
    repository: str = ""
    skin: str = Field(
        default="default",
        validation_alias=AliasChoices("skin", "minimal_mistakes_skin"),
    )
    plugins: list[str] = Field(default_factory=list)
    paginate: int | None = Field(default=None, ge=1)
    paginate_path: str = "/page:num/"
    permalink: str | None = "date"
    timezone: str | None = None
    defaults: list[DefaultsRule] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    markdown_ext: str = "markdown,mkdown,mkdn,mkd,md"
    excerpt_separator: str = "\n\n"
    encoding: str = "utf-8"
    category_archive: ArchiveConfig | None = None
    tag_archive: ArchiveConfig | None = None
    compress_html: CompressConfig | None = None
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    author: AuthorConfig = Field(default_factory=AuthorConfig)
    footer: FooterConfig = Field(default_factory=FooterConfig)
    after_footer_scripts: list[str] = Field(default_factory=list)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    search: bool = False
    diagrams: DiagramsConfig = Field(default_factory=DiagramsConfig)
    skip_invalid: bool = False
    show_drafts: bool = False
    destination: str = "_site"
    environment: str = "production"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @field_validator("url", "baseurl")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("include", "exclude", "plugins", "after_footer_scripts", mode="before")
    @classmethod
    def _none_is_empty(cls, value: object) -> object:
        return [] if value is None else value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone or "UTC")

    @property
    def markdown_extensions(self) -> frozenset[str]:
        """File extensions (with leading dot) treated as Markdown."""
        return frozenset(
            "." + ext.strip().lstrip(".").lower()
            for ext in self.markdown_ext.split(",")
            if ext.strip()
        )

    @property
    def compression_enabled(self) -> bool:
        if self.compress_html is None:
            return False
        return self.environment not in self.compress_html.ignore.envs

    def relative_url(self, path: str) -> str:
        """Prefix a site path with ``baseurl``."""
        if not path:
            return self.baseurl or "/"
        if "://" in path:
            return path
        return self.baseurl + "/" + path.lstrip("/")

    def absolute_url(self, path: str) -> str:
        """Prefix a site path with ``url`` and ``baseurl``."""
        if "://" in path:
            return path
        return self.url + self.relative_url(path)

    def to_template_dict(self) -> dict[str, Any]:
        """Render-time view of the configuration (``site.*`` in templates)."""
        data = self.model_dump()
        data["minimal_mistakes_skin"] = self.skin
        return data


def load_config(
    path: str | Path | None = None,
    *,
    source_dir: str | Path = ".",
) -> SiteConfig:
    """Load configuration from a YAML file.

    Search order:
    1. Explicit path (if provided)
    2. _config.yml / _config.yaml in the source directory

    Then overlay environment variables.

    Args:
        path: Explicit path to a YAML file.
        source_dir: Site source directory searched when no path is given.

    Returns:
        Merged SiteConfig.

    Raises:
        ConfigurationError: If the file cannot be parsed or holds invalid values.
    """
    data: dict[str, object] = {}

    if path is not None:
        yaml_path = Path(path)
        if yaml_path.exists():
            data = _load_yaml(yaml_path)
        else:
            logger.warning("Config file not found: %s", yaml_path)
    else:
        for name in CONFIG_FALLBACK_FILENAMES:
            candidate = Path(source_dir) / name
            if candidate.exists():
                data = _load_yaml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        else:
            logger.warning("No %s found in %s, using defaults", CONFIG_FILENAME, source_dir)

    config = _validate(data)
    config = _apply_env_vars(config)
    _warn_unknown_skin(config)
    return config


def merge_cli_overrides(config: SiteConfig, **cli_kwargs: object) -> SiteConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    allowed = {
        "destination",
        "url",
        "baseurl",
        "environment",
        "skip_invalid",
        "show_drafts",
        "skin",
    }
    data = config.model_dump()
    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key not in allowed:
            raise ConfigurationError(f"Unknown override: {key}")
        data[key] = value
    return _validate(data)


def _load_yaml(path: Path) -> dict[str, object]:
    """Load a YAML file and return the data dict."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Failed to read {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def _validate(data: dict[str, object]) -> SiteConfig:
    try:
        return SiteConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid site configuration:\n{exc}") from exc


def _apply_env_vars(config: SiteConfig) -> SiteConfig:
    """Apply environment variable overrides to config."""
    env_mapping: dict[str, str] = {
        "STATICPRESS_URL": "url",
        "STATICPRESS_BASEURL": "baseurl",
        "STATICPRESS_SKIN": "skin",
        "STATICPRESS_ENV": "environment",
        "STATICPRESS_DESTINATION": "destination",
    }

    overrides: dict[str, object] = {}
    for env_var, field in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            overrides[field] = value

    if not overrides:
        return config
    data = config.model_dump()
    data.update(overrides)
    return _validate(data)


def _warn_unknown_skin(config: SiteConfig) -> None:
    from staticpress.diagrams import SKIN_DIAGRAM_THEMES

    if config.skin not in SKIN_DIAGRAM_THEMES:
        logger.warning(
            "Unknown skin %r, diagrams will use the default theme", config.skin
        )
