"""Generated-index producers and their static registry."""

from __future__ import annotations

import logging

from staticpress.config import SiteConfig
from staticpress.generators.archives import TaxonomyArchiveGenerator
from staticpress.generators.base import IndexGenerator
from staticpress.generators.feed import FeedGenerator
from staticpress.generators.pagination import PaginationGenerator
from staticpress.generators.search import SearchIndexGenerator
from staticpress.generators.sitemap import SitemapGenerator

logger = logging.getLogger(__name__)

PLUGIN_GENERATORS: dict[str, type[IndexGenerator]] = {
    "jekyll-paginate": PaginationGenerator,
    "jekyll-feed": FeedGenerator,
    "jekyll-sitemap": SitemapGenerator,
}


def create_generators(config: SiteConfig) -> list[IndexGenerator]:
    """Build the generator list for a site, in execution order.

    Archives and pagination come first, then the search index and feed; the
    sitemap always runs last so it can enumerate every other page.

    Plugins without a registered generator are logged and ignored.
    """
    for plugin in config.plugins:
        if plugin not in PLUGIN_GENERATORS:
            logger.info("No generator registered for plugin %r, ignoring", plugin)

    generators: list[IndexGenerator] = []
    if config.category_archive is not None:
        generators.append(TaxonomyArchiveGenerator("categories", config.category_archive))
    if config.tag_archive is not None:
        generators.append(TaxonomyArchiveGenerator("tags", config.tag_archive))

    if "jekyll-paginate" in config.plugins:
        if config.paginate:
            generators.append(PaginationGenerator())
        else:
            logger.warning("jekyll-paginate is enabled but 'paginate' is not set")

    if config.search:
        generators.append(SearchIndexGenerator())
    if "jekyll-feed" in config.plugins:
        generators.append(FeedGenerator())
    if "jekyll-sitemap" in config.plugins:
        generators.append(SitemapGenerator())
    return generators


__all__ = [
    "FeedGenerator",
    "IndexGenerator",
    "PLUGIN_GENERATORS",
    "PaginationGenerator",
    "SearchIndexGenerator",
    "SitemapGenerator",
    "TaxonomyArchiveGenerator",
    "create_generators",
]
