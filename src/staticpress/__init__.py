"""staticpress - static site generator for Markdown blogs.

Turns a Jekyll-style source tree (``_config.yml``, ``_posts``, pages and
layouts) into a themed, paginated static site with archives, a feed, a
sitemap and client-side Mermaid diagrams.
"""

__version__ = "0.3.0"
