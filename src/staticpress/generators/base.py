"""Base interface for generated-index producers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from staticpress.site import RenderedPage, SiteBuild


class IndexGenerator(ABC):
    """Produces synthetic pages (archives, feeds, ...) from the built site."""

    name: str = ""
    # Set by the generator that renders the home document itself.
    claims_home: bool = False

    @abstractmethod
    def generate(self, build: SiteBuild) -> list[RenderedPage]:
        """Return the pages this generator contributes."""
        ...
