"""Feed generation for Pegasus.

Generates sitemap.xml and rss.xml from the loaded documents. Output depends
only on the documents and site data, never on the wall clock, so rebuilding an
unchanged site yields identical files.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates RSS 2.0 feed files.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import ConfigError
from .html_utils import escape_html

if TYPE_CHECKING:
    from .content import Document

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


def _base_url(data: dict[str, Any]) -> str:
    return str(data.get("url", "") or "").rstrip("/")


class FeedGenerator(ABC):
    """Base class for feed generators.

    Subclasses name their output file and build its content; ``write``
    handles the file system.
    """

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename, such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, documents: Iterable[Document], data: dict[str, Any]) -> str | None:
        """Generate feed content from documents.

        Args:
            documents: Documents to include in the feed.
            data: Site data; ``url`` is required for absolute links.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, documents: Iterable[Document], data: dict[str, Any]) -> bool:
        """Generate and write the feed to the output directory.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(documents, data)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol.

    Lists the home page and every document. ``lastmod`` is emitted only for
    dated documents.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, documents: Iterable[Document], data: dict[str, Any]) -> str | None:
        base_url = _base_url(data)
        if not base_url:
            return None

        entries: dict[str, datetime | None] = {"/": None}
        for document in documents:
            entries[document.url] = document.date
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for url in sorted(entries):
            loc = escape_html(f"{base_url}{url}")
            date = entries[url]
            if date is not None:
                lines.append(
                    f"  <url><loc>{loc}</loc><lastmod>{date.strftime('%Y-%m-%d')}</lastmod></url>"
                )
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


def _feed_limit(value: Any) -> int:
    message = f"feed_limit must be a non-negative integer, got {value!r}"
    try:
        limit = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(message, step="generate") from exc
    if limit < 0:
        raise ConfigError(message, step="generate")
    return limit


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of dated documents, newest first.

    Uses ``title`` and ``description`` from site data for the channel and
    caps the item count at ``feed_limit`` (default 20). ``lastBuildDate`` is
    the newest document date.
    """

    DEFAULT_LIMIT = 20

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, documents: Iterable[Document], data: dict[str, Any]) -> str | None:
        base_url = _base_url(data)
        if not base_url:
            return None
        title = escape_html(str(data.get("title", "Pegasus Feed")))
        description = escape_html(str(data.get("description", "") or ""))
        limit = _feed_limit(data.get("feed_limit", self.DEFAULT_LIMIT))

        dated = sorted(
            (d for d in documents if d.date is not None),
            key=lambda d: d.rel_path,
        )
        dated.sort(key=lambda d: d.date, reverse=True)
        dated = dated[:limit]

        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape_html(base_url)}/</link>",
            f"<description>{description}</description>",
        ]
        if dated:
            rss.append(f"<lastBuildDate>{dated[0].date.strftime(RFC822_FORMAT)}</lastBuildDate>")
        for document in dated:
            link = escape_html(f"{base_url}{document.url}")
            summary = escape_html(document.description or document.title)
            categories = "".join(
                f"<category>{escape_html(name)}</category>"
                for name in [*document.categories, *document.tags]
            )
            rss.append(
                f"<item><title>{escape_html(document.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid><description>{summary}</description>{categories}"
                f"<pubDate>{document.date.strftime(RFC822_FORMAT)}</pubDate></item>"
            )
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing feed generators.

    Attributes:
        _generators: List of registered feed generators.
    """

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, documents: Iterable[Document], data: dict[str, Any]
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            Filenames that were written.
        """
        documents_list = list(documents)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, documents_list, data):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
