"""Feed generation for Folio.

Generates sitemap.xml and an RSS feed from the posts of a build. Feeds only
ever see the posts they are handed, so drafts excluded from a build are
excluded from its feeds too.

Classes:
    FeedGenerator: Abstract base for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates RSS 2.0 feed files.
    FeedRegistry: Runs every registered generator.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .html_utils import escape_html

if TYPE_CHECKING:
    from .content import Post

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S %z"


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(self, posts: Iterable[Post], site: dict[str, Any]) -> str | None:
        """Generate feed content.

        Args:
            posts: Posts to include in the feed.
            site: Site metadata; ``url`` is required for absolute links.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, posts: Iterable[Post], site: dict[str, Any]) -> bool:
        """Generate and write the feed. Returns False if it was skipped."""
        content = self.generate(posts, site)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing the home page and every post."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, posts: Iterable[Post], site: dict[str, Any]) -> str | None:
        base_url = str(site.get("url") or "").rstrip("/")
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            f"  <url><loc>{escape_html(base_url)}/</loc></url>",
        ]
        for post in posts:
            if post.url == "/":
                continue
            loc = escape_html(f"{base_url}{post.url}")
            lastmod = (post.updated or post.date).strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed, newest posts first.

    Attributes:
        limit: Maximum number of items, or None for all posts.
    """

    def __init__(self, limit: int | None = 20):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, posts: Iterable[Post], site: dict[str, Any]) -> str | None:
        base_url = str(site.get("url") or "").rstrip("/")
        if not base_url:
            return None
        title = site.get("title") or "Folio"

        ordered = sorted(posts, key=lambda p: p.date, reverse=True)
        if self.limit is not None:
            ordered = ordered[: self.limit]

        items = []
        for post in ordered:
            link = escape_html(f"{base_url}{post.url}")
            description = escape_html(post.description or post.title)
            items.append(
                f"<item><title>{escape_html(post.title)}</title><link>{link}</link>"
                f'<guid isPermaLink="true">{link}</guid>'
                f"<description>{description}</description>"
                f"<pubDate>{post.date.strftime(RFC822_FORMAT)}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RFC822_FORMAT)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape_html(str(title))}</title>",
            f"<link>{escape_html(base_url)}/</link>",
            f"<description>{escape_html(str(site.get('description') or title))}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


class FeedRegistry:
    """Registry of feed generators run at the end of a build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, posts: Iterable[Post], site: dict[str, Any]
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            Filenames that were written.
        """
        posts_list = list(posts)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, posts_list, site):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry(rss_limit: int | None = 20) -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator(limit=rss_limit))
    return registry
