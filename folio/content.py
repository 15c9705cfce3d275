"""Content processing for Folio.

This module discovers post files, reads their front-matter, renders their
bodies and produces ``Post`` objects.

Key classes:
- Post: Dataclass representing one published (or draft) article.
- FileContentLoader: Discovers Markdown files under the content directory.
- UrlDeriver: Maps a source path to its output URL.
- PostBuilder: Turns one source file into a Post.
- ContentProcessor: Loads every post, filtering drafts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any

from .frontmatter import (
    CompositeMetadataExtractor,
    FrontmatterError,
    default_metadata_extractor,
    extract_frontmatter,
)
from .markdown import CodeBlock, Heading, RendererRegistry, default_renderer_registry
from .utils import is_hidden, is_markdown, slugify


class ContentError(Exception):
    """Error in a content file.

    Attributes:
        source_path: Path to the offending file.
        message: Human-readable error message.
        line: 1-based line number, when known.
    """

    def __init__(self, source_path: Path, message: str, line: int | None = None):
        self.source_path = source_path
        self.message = message
        self.line = line
        location = f"{source_path}:{line}" if line else str(source_path)
        super().__init__(f"{location}: {message}")


@dataclass
class Post:
    """A blog post with its metadata and rendered content.

    Attributes:
        title: Human-readable title.
        date: Publication date (always timezone-aware).
        draft: Whether the post is unpublished.
        body: Markdown body, front-matter removed.
        content: Rendered HTML.
        description: Short summary.
        url: URL path, e.g. ``/posts/declarative-macros/``.
        slug: URL-friendly slug.
        section: First folder below the content root ("" at the root).
        tags: Tags from front-matter.
        layout: Layout name requested for this post.
        path: Path to the source file.
        filename: Name of the source file.
    """

    title: str
    date: datetime
    draft: bool
    body: str
    content: str
    description: str
    url: str
    slug: str
    section: str
    tags: list[str]
    layout: str
    path: Path
    filename: str
    updated: datetime | None = None
    frontmatter: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)

    @property
    def languages(self) -> list[str]:
        """Distinct code languages used in the post, in order of appearance."""
        seen: list[str] = []
        for block in self.code_blocks:
            if block.language and block.language not in seen:
                seen.append(block.language)
        return seen


class FileContentLoader:
    """Discovers Markdown files in a content directory.

    Directories starting with ``_`` or ``.`` are skipped entirely. Files
    starting with ``_`` are kept; they are drafts by naming convention.
    """

    def __init__(self, content_dir: Path):
        self.content_dir = content_dir

    def iter_files(self) -> list[Path]:
        files: list[Path] = []
        for path in sorted(self.content_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.content_dir)
            if any(is_hidden(part) for part in rel.parts[:-1]):
                continue
            if rel.name.startswith("."):
                continue
            if is_markdown(path):
                files.append(path)
        return files


class UrlDeriver:
    """Derives URLs for posts from their location under the content root."""

    def derive(self, rel: Path, slug: str) -> str:
        """Derive the URL for a post.

        ``index`` files (page bundles) take their folder's URL.

        Args:
            rel: Path relative to the content directory.
            slug: URL-friendly slug.

        Returns:
            URL path with leading and trailing slashes.
        """
        segments = [p for p in rel.parent.parts if p]
        if rel.stem == "index" and slug == "index":
            url_parts = segments
        else:
            url_parts = segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"


class PostBuilder:
    """Builds Post objects from source files.

    Attributes:
        content_dir: Directory containing posts.
        renderer_registry: Registry of content renderers.
        metadata_extractor: Composite metadata extractor.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        content_dir: Path,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
        default_tz: tzinfo = timezone.utc,
    ):
        self.content_dir = content_dir
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor(
            default_tz
        )
        self.url_deriver = UrlDeriver()

    def build(self, path: Path) -> Post:
        """Build a Post from a source file.

        Raises:
            ContentError: If the file is not valid UTF-8, the front-matter
                is malformed, or a field holds an invalid value.
        """
        rel = path.relative_to(self.content_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        data = path.read_bytes()
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            line = data.count(b"\n", 0, exc.start) + 1
            raise ContentError(
                path, f"File is not valid UTF-8: {exc.reason} at byte {exc.start}", line
            ) from exc

        try:
            frontmatter, body = extract_frontmatter(raw)
            metadata = self.metadata_extractor.extract(frontmatter, body, path)
        except FrontmatterError as exc:
            raise ContentError(path, exc.message, exc.line) from exc

        renderer = self.renderer_registry.get_renderer(path)
        if renderer is None:
            raise ContentError(path, "No renderer for this file type")
        result = renderer.render(body, folder)

        if frontmatter.get("slug"):
            slug = slugify(str(frontmatter["slug"]))
        elif path.stem == "index":
            slug = "index"
        else:
            slug = slugify(path.stem.lstrip("_"))
        section = rel.parts[0] if len(rel.parts) > 1 else ""

        return Post(
            title=metadata["title"],
            date=metadata["date"],
            draft=metadata.get("draft", False),
            body=body,
            content=result.html,
            description=metadata.get("description", ""),
            url=self.url_deriver.derive(rel, slug),
            slug=slug,
            section=section,
            tags=metadata.get("tags", []),
            layout=str(frontmatter.get("layout") or section or "post"),
            path=path,
            filename=path.name,
            updated=metadata.get("updated"),
            frontmatter=frontmatter,
            toc=result.toc,
            code_blocks=result.code_blocks,
        )


class ContentProcessor:
    """Loads all posts under a content directory.

    Attributes:
        content_dir: Directory containing posts.
    """

    def __init__(
        self,
        content_dir: Path,
        content_loader: FileContentLoader | None = None,
        post_builder: PostBuilder | None = None,
    ):
        self.content_dir = content_dir
        self._content_loader = content_loader or FileContentLoader(content_dir)
        self._post_builder = post_builder or PostBuilder(content_dir)

    def load(self, include_drafts: bool = False) -> list[Post]:
        """Load posts.

        Args:
            include_drafts: Whether to keep posts marked as drafts.

        Returns:
            List of Post objects.

        Raises:
            ContentError: If a file is malformed or two posts share a URL.
        """
        posts: list[Post] = []
        seen_urls: dict[str, Path] = {}
        for path in self._content_loader.iter_files():
            post = self._post_builder.build(path)
            if post.draft and not include_drafts:
                continue
            if post.url in seen_urls:
                other = seen_urls[post.url].relative_to(self.content_dir)
                raise ContentError(
                    path, f"URL {post.url} is already used by {other.as_posix()}"
                )
            seen_urls[post.url] = path
            posts.append(post)
        return posts
