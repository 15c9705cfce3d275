"""Protocol definitions for Folio.

The pipeline is assembled from small components (loader, extractors,
renderer, checks) that talk to each other through these interfaces, so
each piece can be swapped or faked in tests.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .checks import Issue
    from .markdown import RenderResult


@runtime_checkable
class ContentRenderer(Protocol):
    """Turns a post body into HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        ...

    @abstractmethod
    def render(self, content: str, folder: str) -> RenderResult:
        """Render content to HTML.

        Args:
            content: Source body (front-matter already removed).
            folder: Folder of the post relative to the content root, used
                for resolving relative image paths.

        Returns:
            RenderResult with the HTML, headings and code blocks.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g. 'markdown')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Extracts one aspect of a post's metadata."""

    @abstractmethod
    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        """Extract metadata.

        Args:
            frontmatter: Parsed front-matter mapping (empty when absent).
            body: Document body following the front-matter block.
            path: Path to the source file.

        Returns:
            Dictionary of extracted metadata.
        """
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Discovers source files."""

    @abstractmethod
    def iter_files(self) -> list[Path]:
        """Return paths to all content files."""
        ...


@runtime_checkable
class ContentCheck(Protocol):
    """A structural check run against the raw text of one document."""

    @abstractmethod
    def check(self, text: str, path: Path) -> list[Issue]:
        """Return the issues found in ``text`` (empty when clean)."""
        ...
