"""Markdown rendering for Folio.

Converts post bodies to HTML with mistune. Fenced code blocks tagged with a
language are highlighted by Pygments; headings receive anchor ids and are
collected for a table of contents; every code block is recorded so callers
can report on the languages a post uses.

Key classes:
- MarkdownRenderer: ContentRenderer implementation for Markdown files.
- RendererRegistry: Maps source files to renderers.
- RenderResult: HTML plus the headings and code blocks found while rendering.
"""

from __future__ import annotations

import html
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html
from .utils import MARKDOWN_SUFFIXES

_TAG_RE = re.compile(r"<[^>]+>")
_INFO_SPLIT_RE = re.compile(r"[\s,]+")

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


@dataclass
class Heading:
    """A heading extracted for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: Plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class CodeBlock:
    """A code block found in a post body.

    Attributes:
        language: Normalised language name, or None when untagged.
        info: Raw info string following the opening fence.
        code: Code content.
    """

    language: str | None
    info: str
    code: str


@dataclass
class RenderResult:
    html: str
    toc: list[Heading] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)


def fence_language(info: str | None) -> str | None:
    """Return the language named by a fence info string.

    The first word wins, so rustdoc attributes and pandoc-style braces are
    tolerated:

        >>> fence_language("rust,ignore")
        'rust'
        >>> fence_language("{.toml}")
        'toml'
        >>> fence_language("")
    """
    if not info:
        return None
    text = info.strip()
    if text.startswith("{"):
        text = text.strip("{}").strip().lstrip(".")
    token = _INFO_SPLIT_RE.split(text, maxsplit=1)[0]
    return token.lower() or None


def lexer_exists(language: str) -> bool:
    """Check whether Pygments knows a lexer for ``language``."""
    try:
        get_lexer_by_name(language)
    except ClassNotFound:
        return False
    return True


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


def _rewrite_image_path(src: str, folder: str) -> str:
    """Resolve a relative image source against the post's folder URL.

    Args:
        src: Original image source.
        folder: Folder containing the post, relative to the content root.

    Returns:
        Root-relative image URL; absolute and external sources unchanged.
    """
    if not src or src.startswith(("http://", "https://", "//", "/", "data:")):
        return src
    return posixpath.normpath(posixpath.join("/", folder, src))


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune renderer with Pygments highlighting, heading ids and image rewriting.

    Attributes:
        folder: Folder containing the post being rendered.
        headings: Headings seen so far, in document order.
        code_blocks: Code blocks seen so far, in document order.
    """

    def __init__(self, folder: str):
        super().__init__(escape=False)
        self.folder = folder
        self.headings: list[Heading] = []
        self.code_blocks: list[CodeBlock] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        plain = html.unescape(_TAG_RE.sub("", text)).strip()
        base_id = _generate_heading_id(plain)

        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(Heading(id=heading_id, text=plain, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        return super().image(text, _rewrite_image_path(url, self.folder), title)

    def block_code(self, code: str, info: str | None = None) -> str:
        language = fence_language(info)
        self.code_blocks.append(CodeBlock(language=language, info=info or "", code=code))
        if language:
            try:
                lexer = get_lexer_by_name(language, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(language)}"' if language else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown post bodies to HTML."""

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return path.suffix.lower() in MARKDOWN_SUFFIXES

    def render(self, content: str, folder: str) -> RenderResult:
        """Render Markdown content to HTML.

        Args:
            content: Markdown body (front-matter already removed).
            folder: Folder containing the post.

        Returns:
            RenderResult with HTML, headings and code blocks.
        """
        renderer = _HighlightRenderer(folder)
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        output = markdown(content)
        return RenderResult(
            html=output, toc=renderer.headings, code_blocks=renderer.code_blocks
        )


class RendererRegistry:
    """Registry for content renderers.

    Renderers are consulted in registration order; the first one that
    accepts a path wins.
    """

    def __init__(self):
        self._renderers: list = []
        self.register(MarkdownRenderer())

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        """Return the first renderer that can handle ``path``, or None."""
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


default_renderer_registry = RendererRegistry()
