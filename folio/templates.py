"""Template rendering engine for Folio.

This module uses Jinja2 to wrap rendered post bodies in layouts. Layouts are
looked up in the project's layouts directory first and then in the layouts
bundled with the package, so a site only needs to override what it changes.

Key class:
- TemplateEngine: Renders posts and the index page.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup
from pygments.formatters import HtmlFormatter

from .collections import PostCollection
from .content import Post
from .html_utils import escape_html, join_root_url
from .markdown import Heading

__all__ = ["TemplateEngine", "render_toc"]

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")


def render_toc(post: Post) -> Markup:
    """Render a post's headings as a nested ``<ul>`` table of contents."""
    if not post.toc:
        return Markup("")
    return _render_toc_from_headings(post.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        layouts_dir: Project layouts directory (may not exist).
        site: Site metadata exposed to templates as ``site``.
        root_url: Base URL prepended by ``url_for``.
        pygments_style: Pygments style used for ``pygments_css``.
        env: Jinja2 environment.
        posts: Collection of all posts being built.
    """

    def __init__(
        self,
        layouts_dir: Path | None,
        site: dict[str, Any],
        root_url: str | None = None,
        pygments_style: str = "default",
    ):
        self.layouts_dir = layouts_dir
        self.site = site
        self.root_url = root_url or ""
        self.pygments_style = pygments_style
        loaders = []
        if layouts_dir is not None:
            loaders.append(FileSystemLoader(str(layouts_dir)))
        loaders.append(PackageLoader("folio", "layouts"))
        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
        )
        self.posts: PostCollection = PostCollection([])
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.site
        self.env.globals["posts"] = self.posts
        self.env.globals["url_for"] = self._url_for
        self.env.globals["pygments_css"] = self.pygments_css
        self.env.globals["render_toc"] = render_toc

    def pygments_css(self) -> str:
        """Return Pygments CSS rules for the ``.highlight`` class."""
        return HtmlFormatter(style=self.pygments_style).get_style_defs(".highlight")

    def update_collections(self, posts: Iterable[Post]) -> None:
        self.posts = PostCollection(posts)
        self.env.globals["posts"] = self.posts

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        path = path if path.startswith("/") else f"/{path}"
        if self.root_url:
            return join_root_url(self.root_url, path)
        return path

    def render_post(self, post: Post) -> str:
        """Render a post inside its layout.

        Falls back to the bare post content when the layout includes a
        template that cannot be found.
        """
        context = {
            "site": self.site,
            "post": post,
            "frontmatter": post.frontmatter,
            "posts": self.posts,
            "url_for": self._url_for,
        }
        template = self._resolve_layout_template(post.layout)
        try:
            return template.render(post_content=Markup(post.content), **context)
        except TemplateNotFound as exc:
            print(f"Template not found during render ({exc}); rendering body only.")
            return post.content

    def render_index(self) -> str:
        """Render the index page listing every post in the collection."""
        template = self.env.get_template("index.html.jinja")
        return template.render(posts=self.posts, url_for=self._url_for)

    def _resolve_layout_template(self, layout: str):
        candidates = [f"{layout}{suffix}" for suffix in LAYOUT_SUFFIXES]
        if layout != "post":
            candidates.extend(f"post{suffix}" for suffix in LAYOUT_SUFFIXES)
        for name in candidates:
            try:
                return self.env.get_template(name)
            except TemplateNotFound:
                continue
        return self.env.from_string("{{ post_content }}")
