"""HTML utility functions for Folio.

Functions:
    escape_html: Escape special HTML/XML characters in a string.
    join_root_url: Join a base URL with a path.
    absolutize_html_urls: Convert root-relative URLs to absolute in HTML.
"""

from __future__ import annotations

import re

_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)

# Left untouched by absolutize_html_urls
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "data:",
)


def escape_html(text: str) -> str:
    """Escape ``&``, ``<``, ``>`` and ``"`` for inclusion in HTML or XML.

    Examples:
        >>> escape_html('Vec<T> & "friends"')
        'Vec&lt;T&gt; &amp; &quot;friends&quot;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/blog/', 'posts/')
        'https://example.com/blog/posts/'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative ``href``/``src`` URLs to absolute ones.

    Relative URLs that do not start with ``/`` are also left alone, as are
    external links, anchors and ``mailto:``/``tel:``/``data:`` URLs.
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if url.startswith(_URL_SKIP_PREFIXES) or not url.startswith("/"):
            return match.group(0)
        absolute = join_root_url(root_url, url)
        return f"{match.group('prefix')}{absolute}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)
