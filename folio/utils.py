"""Small helpers shared by the Folio modules.

Filename conventions (date prefixes, slugs, titles), plain-text summaries
of Markdown bodies, and output directory handling.

Key functions:
    slugify: Post filename stem to URL slug.
    titleize: Post filename to a readable fallback title.
    extract_date_from_name: Publication date from a ``YYYY-MM-DD-`` prefix.
    first_paragraph: Plain-text summary of a Markdown body.
    is_markdown / is_hidden: Content tree filters.
    ensure_clean_dir: Empty (or create) the output directory.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")

_DATE_PREFIX_RE = re.compile(r"^(\d+)-(\d+)-(\d+)(?:-|$)")
_FENCE_BLOCK_RE = re.compile(r"^(```|~~~).*?^\1", re.DOTALL | re.MULTILINE)
_NON_PROSE_PREFIXES = ("#", "![", "<", ">", "|", "---", "+++")


def _strip_date_prefix(name: str) -> str:
    pieces = name.split("-", 3)
    if len(pieces) == 4 and all(piece.isdigit() for piece in pieces[:3]):
        return pieces[3]
    return name


def slugify(name: str) -> str:
    """Turn a filename stem into a lowercase, hyphenated slug.

    A leading ``YYYY-MM-DD-`` date is dropped. Stems with nothing usable
    left become ``index``.

        >>> slugify("2023-02-11-Declarative Macros")
        'declarative-macros'
    """
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", _strip_date_prefix(name))
    return slug.strip("-").lower() or "index"


def titleize(filename: str) -> str:
    """Readable title for a post with no title of its own.

        >>> titleize("2023-02-11-declarative-macros.md")
        'Declarative Macros'
    """
    stem = _strip_date_prefix(Path(filename).stem)
    words = [word for word in re.split(r"[\s\-_]+", stem) if word]
    if not words:
        return "Untitled"
    return " ".join(word.capitalize() for word in words)


def extract_date_from_name(name: str) -> datetime | None:
    """Return the date encoded in a ``YYYY-MM-DD`` stem prefix, if valid."""
    match = _DATE_PREFIX_RE.match(name)
    if not match:
        return None
    year, month, day = (int(group) for group in match.groups())
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def first_paragraph(text: str, limit: int = 160) -> str:
    """Plain text of the first prose paragraph of a Markdown body.

    Headings, fenced code, images, block quotes, tables and raw HTML are
    skipped. Link and emphasis markup is flattened, whitespace collapsed and
    the result cut to ``limit`` characters.
    """
    text = _FENCE_BLOCK_RE.sub("", text)
    for block in text.split("\n\n"):
        block = block.strip()
        if not block or block.startswith(_NON_PROSE_PREFIXES):
            continue
        block = re.sub(r"!\[[^\]]*\]\([^)]*\)", "", block)
        block = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", block)
        block = re.sub(r"[*_`]+", "", block)
        summary = " ".join(block.split())
        if summary:
            return summary[:limit]
    return ""


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_hidden(part: str) -> bool:
    """True for path components starting with ``_`` (internal) or ``.`` (hidden)."""
    return part.startswith(("_", "."))


def ensure_clean_dir(path: Path) -> None:
    """Leave ``path`` as an existing, empty directory."""
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
    if path.exists():
        # rmtree can leave entries behind; remove deepest first
        for entry in sorted(path.rglob("*"), key=lambda p: len(p.parts), reverse=True):
            if entry.is_dir():
                entry.rmdir()
            else:
                entry.unlink()
        path.rmdir()
    path.mkdir(parents=True, exist_ok=True)
