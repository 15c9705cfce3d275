"""Front-matter reading for Folio.

A post starts with a delimited metadata block, either YAML between ``---``
lines or TOML between ``+++`` lines::

    ---
    title: "Procedural macros, part 1"
    date: 2023-02-11T10:24:00+08:00
    draft: false
    ---

This module splits that block from the body, parses it, coerces the
well-known fields and provides the metadata extractors used when building a
``Post``.

Key classes:
- FrontmatterError: Raised for malformed blocks or invalid field values.
- TitleExtractor, DateExtractor, DraftExtractor, TagExtractor,
  DescriptionExtractor: One extractor per metadata concern.
- CompositeMetadataExtractor: Runs extractors in order and merges results.
"""

from __future__ import annotations

import re
import tomllib
from datetime import date, datetime, timezone, tzinfo
from pathlib import Path
from typing import Any

import yaml
from yaml.constructor import SafeConstructor

from .utils import extract_date_from_name, first_paragraph, titleize

DELIMITERS = {"---": "yaml", "+++": "toml"}

_TRUE_STRINGS = {"true", "yes", "on"}
_FALSE_STRINGS = {"false", "no", "off"}
_FENCE_RE = re.compile(r"^(`{3,}|~{3,})")
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class FrontmatterError(ValueError):
    """Malformed front-matter block or invalid field value.

    Attributes:
        message: Human-readable description of the problem.
        line: 1-based line number in the source document, when known.
        key: Front-matter key holding the bad value, when known.
    """

    def __init__(self, message: str, line: int | None = None, key: str | None = None):
        self.message = message
        self.line = line
        self.key = key
        super().__init__(f"line {line}: {message}" if line else message)


def split_frontmatter(text: str) -> tuple[str | None, str | None, str, int]:
    """Split a document into its front-matter block and body.

    Args:
        text: Raw document text.

    Returns:
        Tuple of (format, raw block, body, first body line). Format is
        ``"yaml"``, ``"toml"`` or None when the document has no block.

    Raises:
        FrontmatterError: If an opening delimiter is never closed.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = text.splitlines(keepends=True)
    if not lines:
        return None, None, text, 1
    opener = lines[0].rstrip()
    fmt = DELIMITERS.get(opener)
    if fmt is None:
        return None, None, text, 1
    for index in range(1, len(lines)):
        if lines[index].rstrip() == opener:
            raw = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            return fmt, raw, body, index + 2
    raise FrontmatterError(f"Front-matter opened with '{opener}' is never closed", 1)


def parse_block(fmt: str, raw: str) -> dict[str, Any]:
    """Parse a raw front-matter block.

    Raises:
        FrontmatterError: If the block cannot be parsed or is not a mapping.
    """
    if fmt == "toml":
        try:
            data = tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise FrontmatterError(f"Invalid TOML front-matter: {exc}") from exc
    else:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            line = None
            mark = getattr(exc, "problem_mark", None)
            if mark is not None:
                # +2: opening delimiter line, and marks are 0-based
                line = mark.line + 2
            problem = getattr(exc, "problem", None) or str(exc)
            raise FrontmatterError(f"Invalid YAML front-matter: {problem}", line) from exc
        except ValueError as exc:
            # PyYAML raises a bare ValueError for out-of-range timestamps
            key, line = _locate_bad_timestamp(raw)
            label = key or "value in front-matter"
            raise FrontmatterError(f"Invalid {label}: {exc}", line, key) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontmatterError("Front-matter must be a mapping of keys to values", 1)
    return data


def _locate_bad_timestamp(raw: str) -> tuple[str | None, int | None]:
    """Find the top-level key whose timestamp value cannot be constructed."""
    try:
        root = yaml.compose(raw, Loader=yaml.SafeLoader)
    except yaml.YAMLError:
        return None, None
    if not isinstance(root, yaml.MappingNode):
        return None, None
    constructor = SafeConstructor()
    for key_node, value_node in root.value:
        if value_node.tag != _TIMESTAMP_TAG:
            continue
        try:
            constructor.construct_yaml_timestamp(value_node)
        except ValueError:
            return str(key_node.value), value_node.start_mark.line + 2
    return None, None


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract front-matter from a document.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front-matter dict, body). The dict is empty when the
        document has no block.
    """
    fmt, raw, body, _ = split_frontmatter(text)
    if fmt is None:
        return {}, body
    return parse_block(fmt, raw or ""), body


def parse_date(value: Any) -> datetime:
    """Coerce a front-matter date value to a datetime.

    Accepts datetime and date objects (as produced by the YAML and TOML
    parsers) and ISO-8601 strings such as ``2023-02-11T10:24:00+08:00``,
    ``2023-02-11T02:24:00Z`` or ``2023-02-11``.

    Raises:
        FrontmatterError: If the value is not a recognisable date.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    raise FrontmatterError(f"Invalid date: {value!r}")


def normalize_date(value: datetime, default_tz: tzinfo = timezone.utc) -> datetime:
    """Attach ``default_tz`` to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=default_tz)
    return value


def parse_draft(value: Any) -> bool:
    """Coerce a front-matter draft flag to a bool.

    Raises:
        FrontmatterError: If the value is neither a boolean nor a
            true/false/yes/no/on/off string.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise FrontmatterError(f"Invalid draft flag: {value!r} (expected true or false)")


def first_heading(body: str) -> str | None:
    """Return the text of the first level-1 ATX heading outside code fences."""
    fence: str | None = None
    for line in body.splitlines():
        stripped = line.strip()
        if fence is not None:
            # Only a bare run of the opening character, at least as long, closes
            if set(stripped) == {fence[0]} and len(stripped) >= len(fence):
                fence = None
            continue
        match = _FENCE_RE.match(stripped)
        if match:
            fence = match.group(1)
        elif stripped.startswith("# "):
            return stripped[2:].strip().rstrip("#").strip() or None
    return None


class TitleExtractor:
    """Front-matter ``title``, then the first ``# `` heading, then the filename."""

    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        title = frontmatter.get("title")
        if title is not None and not isinstance(title, bool) and str(title).strip():
            return {"title": str(title).strip()}
        return {"title": first_heading(body) or titleize(path.name)}


class DateExtractor:
    """Extracts the publication date and optional update date.

    Looks at front-matter ``date``, then a YYYY-MM-DD filename prefix,
    then the file modification time. Naive values get ``default_tz``.
    ``lastmod``/``updated`` populate ``updated`` when present.
    """

    def __init__(self, default_tz: tzinfo = timezone.utc):
        self.default_tz = default_tz

    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        if frontmatter.get("date") is not None:
            value = parse_date(frontmatter["date"])
        else:
            value = extract_date_from_name(path.stem)
            if value is None:
                value = datetime.fromtimestamp(path.stat().st_mtime, tz=self.default_tz)
        result: dict[str, Any] = {"date": normalize_date(value, self.default_tz)}

        updated = frontmatter.get("lastmod", frontmatter.get("updated"))
        if updated is not None:
            result["updated"] = normalize_date(parse_date(updated), self.default_tz)
        return result


class DraftExtractor:
    """Front-matter ``draft`` flag; a leading ``_`` in the filename also marks a draft."""

    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        draft = path.name.startswith("_")
        if frontmatter.get("draft") is not None:
            draft = parse_draft(frontmatter["draft"]) or draft
        return {"draft": draft}


class TagExtractor:
    """Front-matter ``tags`` as a list of strings."""

    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        raw = frontmatter.get("tags") or []
        if isinstance(raw, str):
            raw = raw.split(",")
        tags: list[str] = []
        for tag in raw:
            name = str(tag).strip()
            if name and name not in tags:
                tags.append(name)
        return {"tags": tags}


class DescriptionExtractor:
    """Front-matter ``description``/``summary``, else the first prose paragraph."""

    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        for key in ("description", "summary"):
            value = frontmatter.get(key)
            if isinstance(value, str) and value.strip():
                return {"description": " ".join(value.split())}
        return {"description": first_paragraph(body)}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every extractor and merges their results; later extractors
    override earlier ones.
    """

    def __init__(self, extractors: list | None = None):
        if extractors is None:
            self._extractors = _default_extractors()
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(
        self, frontmatter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(frontmatter, body, path))
        return result


def default_metadata_extractor(default_tz: tzinfo = timezone.utc) -> CompositeMetadataExtractor:
    """Create the standard extractor chain for the given default timezone."""
    return CompositeMetadataExtractor(_default_extractors(default_tz))


def _default_extractors(default_tz: tzinfo = timezone.utc) -> list:
    return [
        TitleExtractor(),
        DateExtractor(default_tz),
        DraftExtractor(),
        TagExtractor(),
        DescriptionExtractor(),
    ]
