"""Structural checks for post sources.

These checks verify the properties every publishable post must have:

- the front-matter block is well-formed and carries a non-empty ``title``
  and a valid ``date``, and ``draft`` (when present) is a boolean;
- every fenced code sample declares the language it is written in, so the
  renderer can highlight it.

Checks read the raw text only; nothing is rendered. Each problem is
reported as an ``Issue`` with the line it was found on.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from .content import FileContentLoader
from .frontmatter import (
    FrontmatterError,
    parse_block,
    parse_date,
    parse_draft,
    split_frontmatter,
)
from .markdown import fence_language, lexer_exists

ERROR = "error"
WARNING = "warning"

_YAML_KEY_RE = re.compile(r"^(?P<key>[A-Za-z_][\w-]*)\s*:")
_TOML_KEY_RE = re.compile(r"^(?P<key>[A-Za-z_][\w-]*)\s*=")
_FENCE_OPEN_RE = re.compile(r"^\s*(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_FENCE_CLOSE_RE = re.compile(r"^\s*(?P<fence>`{3,}|~{3,})\s*$")


@dataclass(frozen=True)
class Issue:
    """A problem found in a source file.

    Attributes:
        path: File the issue was found in.
        line: 1-based line number.
        severity: ``"error"`` or ``"warning"``.
        code: Short machine-friendly identifier, e.g. ``date-invalid``.
        message: Human-readable description.
    """

    path: Path
    line: int
    severity: str
    code: str
    message: str

    def format(self, root: Path | None = None) -> str:
        shown = self.path
        if root is not None:
            try:
                shown = self.path.relative_to(root)
            except ValueError:
                pass
        return f"{shown}:{self.line}: {self.severity} [{self.code}] {self.message}"


def _key_lines(raw: str, fmt: str) -> dict[str, int]:
    """Map top-level front-matter keys to their line in the document."""
    pattern = _TOML_KEY_RE if fmt == "toml" else _YAML_KEY_RE
    lines: dict[str, int] = {}
    for index, line in enumerate(raw.splitlines()):
        match = pattern.match(line)
        if match and match.group("key") not in lines:
            # +2: the opening delimiter occupies line 1
            lines[match.group("key")] = index + 2
    return lines


class FrontmatterCheck:
    """Verifies the front-matter block and its title/date/draft fields."""

    def check(self, text: str, path: Path) -> list[Issue]:
        try:
            fmt, raw, _, _ = split_frontmatter(text)
            if fmt is None:
                return [
                    Issue(path, 1, ERROR, "frontmatter-missing", "No front-matter block")
                ]
            data = parse_block(fmt, raw or "")
        except FrontmatterError as exc:
            code = "date-invalid" if exc.key == "date" else "frontmatter-invalid"
            return [Issue(path, exc.line or 1, ERROR, code, exc.message)]

        lines = _key_lines(raw or "", fmt)
        issues: list[Issue] = []
        issues.extend(self._check_title(data, lines, path))
        issues.extend(self._check_date(data, lines, path))
        issues.extend(self._check_draft(data, lines, path))
        return issues

    def _check_title(self, data: dict[str, Any], lines: dict[str, int], path: Path):
        line = lines.get("title", 1)
        if "title" not in data:
            return [Issue(path, 1, ERROR, "title-missing", "Front-matter has no title")]
        title = data["title"]
        if title is None or (isinstance(title, str) and not title.strip()):
            return [Issue(path, line, ERROR, "title-missing", "Title is empty")]
        if not isinstance(title, str):
            return [
                Issue(
                    path,
                    line,
                    ERROR,
                    "title-invalid",
                    f"Title must be text, got {type(title).__name__}",
                )
            ]
        return []

    def _check_date(self, data: dict[str, Any], lines: dict[str, int], path: Path):
        line = lines.get("date", 1)
        if data.get("date") is None:
            return [Issue(path, line, ERROR, "date-missing", "Front-matter has no date")]
        value = data["date"]
        try:
            parsed = parse_date(value)
        except FrontmatterError as exc:
            return [Issue(path, line, ERROR, "date-invalid", exc.message)]
        if isinstance(value, date) and not isinstance(value, datetime):
            return [
                Issue(path, line, WARNING, "date-no-offset", "Date has no time or UTC offset")
            ]
        if parsed.tzinfo is None:
            return [Issue(path, line, WARNING, "date-no-offset", "Date has no UTC offset")]
        return []

    def _check_draft(self, data: dict[str, Any], lines: dict[str, int], path: Path):
        if "draft" not in data:
            return [
                Issue(path, 1, WARNING, "draft-missing", "Front-matter has no draft flag")
            ]
        value = data["draft"]
        line = lines.get("draft", 1)
        if isinstance(value, bool):
            return []
        try:
            parse_draft(value)
        except FrontmatterError as exc:
            return [Issue(path, line, ERROR, "draft-invalid", exc.message)]
        return [
            Issue(
                path,
                line,
                WARNING,
                "draft-not-boolean",
                f"Draft flag {value!r} should be a boolean",
            )
        ]


class CodeFenceCheck:
    """Verifies that every fenced code block declares its language.

    Attributes:
        check_languages: Also warn when Pygments has no lexer for a language.
    """

    def __init__(self, check_languages: bool = True):
        self.check_languages = check_languages

    def check(self, text: str, path: Path) -> list[Issue]:
        try:
            _, _, body, body_line = split_frontmatter(text)
        except FrontmatterError:
            # Reported by FrontmatterCheck; scan the whole text instead
            body, body_line = text, 1

        issues: list[Issue] = []
        open_fence: str | None = None
        open_line = 0
        for offset, line in enumerate(body.splitlines()):
            lineno = body_line + offset
            if open_fence is None:
                match = _FENCE_OPEN_RE.match(line)
                if not match:
                    continue
                fence, info = match.group("fence"), match.group("info")
                if fence[0] == "`" and "`" in info:
                    # Inline code span, not a fence
                    continue
                open_fence, open_line = fence, lineno
                issues.extend(self._check_info(info, lineno, path))
            else:
                match = _FENCE_CLOSE_RE.match(line)
                if (
                    match
                    and match.group("fence")[0] == open_fence[0]
                    and len(match.group("fence")) >= len(open_fence)
                ):
                    open_fence = None
        if open_fence is not None:
            issues.append(
                Issue(path, open_line, ERROR, "fence-unclosed", "Code fence is never closed")
            )
        return issues

    def _check_info(self, info: str, lineno: int, path: Path) -> list[Issue]:
        language = fence_language(info)
        if language is None:
            return [
                Issue(
                    path,
                    lineno,
                    ERROR,
                    "fence-no-language",
                    "Code fence has no language tag",
                )
            ]
        if self.check_languages and not lexer_exists(language):
            return [
                Issue(
                    path,
                    lineno,
                    WARNING,
                    "fence-unknown-language",
                    f"No syntax highlighter for language '{language}'",
                )
            ]
        return []


@dataclass
class CheckReport:
    """Outcome of checking a set of files."""

    issues: list[Issue] = field(default_factory=list)
    files_checked: int = 0

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == ERROR]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == WARNING]

    def ok(self, strict: bool = False) -> bool:
        """True when there are no errors (and, if ``strict``, no warnings)."""
        if strict:
            return not self.issues
        return not self.errors


class ContentChecker:
    """Runs every check over one file or a whole content tree."""

    def __init__(self, checks: list | None = None):
        if checks is None:
            self._checks = [FrontmatterCheck(), CodeFenceCheck()]
        else:
            self._checks = list(checks)

    def check_file(self, path: Path) -> list[Issue]:
        data = path.read_bytes()
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            line = data.count(b"\n", 0, exc.start) + 1
            return [
                Issue(
                    path,
                    line,
                    ERROR,
                    "encoding-invalid",
                    f"File is not valid UTF-8: {exc.reason} at byte {exc.start}",
                )
            ]
        issues: list[Issue] = []
        for check in self._checks:
            issues.extend(check.check(text, path))
        return sorted(issues, key=lambda i: i.line)

    def check_tree(self, root: Path) -> CheckReport:
        return self.check_paths([root])

    def check_paths(self, paths: Iterable[Path]) -> CheckReport:
        """Check files and directories (searched recursively for Markdown)."""
        files: list[Path] = []
        for path in paths:
            if path.is_dir():
                files.extend(FileContentLoader(path).iter_files())
            else:
                files.append(path)
        report = CheckReport()
        for path in sorted(set(files)):
            report.issues.extend(self.check_file(path))
            report.files_checked += 1
        return report
