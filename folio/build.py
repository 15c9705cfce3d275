"""Site building functionality for Folio.

This module turns a project directory into a static site: it loads the
configuration, reads and renders every post, wraps them in layouts and
writes the output tree together with feeds, highlight CSS and static files.

Key functions:
- build_site: Build the entire site.
- load_config: Load site configuration from folio.yaml.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from jinja2 import TemplateSyntaxError
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .checks import ContentChecker
from .content import ContentError, ContentProcessor, Post, PostBuilder
from .feeds import create_default_feed_registry
from .html_utils import absolutize_html_urls
from .templates import TemplateEngine
from .utils import ensure_clean_dir, is_hidden, is_markdown

CONFIG_FILENAME = "folio.yaml"


class ConfigError(Exception):
    """Invalid folio.yaml.

    Attributes:
        source_path: Path to the configuration file.
        message: Human-readable error message.
    """

    def __init__(self, source_path: Path, message: str):
        self.source_path = source_path
        self.message = message
        super().__init__(f"{source_path}: {message}")


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Folio",
    "description": "",
    "language": "en",
    "url": "",
    "root_url": "",
    "content_dir": "content",
    "output_dir": "public",
    "layouts_dir": "layouts",
    "static_dir": "static",
    "timezone": "UTC",
    "pygments_style": "default",
    "rss_limit": 20,
}

SITE_KEYS = ("title", "description", "language", "url")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        posts: Posts written to the output.
        output_dir: Directory where the site was built.
        site: Site metadata passed to templates and feeds.
        drafts_skipped: Number of draft posts left out.
        feeds: Feed filenames that were written.
    """

    posts: list[Post]
    output_dir: Path
    site: dict[str, Any]
    drafts_skipped: int = 0
    feeds: list[str] = field(default_factory=list)


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from folio.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Configuration values with defaults applied.

    Raises:
        ConfigError: If the file is not a YAML mapping, or names an
            unknown timezone or Pygments style.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(config_path, f"Invalid YAML: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(config_path, "Configuration must be a mapping")
        config.update(loaded)

    try:
        config["tz"] = resolve_timezone(str(config["timezone"]))
    except ZoneInfoNotFoundError as exc:
        raise ConfigError(config_path, f"Unknown timezone: {config['timezone']}") from exc
    try:
        get_style_by_name(str(config["pygments_style"]))
    except ClassNotFound as exc:
        raise ConfigError(
            config_path, f"Unknown pygments_style: {config['pygments_style']}"
        ) from exc
    return config


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(name)


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    strict: bool = False,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to publish posts marked as drafts.
        strict: Run the content checks first and fail on any error.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write here instead of the configured output_dir.

    Returns:
        BuildResult describing what was written.

    Raises:
        BuildError: If content cannot be read, checked or rendered.
        ConfigError: If folio.yaml is invalid.
    """
    config = load_config(project_root)
    content_dir = project_root / config["content_dir"]
    if not content_dir.is_dir():
        raise BuildError(content_dir, "Content directory not found")

    if strict:
        report = ContentChecker().check_tree(content_dir)
        if report.errors:
            first = report.errors[0]
            raise BuildError(
                first.path,
                f"{len(report.errors)} content error(s); "
                f"line {first.line}: {first.message}",
            )

    builder = PostBuilder(content_dir, default_tz=config["tz"])
    try:
        all_posts = ContentProcessor(content_dir, post_builder=builder).load(
            include_drafts=True
        )
    except ContentError as exc:
        message = f"line {exc.line}: {exc.message}" if exc.line else exc.message
        raise BuildError(exc.source_path, message, exc) from exc

    posts = [p for p in all_posts if include_drafts or not p.draft]
    draft_bundles = {
        p.path.parent
        for p in all_posts
        if p.draft and not include_drafts and p.path.stem == "index"
    }

    output_dir = output_dir_override or (project_root / config["output_dir"])
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    site = {key: config.get(key) for key in SITE_KEYS}
    root_url = str(config.get("root_url") or "")
    engine = TemplateEngine(
        project_root / config["layouts_dir"],
        site,
        root_url=root_url,
        pygments_style=str(config["pygments_style"]),
    )
    engine.update_collections(posts)

    for post in posts:
        try:
            rendered = engine.render_post(post)
        except TemplateSyntaxError as exc:
            raise BuildError(
                post.path,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(post.path, _format_error_message(exc), exc) from exc
        if root_url:
            rendered = absolutize_html_urls(rendered, root_url)
        _write_page(output_dir, post.url, rendered)

    # A root index.md post takes the place of the generated listing
    if not any(p.url == "/" for p in posts):
        index_html = engine.render_index()
        if root_url:
            index_html = absolutize_html_urls(index_html, root_url)
        _write_page(output_dir, "/", index_html)

    css_dir = output_dir / "css"
    css_dir.mkdir(parents=True, exist_ok=True)
    (css_dir / "highlight.css").write_text(engine.pygments_css(), encoding="utf-8")

    _copy_static(project_root / config["static_dir"], output_dir)
    _copy_resources(content_dir, output_dir, draft_bundles)

    feeds = create_default_feed_registry(config.get("rss_limit")).generate_all(
        output_dir, posts, site
    )
    return BuildResult(
        posts=posts,
        output_dir=output_dir,
        site=site,
        drafts_skipped=len(all_posts) - len(posts),
        feeds=feeds,
    )


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _write_page(output_dir: Path, url: str, rendered: str) -> None:
    target_dir = output_dir / url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    with open(target_dir / "index.html", "w", encoding="utf-8") as f:
        f.write(rendered)


def _copy_static(static_dir: Path, output_dir: Path) -> None:
    if static_dir.is_dir():
        shutil.copytree(static_dir, output_dir, dirs_exist_ok=True)


def _copy_resources(content_dir: Path, output_dir: Path, skip_dirs: set[Path]) -> None:
    """Copy non-Markdown files (images and other post resources) from the content tree.

    Hidden and internal directories are skipped, as are the folders of
    draft page bundles listed in ``skip_dirs``.
    """
    for path in sorted(content_dir.rglob("*")):
        if path.is_dir() or is_markdown(path):
            continue
        rel = path.relative_to(content_dir)
        if any(is_hidden(part) for part in rel.parts):
            continue
        if any(parent in skip_dirs for parent in path.parents):
            continue
        dest = output_dir / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, dest)
