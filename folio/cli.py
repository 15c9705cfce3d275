"""Command-line interface for Folio.

Commands:
- build: Build the site into the output directory.
- check: Verify front-matter and code fences in post sources.
- list: Show the posts a build would publish.
"""

from __future__ import annotations

from pathlib import Path

import click

from . import __version__
from .build import BuildError, ConfigError, build_site, load_config
from .checks import ContentChecker
from .collections import PostCollection
from .content import ContentError, ContentProcessor, PostBuilder


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio static blog publisher."""


def _relative(path: Path, root: Path) -> Path:
    try:
        return path.relative_to(root)
    except ValueError:
        return path


def _fail(source_path: Path, message: str, project_root: Path, heading: str) -> None:
    click.echo(click.style(heading, fg="red", bold=True), err=True)
    click.echo(
        click.style(f"  File: {_relative(source_path, project_root)}", fg="yellow"),
        err=True,
    )
    click.echo(click.style(f"  Error: {message}", fg="white"), err=True)
    raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft posts")
@click.option("--strict", is_flag=True, help="Fail on content check errors")
def build(drafts: bool, strict: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    try:
        result = build_site(project_root, include_drafts=drafts, strict=strict)
    except (BuildError, ConfigError) as exc:
        _fail(exc.source_path, exc.message, project_root, "Build failed:")
    message = f"Built {len(result.posts)} posts into {result.output_dir}"
    if result.drafts_skipped:
        message += f" ({result.drafts_skipped} drafts skipped)"
    click.echo(message)


@cli.command()
@click.option("--strict", is_flag=True, help="Treat warnings as failures")
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
def check(strict: bool, paths: tuple[Path, ...]):
    """Check front-matter and code fences of posts."""
    project_root = Path.cwd()
    if not paths:
        try:
            config = load_config(project_root)
        except ConfigError as exc:
            _fail(exc.source_path, exc.message, project_root, "Check failed:")
        content_dir = project_root / config["content_dir"]
        if not content_dir.is_dir():
            raise click.ClickException(f"No content directory found at {content_dir}")
        paths = (content_dir,)

    report = ContentChecker().check_paths([p.resolve() for p in paths])
    for issue in report.issues:
        color = "red" if issue.severity == "error" else "yellow"
        click.echo(click.style(issue.format(project_root), fg=color))

    summary = (
        f"Checked {report.files_checked} files: "
        f"{len(report.errors)} errors, {len(report.warnings)} warnings"
    )
    if report.ok(strict):
        click.echo(click.style(summary, fg="green"))
        return
    click.echo(click.style(summary, fg="red", bold=True), err=True)
    raise SystemExit(1)


@cli.command(name="list")
@click.option("--drafts", is_flag=True, help="Include draft posts")
def list_posts(drafts: bool):
    """List posts, newest first."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        _fail(exc.source_path, exc.message, project_root, "List failed:")
    content_dir = project_root / config["content_dir"]
    if not content_dir.is_dir():
        raise click.ClickException(f"No content directory found at {content_dir}")

    builder = PostBuilder(content_dir, default_tz=config["tz"])
    try:
        posts = ContentProcessor(content_dir, post_builder=builder).load(
            include_drafts=drafts
        )
    except ContentError as exc:
        _fail(exc.source_path, exc.message, project_root, "List failed:")

    for post in PostCollection(posts).sorted():
        flag = "draft" if post.draft else "     "
        click.echo(f"{post.date.strftime('%Y-%m-%d')}  {flag}  {post.title}  {post.url}")


def main():
    """Entry point for the CLI application."""
    cli()
