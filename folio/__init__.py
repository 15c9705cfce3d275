"""Folio static blog publisher.

Folio turns a directory of Markdown posts into a static HTML site. Each post
starts with a front-matter block (title, date, draft flag); its body is
rendered with mistune and its fenced code samples are highlighted with
Pygments. Drafts never reach the published output.

The main entry point is the CLI module, which provides commands for building
the site, checking post sources and listing posts.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
