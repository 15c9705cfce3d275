from datetime import datetime, timezone
from pathlib import Path

from folio.content import Post
from folio.markdown import Heading
from folio.templates import TemplateEngine, render_toc


def make_post(**overrides) -> Post:
    fields = dict(
        title="Declarative macros",
        date=datetime(2023, 2, 11, 10, 24, tzinfo=timezone.utc),
        draft=False,
        body="Hi",
        content="<p>Hi</p>",
        description="Macros by example",
        url="/posts/declarative-macros/",
        slug="declarative-macros",
        section="posts",
        tags=["rust"],
        layout="posts",
        path=Path("content/posts/declarative-macros.md"),
        filename="declarative-macros.md",
    )
    fields.update(overrides)
    return Post(**fields)


def test_bundled_post_layout(tmp_path):
    engine = TemplateEngine(tmp_path / "layouts", {"title": "Metaprogramming"})
    post = make_post()
    engine.update_collections([post])
    html = engine.render_post(post)
    assert "<p>Hi</p>" in html
    assert "<title>Declarative macros | Metaprogramming</title>" in html
    assert '<time datetime="2023-02-11T10:24:00+00:00">2023-02-11</time>' in html
    assert '<span class="tag">rust</span>' in html
    assert "/css/highlight.css" in html


def test_project_layout_overrides_by_section(tmp_path):
    layouts = tmp_path / "layouts"
    layouts.mkdir()
    (layouts / "posts.html.jinja").write_text(
        "SECTION {{ post.title }} {{ post_content }}", encoding="utf-8"
    )
    (layouts / "wide.html.jinja").write_text("WIDE {{ post_content }}", encoding="utf-8")
    engine = TemplateEngine(layouts, {})

    assert engine.render_post(make_post()).startswith("SECTION Declarative macros <p>Hi</p>")
    assert engine.render_post(make_post(layout="wide")) == "WIDE <p>Hi</p>"
    assert "<article>" in engine.render_post(make_post(layout="missing"))


def test_titles_are_escaped(tmp_path):
    engine = TemplateEngine(None, {"title": "Site"})
    html = engine.render_post(make_post(title="Vec<T> & friends"))
    assert "Vec&lt;T&gt; &amp; friends" in html


def test_missing_include_falls_back_to_content(tmp_path, capsys):
    layouts = tmp_path / "layouts"
    layouts.mkdir()
    (layouts / "post.html.jinja").write_text(
        "{% include 'missing.html.jinja' %}{{ post_content }}", encoding="utf-8"
    )
    engine = TemplateEngine(layouts, {})
    out = engine.render_post(make_post(layout="post"))
    assert out == "<p>Hi</p>"
    assert "missing.html.jinja" in capsys.readouterr().out


def test_index_lists_posts_newest_first(tmp_path):
    engine = TemplateEngine(tmp_path / "layouts", {"title": "Site"})
    older = make_post(title="Older", url="/posts/older/", filename="older.md")
    newer = make_post(
        title="Newer",
        url="/posts/newer/",
        filename="newer.md",
        date=datetime(2023, 5, 1, tzinfo=timezone.utc),
    )
    engine.update_collections([older, newer])
    html = engine.render_index()
    assert html.index("Newer") < html.index("Older")
    assert 'href="/posts/older/"' in html


def test_url_for(tmp_path):
    engine = TemplateEngine(None, {})
    assert engine._url_for("css/highlight.css") == "/css/highlight.css"
    assert engine._url_for("https://cdn.example.com/x.js") == "https://cdn.example.com/x.js"

    rooted = TemplateEngine(None, {}, root_url="https://example.com/blog/")
    assert rooted._url_for("/posts/a/") == "https://example.com/blog/posts/a/"


def test_pygments_css_uses_style():
    css = TemplateEngine(None, {}, pygments_style="monokai").pygments_css()
    assert ".highlight" in css
    assert css != TemplateEngine(None, {}).pygments_css()


def test_render_toc_nests_levels():
    post = make_post(
        toc=[
            Heading("intro", "Intro", 2),
            Heading("tokens", "Tokens & trees", 3),
            Heading("spans", "Spans", 3),
            Heading("outro", "Outro", 2),
        ]
    )
    assert str(render_toc(post)) == (
        '<ul><li><a href="#intro">Intro</a>'
        '<ul><li><a href="#tokens">Tokens &amp; trees</a></li>'
        '<li><a href="#spans">Spans</a></li></ul></li>'
        '<li><a href="#outro">Outro</a></li></ul>'
    )
    assert str(render_toc(make_post())) == ""
