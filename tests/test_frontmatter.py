from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from folio.frontmatter import (
    CompositeMetadataExtractor,
    DateExtractor,
    DescriptionExtractor,
    DraftExtractor,
    FrontmatterError,
    TagExtractor,
    TitleExtractor,
    extract_frontmatter,
    first_heading,
    normalize_date,
    parse_date,
    parse_draft,
    split_frontmatter,
)
from folio.protocols import MetadataExtractor

YAML_POST = """---
title: "Declarative macros"
date: 2023-02-11T10:24:00+08:00
draft: false
tags: [rust, macros]
---

Macros by example are the first step.
"""


def test_yaml_frontmatter_is_parsed():
    data, body = extract_frontmatter(YAML_POST)
    assert data["title"] == "Declarative macros"
    assert data["draft"] is False
    assert data["tags"] == ["rust", "macros"]
    assert isinstance(data["date"], datetime)
    assert data["date"].utcoffset() == timedelta(hours=8)
    assert body.strip() == "Macros by example are the first step."


def test_toml_frontmatter_is_parsed():
    text = '+++\ntitle = "Proc macros"\ndate = 2023-03-01T08:00:00Z\ndraft = true\n+++\nBody\n'
    data, body = extract_frontmatter(text)
    assert data["title"] == "Proc macros"
    assert data["draft"] is True
    assert data["date"] == datetime(2023, 3, 1, 8, 0, tzinfo=timezone.utc)
    assert body == "Body\n"


def test_document_without_frontmatter():
    data, body = extract_frontmatter("# Just a heading\n")
    assert data == {}
    assert body == "# Just a heading\n"


def test_split_reports_body_line_and_strips_bom():
    fmt, raw, body, body_line = split_frontmatter("\ufeff---\ntitle: a\n---\nbody\n")
    assert fmt == "yaml"
    assert raw == "title: a\n"
    assert body == "body\n"
    assert body_line == 4


def test_empty_block_is_empty_mapping():
    data, body = extract_frontmatter("---\n---\nbody")
    assert data == {}
    assert body == "body"


def test_unclosed_block_raises():
    with pytest.raises(FrontmatterError) as excinfo:
        extract_frontmatter("---\ntitle: never closed\n\nbody\n")
    assert excinfo.value.line == 1
    assert "never closed" in excinfo.value.message


def test_malformed_yaml_raises_with_line():
    with pytest.raises(FrontmatterError) as excinfo:
        extract_frontmatter("---\ntitle: ok\ntags: [unclosed\n---\nbody\n")
    assert "Invalid YAML" in excinfo.value.message
    assert excinfo.value.line is not None


def test_malformed_toml_raises():
    with pytest.raises(FrontmatterError, match="Invalid TOML"):
        extract_frontmatter("+++\ntitle = \n+++\nbody\n")


def test_non_mapping_block_raises():
    with pytest.raises(FrontmatterError, match="mapping"):
        extract_frontmatter("---\n- one\n- two\n---\nbody\n")


@pytest.mark.parametrize("value", ["2023-02-30", "2023-13-01T10:00:00+08:00"])
def test_out_of_range_yaml_date_raises_with_key_and_line(value):
    with pytest.raises(FrontmatterError) as excinfo:
        extract_frontmatter(f"---\ntitle: T\ndate: {value}\ndraft: false\n---\n")
    assert excinfo.value.key == "date"
    assert excinfo.value.line == 3
    assert excinfo.value.message.startswith("Invalid date:")


def test_parse_date_variants():
    assert parse_date("2023-02-11T02:24:00Z") == datetime(
        2023, 2, 11, 2, 24, tzinfo=timezone.utc
    )
    assert parse_date("2023-02-11") == datetime(2023, 2, 11)
    assert parse_date(date(2023, 2, 11)) == datetime(2023, 2, 11)
    aware = datetime(2023, 2, 11, tzinfo=timezone.utc)
    assert parse_date(aware) is aware
    for bad in ("yesterday", "", 20230211, True, None):
        with pytest.raises(FrontmatterError):
            parse_date(bad)


def test_normalize_date_only_touches_naive_values():
    tz = timezone(timedelta(hours=8))
    naive = datetime(2023, 2, 11, 10, 0)
    assert normalize_date(naive, tz).utcoffset() == timedelta(hours=8)
    aware = datetime(2023, 2, 11, tzinfo=timezone.utc)
    assert normalize_date(aware, tz) is aware


def test_parse_draft():
    assert parse_draft(True) is True
    assert parse_draft(False) is False
    assert parse_draft("yes") is True
    assert parse_draft(" False ") is False
    for bad in ("maybe", 1, None):
        with pytest.raises(FrontmatterError):
            parse_draft(bad)


def test_first_heading_skips_code_fences():
    body = "```rust\n# fn main() {}\n```\n\n# Real Title\n"
    assert first_heading(body) == "Real Title"
    assert first_heading("no headings here") is None

    # a ~~~ line inside a backtick fence does not close it
    body = "```markdown\n~~~\n# not a title\n~~~\n```\n\n# Real Title\n"
    assert first_heading(body) == "Real Title"
    body = "````\n```\n# still code\n````\n# After\n"
    assert first_heading(body) == "After"


def test_title_extractor_fallbacks():
    extractor = TitleExtractor()
    path = Path("2023-02-11-hygiene-rules.md")
    assert extractor.extract({"title": " Hygiene "}, "", path) == {"title": "Hygiene"}
    assert extractor.extract({"title": ""}, "# From Heading", path) == {
        "title": "From Heading"
    }
    assert extractor.extract({}, "text only", path) == {"title": "Hygiene Rules"}


def test_date_extractor_prefers_frontmatter_then_filename(tmp_path):
    tz = timezone(timedelta(hours=-5))
    extractor = DateExtractor(tz)
    path = tmp_path / "2024-01-15-post.md"
    path.write_text("", encoding="utf-8")

    result = extractor.extract({"date": "2023-02-11T10:00:00"}, "", path)
    assert result["date"] == datetime(2023, 2, 11, 10, 0, tzinfo=tz)

    result = extractor.extract({}, "", path)
    assert result["date"] == datetime(2024, 1, 15, tzinfo=tz)
    assert "updated" not in result

    other = tmp_path / "undated.md"
    other.write_text("", encoding="utf-8")
    assert extractor.extract({}, "", other)["date"].tzinfo is not None


def test_date_extractor_reads_lastmod(tmp_path):
    result = DateExtractor().extract(
        {"date": "2023-02-11T10:00:00Z", "lastmod": "2023-03-01T10:00:00Z"},
        "",
        tmp_path / "post.md",
    )
    assert result["updated"] == datetime(2023, 3, 1, 10, 0, tzinfo=timezone.utc)


def test_date_extractor_rejects_invalid_date(tmp_path):
    with pytest.raises(FrontmatterError):
        DateExtractor().extract({"date": "not a date"}, "", tmp_path / "post.md")


def test_draft_extractor():
    extractor = DraftExtractor()
    assert extractor.extract({"draft": True}, "", Path("post.md")) == {"draft": True}
    assert extractor.extract({}, "", Path("post.md")) == {"draft": False}
    assert extractor.extract({"draft": False}, "", Path("_wip.md")) == {"draft": True}


def test_tag_extractor():
    extractor = TagExtractor()
    assert extractor.extract({"tags": "rust, macros"}, "", Path("p.md")) == {
        "tags": ["rust", "macros"]
    }
    assert extractor.extract({"tags": ["rust", "rust", 2021]}, "", Path("p.md")) == {
        "tags": ["rust", "2021"]
    }
    assert extractor.extract({}, "", Path("p.md")) == {"tags": []}


def test_description_extractor():
    extractor = DescriptionExtractor()
    body = "# Title\n\n```rust\nlet x = 1;\n```\n\nThe **first** [paragraph](/x/).\n"
    assert extractor.extract({}, body, Path("p.md")) == {
        "description": "The first paragraph."
    }
    assert extractor.extract({"summary": "Short  one"}, body, Path("p.md")) == {
        "description": "Short one"
    }


def test_composite_extractor_merges_in_order():
    extractor = CompositeMetadataExtractor([TitleExtractor()])
    extractor.add_extractor(DraftExtractor())
    result = extractor.extract({"title": "T", "draft": "no"}, "", Path("p.md"))
    assert result == {"title": "T", "draft": False}
    assert isinstance(extractor, MetadataExtractor)
    assert isinstance(DateExtractor(), MetadataExtractor)


def test_composite_extractor_default_chain(tmp_path):
    path = tmp_path / "2023-02-11-macros.md"
    path.write_text("", encoding="utf-8")
    result = CompositeMetadataExtractor().extract({"tags": "rust"}, "Body text.", path)
    assert set(result) == {"title", "date", "draft", "tags", "description"}
    assert result["date"] == datetime(2023, 2, 11, tzinfo=timezone.utc)
    assert result["title"] == "Macros"
