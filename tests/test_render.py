import datetime as dt
import os
import stat
from dataclasses import replace

import pytest

from sitefeed.errors import RenderError
from sitefeed.models import FeedDocument
from sitefeed.render import (
    MarkdownRenderer,
    absolutize_urls,
    collect_posts,
    expand_permalink,
    write_feed,
    write_text,
)

UTC = dt.timezone.utc
PUBLISHED = dt.datetime(2024, 2, 22, 14, 35, tzinfo=UTC)

WELCOME = """---
layout: post
title:  "Welcome to Jekyll!"
date:   2024-02-22 14:35:00 +0800
categories: jekyll update
---
You'll find this post in your `_posts` directory.

![logo](/assets/logo.png)

```ruby
def print_hi(name)
  puts "Hi, #{name}"
end
```
"""


def write_post(directory, name, text):
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def renderer(site):
    return MarkdownRenderer(site)


@pytest.mark.parametrize(
    "style, expected",
    [
        ("date", "/jekyll/update/2024/02/22/welcome.html"),
        ("pretty", "/jekyll/update/2024/02/22/welcome/"),
        ("ordinal", "/jekyll/update/2024/053/welcome.html"),
        ("none", "/jekyll/update/welcome.html"),
        ("/blog/:year/:i_month/:i_day/:title/", "/blog/2024/2/22/welcome/"),
    ],
)
def test_expand_permalink(style, expected):
    assert expand_permalink(style, PUBLISHED, "welcome", ["jekyll", "update"]) == expected


def test_expand_permalink_without_categories():
    assert expand_permalink("date", PUBLISHED, "welcome", []) == "/2024/02/22/welcome.html"


def test_expand_permalink_slugifies_and_dedupes_categories():
    path = expand_permalink("none", PUBLISHED, "x", ["Release Notes", "release notes", "misc"])

    assert path == "/release-notes/misc/x.html"


def test_absolutize_urls():
    html_text = (
        '<img alt="a" src="/assets/a.png"><a href="/about/">About</a>'
        '<a href="//cdn.example.org/x">cdn</a><a href="relative.html">rel</a>'
    )

    assert absolutize_urls(html_text, "https://example.com/blog") == (
        '<img alt="a" src="https://example.com/assets/a.png"><a href="https://example.com/about/">About</a>'
        '<a href="//cdn.example.org/x">cdn</a><a href="relative.html">rel</a>'
    )


def test_render_jekyll_post(tmp_path, renderer):
    path = write_post(tmp_path, "2024-02-22-welcome-to-jekyll.markdown", WELCOME)

    post = renderer.render(path)

    assert post.title == "Welcome to Jekyll!"
    assert post.url_path == "/jekyll/update/2024/02/22/welcome-to-jekyll.html"
    assert post.id == "https://example.com/jekyll/update/2024/02/22/welcome-to-jekyll"
    assert post.published_at == dt.datetime(2024, 2, 22, 14, 35, tzinfo=dt.timezone(dt.timedelta(hours=8)))
    assert post.updated_at == post.published_at
    assert post.categories == ("jekyll", "update")
    assert 'src="https://example.com/assets/logo.png"' in post.content_html
    assert 'class="highlight"' in post.content_html
    assert post.summary_text == "<p>You'll find this post in your <code>_posts</code> directory.</p>"
    assert post.author_name == ""


def test_render_uses_filename_date_and_site_timezone(tmp_path, site):
    tz = dt.timezone(dt.timedelta(hours=-5))
    renderer = MarkdownRenderer(site, timezone=tz, permalink="pretty")
    path = write_post(tmp_path, "2022-05-13-lorem-ipsum.md", "# Lorem Ipsum\n\nFirst.\n\nSecond.")

    post = renderer.render(path)

    assert post.title == "Lorem Ipsum"
    assert post.published_at == dt.datetime(2022, 5, 13, tzinfo=tz)
    assert post.url_path == "/2022/05/13/lorem-ipsum/"
    assert post.summary_text == "<p>First.</p>"
    assert "<h1" not in post.content_html


def test_render_front_matter_overrides(tmp_path, site):
    renderer = MarkdownRenderer(replace(site, author_name="Site Owner"))
    text = (
        "---\n"
        "title: Custom\n"
        "slug: Custom Slug\n"
        "permalink: /notes/:title.html\n"
        "excerpt: Short *intro*\n"
        "last_modified_at: 2024-03-01 10:00:00 +0000\n"
        "author:\n  name: Jane Doe\n"
        "---\n"
        "Body text.\n"
    )
    path = write_post(tmp_path, "2024-02-22-ignored.md", text)

    post = renderer.render(path)

    assert post.url_path == "/notes/custom-slug.html"
    assert post.summary_text == "<p>Short <em>intro</em></p>"
    assert post.updated_at == dt.datetime(2024, 3, 1, 10, 0, tzinfo=UTC)
    assert post.author_name == "Jane Doe"


def test_render_clamps_updated_before_published(tmp_path, renderer):
    text = "---\ndate: 2024-02-22 10:00:00 +0000\nupdated: 2020-01-01\n---\nBody\n"
    post = renderer.render(write_post(tmp_path, "2024-02-22-clamp.md", text))

    assert post.updated_at == post.published_at


def test_render_author_falls_back_to_site(tmp_path, site):
    renderer = MarkdownRenderer(replace(site, author_name="Site Owner"))
    post = renderer.render(write_post(tmp_path, "2024-02-22-a.md", "Body"))

    assert post.author_name == "Site Owner"


def test_render_rejects_undated_file(tmp_path, renderer):
    with pytest.raises(RenderError):
        renderer.render(write_post(tmp_path, "about.md", "Body"))


def test_render_missing_file(tmp_path, renderer):
    with pytest.raises(RenderError):
        renderer.render(tmp_path / "2024-01-01-missing.md")


def test_collect_posts_filters_drafts_and_future(tmp_path, renderer):
    posts_dir = tmp_path / "_posts"
    write_post(posts_dir, "2024-02-22-welcome.md", "Welcome")
    write_post(posts_dir, "2022/2022-05-13-nested.markdown", "Nested")
    write_post(posts_dir, "2024-02-23-draft.md", "---\npublished: false\n---\nDraft")
    write_post(posts_dir, "2030-01-01-future.md", "Future")
    write_post(posts_dir, "notes.txt", "ignored")
    now = dt.datetime(2024, 3, 1, tzinfo=UTC)

    default = collect_posts(renderer, posts_dir, now=now)
    everything = collect_posts(renderer, posts_dir, drafts=True, future=True, now=now, workers=4)

    assert sorted(p.url_path for p in default) == ["/2022/05/13/nested.html", "/2024/02/22/welcome.html"]
    assert len(everything) == 4


def test_collect_posts_missing_directory(tmp_path, renderer):
    assert collect_posts(renderer, tmp_path / "_posts") == []


def test_write_text_replaces_file(tmp_path):
    target = tmp_path / "out" / "feed.xml"
    write_text(target, "old")
    write_text(target, "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert os.listdir(target.parent) == ["feed.xml"]
    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_write_feed(tmp_path):
    document = FeedDocument(text="<feed />\n", entry_count=0, updated=PUBLISHED)
    write_feed(tmp_path / "feed.xml", document)

    assert (tmp_path / "feed.xml").read_bytes() == b"<feed />\n"
