from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional

from .errors import InvalidPost, InvalidSite
from .models import FeedDocument, PostRecord, SiteMetadata
from .utils import cdata, is_absolute_url, is_aware, join_url, rfc3339, xml_escape

ATOM_NS = "http://www.w3.org/2005/Atom"


def validate_site(site: SiteMetadata) -> None:
    base_url = (site.base_url or "").strip()
    if not base_url:
        raise InvalidSite("site base_url is empty")
    if not is_absolute_url(base_url):
        raise InvalidSite(f"site base_url is not an absolute http(s) URL: {base_url!r}")
    if not is_aware(site.build_timestamp):
        raise InvalidSite("site build_timestamp must be a datetime with a UTC offset")
    if not (site.feed_path or "").strip("/"):
        raise InvalidSite("site feed_path is empty")


def validate_posts(site: SiteMetadata, posts: Iterable[PostRecord]) -> list[PostRecord]:
    """Check the fields the feed emits directly and fill in missing ids."""
    checked = []
    seen: dict[str, str] = {}
    for post in posts:
        label = post.url_path or repr(post.title)
        if not (post.url_path or "").strip():
            raise InvalidPost(f"post {post.title!r} has an empty url_path")
        if post.published_at is None:
            raise InvalidPost(f"post {label} has no published date")
        if not is_aware(post.published_at):
            raise InvalidPost(f"post {label}: published date has no UTC offset")
        if not is_aware(post.updated_at):
            raise InvalidPost(f"post {label}: updated date has no UTC offset")
        if post.updated_at < post.published_at:
            raise InvalidPost(f"post {label} was updated before it was published")
        post = post.with_id(site.base_url)
        if post.id in seen:
            raise InvalidPost(f"posts {seen[post.id]} and {label} share the id {post.id}")
        seen[post.id] = label
        checked.append(post)
    return checked


def sort_posts(posts: Iterable[PostRecord]) -> list[PostRecord]:
    # Stable sorts: id ascending first, then newest first. Compare at the
    # seconds precision the feed emits so equal <published> values stay in id order.
    ordered = sorted(posts, key=lambda p: p.id)
    ordered.sort(key=lambda p: p.published_at.replace(microsecond=0), reverse=True)
    return ordered


def feed_updated(site: SiteMetadata, posts: list[PostRecord]) -> dt.datetime:
    if not posts:
        return site.build_timestamp
    return max(post.updated_at for post in posts)


def build_entry(site: SiteMetadata, post: PostRecord, excerpt_only: bool = False) -> str:
    link = join_url(site.base_url, post.url_path)
    title = xml_escape(post.title)
    lines = [
        "<entry>",
        f'<title type="html">{title}</title>',
        f'<link href="{xml_escape(link)}" rel="alternate" type="text/html" title="{title}" />',
        f"<published>{rfc3339(post.published_at)}</published>",
        f"<updated>{rfc3339(post.updated_at)}</updated>",
        f"<id>{xml_escape(post.id)}</id>",
    ]
    if not excerpt_only:
        lines.append(f'<content type="html" xml:base="{xml_escape(link)}">{cdata(post.content_html)}</content>')
    lines.append(f"<author><name>{xml_escape(post.author_name or '')}</name></author>")
    for category in post.categories:
        lines.append(f'<category term="{xml_escape(category)}" />')
    if post.summary_text:
        lines.append(f'<summary type="html">{cdata(post.summary_text)}</summary>')
    lines.append("</entry>")
    return "\n".join(lines)


def build_feed(
    site: SiteMetadata,
    posts: Iterable[PostRecord],
    *,
    limit: Optional[int] = None,
    excerpt_only: bool = False,
) -> FeedDocument:
    """Render ``posts`` as an Atom 1.0 document.

    Everything is validated before any markup is produced, so a bad post
    aborts the whole feed. ``updated`` is taken over all posts even when
    ``limit`` drops some of them from the output.
    """
    validate_site(site)
    checked = validate_posts(site, posts)
    updated = feed_updated(site, checked)
    ordered = sort_posts(checked)
    if limit is not None and limit >= 0:
        ordered = ordered[:limit]

    generator_uri = site.generator_uri or site.base_url
    header = [
        '<?xml version="1.0" encoding="utf-8"?>',
        f'<feed xmlns="{ATOM_NS}">',
        f'<generator uri="{xml_escape(generator_uri)}" version="{xml_escape(site.generator_version)}">'
        f"{xml_escape(site.generator_name)}</generator>",
        f'<link href="{xml_escape(site.feed_url)}" rel="self" type="application/atom+xml" />',
        f'<link href="{xml_escape(site.base_url.rstrip("/"))}/" rel="alternate" type="text/html" />',
        f"<updated>{rfc3339(updated)}</updated>",
        f"<id>{xml_escape(site.feed_url)}</id>",
        f'<title type="html">{xml_escape(site.title)}</title>',
    ]
    if site.subtitle:
        header.append(f"<subtitle>{xml_escape(site.subtitle)}</subtitle>")
    if site.author_name:
        header.append(f"<author><name>{xml_escape(site.author_name)}</name></author>")

    entries = [build_entry(site, post, excerpt_only) for post in ordered]
    text = "\n".join(header + entries + ["</feed>"]) + "\n"
    return FeedDocument(
        text=text,
        entry_count=len(ordered),
        updated=updated,
        entry_ids=tuple(post.id for post in ordered),
    )
