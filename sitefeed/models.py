from __future__ import annotations

import datetime as dt
import posixpath
from dataclasses import dataclass, replace
from typing import Optional

from .utils import join_url


def post_id(base_url: str, url_path: str) -> str:
    """Stable entry id: the post's absolute URL without its file extension.

    ``/jekyll/update/2024/02/22/welcome-to-jekyll.html`` on
    ``https://example.com`` becomes
    ``https://example.com/jekyll/update/2024/02/22/welcome-to-jekyll``.
    Directory-style paths ending in ``/`` are kept as they are.
    """
    head, tail = posixpath.split(url_path)
    stem, _ext = posixpath.splitext(tail)
    path = posixpath.join(head, stem) if tail else url_path
    return base_url.rstrip("/") + "/" + path.lstrip("/")


@dataclass(frozen=True)
class SiteMetadata:
    title: str
    subtitle: str
    base_url: str
    generator_name: str
    generator_version: str
    build_timestamp: dt.datetime
    generator_uri: str = ""
    feed_path: str = "feed.xml"
    author_name: str = ""

    @property
    def feed_url(self) -> str:
        return join_url(self.base_url, self.feed_path)


@dataclass(frozen=True)
class PostRecord:
    title: str
    url_path: str
    published_at: Optional[dt.datetime]
    updated_at: Optional[dt.datetime] = None
    categories: tuple[str, ...] = ()
    content_html: str = ""
    summary_text: str = ""
    author_name: str = ""
    id: str = ""

    def __post_init__(self) -> None:
        if self.updated_at is None:
            object.__setattr__(self, "updated_at", self.published_at)
        if not isinstance(self.categories, tuple):
            object.__setattr__(self, "categories", tuple(self.categories))

    def with_id(self, base_url: str) -> "PostRecord":
        if self.id:
            return self
        return replace(self, id=post_id(base_url, self.url_path))


@dataclass(frozen=True)
class FeedDocument:
    text: str
    entry_count: int
    updated: dt.datetime
    entry_ids: tuple[str, ...] = ()

    def encode(self) -> bytes:
        return self.text.encode("utf-8")
