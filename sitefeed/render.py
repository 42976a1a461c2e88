from __future__ import annotations

import datetime as dt
import os
import re
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urljoin

import markdown

from .content import (
    extract_title,
    get_author,
    get_categories,
    is_published,
    normalize_list_spacing,
    parse_front_matter,
    parse_post_filename,
    parse_timestamp,
    slugify,
)
from .errors import RenderError
from .models import FeedDocument, PostRecord, SiteMetadata, post_id

POST_SUFFIXES = {".md", ".markdown"}
OUTPUT_EXT = ".html"
PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}
ROOT_URL_RE = re.compile(r'(\s(?:src|href)=")(/(?!/)[^"]*)"', re.IGNORECASE)
MULTI_SLASH_RE = re.compile(r"/{2,}")
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "codehilite", "toc"]
MARKDOWN_CONFIGS = {"codehilite": {"guess_lang": False, "css_class": "highlight"}}


class ContentRenderer(Protocol):
    def render(self, source_file: Path) -> PostRecord:
        ...


def read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise RenderError(f"Cannot read post {path}: {exc}") from exc


def absolutize_urls(html_text: str, base_url: str) -> str:
    """Resolve root-relative ``src``/``href`` values against the site URL.

    Feed readers resolve relative links against ``xml:base`` (the post URL),
    which is wrong for ``/assets/...`` style paths.
    """
    root = base_url.rstrip("/") + "/"

    def repl(match: re.Match) -> str:
        return f'{match.group(1)}{urljoin(root, match.group(2))}"'

    return ROOT_URL_RE.sub(repl, html_text)


def expand_permalink(
    template: str, published_at: dt.datetime, slug: str, categories: list[str]
) -> str:
    template = PERMALINK_STYLES.get(template, template)
    category_parts = []
    for category in categories:
        part = slugify(category)
        if part not in category_parts:
            category_parts.append(part)
    values = {
        "categories": "/".join(category_parts),
        "year": f"{published_at.year:04d}",
        "month": f"{published_at.month:02d}",
        "i_month": str(published_at.month),
        "day": f"{published_at.day:02d}",
        "i_day": str(published_at.day),
        "y_day": f"{published_at.timetuple().tm_yday:03d}",
        "hour": f"{published_at.hour:02d}",
        "minute": f"{published_at.minute:02d}",
        "second": f"{published_at.second:02d}",
        "title": slug,
        "slug": slug,
        "output_ext": OUTPUT_EXT,
    }
    path = template
    for key in sorted(values, key=len, reverse=True):
        path = path.replace(f":{key}", values[key])
    path = MULTI_SLASH_RE.sub("/", "/" + path)
    return path


class MarkdownRenderer:
    """Turns a Jekyll ``_posts`` Markdown file into a :class:`PostRecord`."""

    def __init__(
        self,
        site: SiteMetadata,
        *,
        timezone: Optional[dt.tzinfo] = None,
        permalink: str = "date",
        excerpt_separator: str = "\n\n",
    ) -> None:
        self.site = site
        self.timezone = timezone or dt.timezone.utc
        self.permalink = permalink or "date"
        self.excerpt_separator = excerpt_separator or "\n\n"

    def convert(self, text: str) -> str:
        md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_CONFIGS)
        html_content = md.convert(normalize_list_spacing(text))
        md.reset()
        return absolutize_urls(html_content, self.site.base_url)

    def excerpt(self, meta: dict, body: str) -> str:
        explicit = meta.get("excerpt")
        if explicit:
            return self.convert(str(explicit))
        first = body.strip().split(self.excerpt_separator, 1)[0]
        return self.convert(first) if first.strip() else ""

    def render(self, source_file: Path) -> PostRecord:
        raw_text = read_source(source_file)
        meta, body = parse_front_matter(raw_text, str(source_file))
        file_date, file_slug = parse_post_filename(source_file.name)
        slug = slugify(str(meta["slug"])) if meta.get("slug") else file_slug
        title, body = extract_title(meta, body, slug)

        published_at = parse_timestamp(meta.get("date") or file_date, self.timezone)
        updated_value = meta.get("last_modified_at") or meta.get("updated")
        updated_at = parse_timestamp(updated_value, self.timezone) if updated_value else published_at
        if updated_at < published_at:
            updated_at = published_at

        categories = get_categories(meta)
        permalink = str(meta.get("permalink") or self.permalink)
        url_path = expand_permalink(permalink, published_at, slug, categories)

        return PostRecord(
            title=title,
            url_path=url_path,
            published_at=published_at,
            updated_at=updated_at,
            categories=tuple(categories),
            content_html=self.convert(body),
            summary_text=self.excerpt(meta, body),
            author_name=get_author(meta, self.site.author_name),
            id=post_id(self.site.base_url, url_path),
        )


def list_post_files(posts_dir: Path) -> list[Path]:
    if not posts_dir.exists():
        return []
    files = [path for path in posts_dir.rglob("*") if path.is_file() and path.suffix.lower() in POST_SUFFIXES]
    return sorted(files, key=lambda p: p.as_posix())


def collect_posts(
    renderer: ContentRenderer,
    posts_dir: Path,
    *,
    drafts: bool = False,
    future: bool = False,
    now: Optional[dt.datetime] = None,
    workers: int = 1,
) -> list[PostRecord]:
    now = now or dt.datetime.now(dt.timezone.utc)
    post_files = list_post_files(posts_dir)
    if not drafts:
        selected = []
        for path in post_files:
            meta, _ = parse_front_matter(read_source(path), str(path))
            if is_published(meta):
                selected.append(path)
        post_files = selected

    workers = max(1, min(int(workers or 1), len(post_files) or 1))
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            posts = list(executor.map(renderer.render, post_files))
    else:
        posts = [renderer.render(path) for path in post_files]

    if not future:
        posts = [post for post in posts if post.published_at is None or post.published_at <= now]
    return posts


def write_text(path: Path, text: str) -> None:
    """Replace ``path`` atomically so readers never see a truncated file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_feed(path: Path, document: FeedDocument) -> None:
    write_text(path, document.text)
