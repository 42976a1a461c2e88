from __future__ import annotations

import datetime as dt
import re
from pathlib import Path

import yaml

from .errors import RenderError
from .utils import parse_bool

POST_NAME_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})-(?P<slug>.+)$")
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_front_matter(text: str, source: str = "<string>") -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            end = i
            break
    if end is None:
        return {}, clean_text

    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        raise RenderError(f"Invalid front matter in {source}: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise RenderError(f"Front matter must be a mapping: {source}")
    meta = {str(key).strip().lower(): value for key, value in meta.items()}
    body = "\n".join(lines[end + 1 :])
    return meta, body


def parse_post_filename(name: str) -> tuple[dt.date, str]:
    """Split a ``YYYY-MM-DD-slug.md`` file name into its date and slug."""
    stem = Path(name).stem
    match = POST_NAME_RE.match(stem)
    if not match:
        raise RenderError(f"Post file name must look like YYYY-MM-DD-title.md: {name}")
    try:
        date = dt.date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError as exc:
        raise RenderError(f"Invalid date in post file name {name}: {exc}") from exc
    return date, match["slug"]


def parse_timestamp(value: object, tz: dt.tzinfo) -> dt.datetime:
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime.combine(value, dt.time())
    elif isinstance(value, str):
        parsed = _parse_timestamp_text(value.strip())
    else:
        raise RenderError(f"Unsupported date value: {value!r}")
    if parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _parse_timestamp_text(text: str) -> dt.datetime:
    for fmt in TIMESTAMP_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt)
        except ValueError:
            continue
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return dt.datetime.fromisoformat(iso_text)
    except ValueError as exc:
        raise RenderError(f"Unrecognised date: {text!r}") from exc


def _as_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item for item in str(value).split() if item]


def get_categories(meta: dict) -> list[str]:
    # Jekyll prefers the singular key when both are present.
    if meta.get("category"):
        return [str(meta["category"]).strip()]
    return _as_list(meta.get("categories"))


def get_author(meta: dict, default: str = "") -> str:
    author = meta.get("author")
    if isinstance(author, dict):
        author = author.get("name")
    if isinstance(author, (list, tuple)):
        author = ", ".join(str(item) for item in author)
    return str(author).strip() if author else default


def is_published(meta: dict) -> bool:
    if "published" in meta and not parse_bool(meta.get("published")):
        return False
    return not parse_bool(meta.get("draft"))


def extract_title(meta: dict, body: str, slug: str = "") -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    if slug:
        return slug.replace("-", " ").strip().capitalize() or "Untitled", body
    return "Untitled", body


def normalize_list_spacing(text: str) -> str:
    """Insert the blank line Python-Markdown needs before a top-level list."""
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)
    return "\n".join(out)
