from __future__ import annotations

import datetime as dt
import json
from importlib import metadata
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .errors import ConfigError
from .models import SiteMetadata
from .utils import is_absolute_url, join_url, parse_bool, parse_int

GENERATOR_NAME = "sitefeed"


def generator_version() -> str:
    try:
        return metadata.version(GENERATOR_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _section(config: dict, key: str) -> dict:
    value = config.get(key)
    return value if isinstance(value, dict) else {}


def resolve_timezone(config: dict) -> dt.tzinfo:
    name = str(config.get("timezone") or "").strip()
    if not name:
        return dt.timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone in config: {name!r}") from exc


def resolve_base_url(config: dict) -> str:
    url = str(config.get("url") or "").strip()
    baseurl = str(config.get("baseurl") or "").strip()
    if not url:
        return ""
    return join_url(url, baseurl).rstrip("/")


def resolve_author(value: object) -> str:
    if isinstance(value, dict):
        value = value.get("name")
    return str(value).strip() if value else ""


def site_from_config(config: dict, *, build_timestamp: Optional[dt.datetime] = None) -> SiteMetadata:
    tz = resolve_timezone(config)
    base_url = resolve_base_url(config)
    if base_url and not is_absolute_url(base_url):
        raise ConfigError(f"Config url must be an absolute http(s) URL: {base_url!r}")
    if build_timestamp is None:
        build_timestamp = dt.datetime.now(tz).replace(microsecond=0)
    elif build_timestamp.utcoffset() is None:
        build_timestamp = build_timestamp.replace(tzinfo=tz)

    feed = _section(config, "feed")
    generator = _section(feed, "generator")
    return SiteMetadata(
        title=str(config.get("title") or ""),
        subtitle=str(config.get("description") or config.get("subtitle") or ""),
        base_url=base_url,
        generator_name=str(generator.get("name") or GENERATOR_NAME),
        generator_version=str(generator.get("version") or generator_version()),
        generator_uri=str(generator.get("uri") or ""),
        build_timestamp=build_timestamp,
        feed_path=str(feed.get("path") or "feed.xml").lstrip("/"),
        author_name=resolve_author(config.get("author")),
    )


def feed_options(config: dict) -> dict:
    feed = _section(config, "feed")
    limit = parse_int(feed.get("posts_limit"), 0)
    return {
        "limit": limit if limit > 0 else None,
        "excerpt_only": parse_bool(feed.get("excerpt_only")),
        "permalink": str(config.get("permalink") or "date"),
        "excerpt_separator": str(config.get("excerpt_separator") or "\n\n"),
        "show_drafts": parse_bool(config.get("show_drafts")),
        "future": parse_bool(config.get("future")),
    }
