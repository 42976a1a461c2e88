from __future__ import annotations

import argparse
import datetime as dt
import os
import sys
import time
from pathlib import Path
from typing import Optional

from .config import feed_options, load_config, resolve_timezone, site_from_config
from .content import parse_timestamp
from .errors import ConfigError, FeedError
from .feed import build_feed
from .render import MarkdownRenderer, collect_posts, write_feed
from .utils import parse_bool, parse_int


def log(args: argparse.Namespace, message: str) -> None:
    if not getattr(args, "quiet", False):
        print(message)


def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    config = dict(config)
    feed = dict(config.get("feed") or {})
    if args.url:
        config["url"] = args.url
    if args.title:
        config["title"] = args.title
    if args.feed_path:
        feed["path"] = args.feed_path
    feed["posts_limit"] = args.limit
    feed["excerpt_only"] = args.excerpt_only
    config["feed"] = feed
    return config


def build_site(args: argparse.Namespace) -> Path:
    source_dir = Path(args.source)
    posts_dir = Path(args.posts)
    if not posts_dir.is_absolute():
        posts_dir = source_dir / posts_dir
    output_dir = Path(args.output)
    if not output_dir.is_absolute():
        output_dir = source_dir / output_dir

    config = apply_overrides(load_config(Path(args.config)), args)
    tz = resolve_timezone(config)
    build_timestamp: Optional[dt.datetime] = None
    if args.build_timestamp:
        build_timestamp = parse_timestamp(args.build_timestamp, tz)
    site = site_from_config(config, build_timestamp=build_timestamp)
    options = feed_options(config)

    if not posts_dir.is_dir():
        raise ConfigError(f"Posts directory not found: {posts_dir}")

    renderer = MarkdownRenderer(
        site,
        timezone=tz,
        permalink=options["permalink"],
        excerpt_separator=options["excerpt_separator"],
    )
    workers = args.build_workers if args.build_workers > 0 else (os.cpu_count() or 1)
    posts = collect_posts(
        renderer,
        posts_dir,
        drafts=args.drafts,
        future=args.future,
        now=site.build_timestamp,
        workers=min(workers, 32),
    )
    log(args, f"Rendered {len(posts)} posts from {posts_dir}")

    document = build_feed(site, posts, limit=options["limit"], excerpt_only=options["excerpt_only"])
    feed_file = output_dir / site.feed_path
    write_feed(feed_file, document)
    log(args, f"Wrote {document.entry_count} entries to {feed_file}")
    return feed_file


def main(argv: Optional[list[str]] = None) -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        default="_config.yml",
        help="Path to site config file (YAML/TOML/JSON).",
    )
    pre_args, _ = pre_parser.parse_known_args(argv)
    try:
        config = load_config(Path(pre_args.config))
    except FeedError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)
    feed_config = config.get("feed") if isinstance(config.get("feed"), dict) else {}

    def cfg_value(section: dict, key: str, default: object) -> object:
        value = section.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        return str(cfg_value(config, key, default))

    def cfg_bool(section: dict, key: str, default: bool) -> bool:
        return parse_bool(cfg_value(section, key, default))

    parser = argparse.ArgumentParser(description="Build the Atom feed for a Jekyll-style blog.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (YAML/TOML/JSON).")
    parser.add_argument("--source", default=cfg_str("source", "."), help="Site source directory.")
    parser.add_argument("--posts", default=cfg_str("posts", "_posts"), help="Directory containing Markdown posts.")
    parser.add_argument("--output", default=cfg_str("destination", "_site"), help="Output directory for the site.")
    parser.add_argument("--url", default="", help="Public site URL, overriding the config value.")
    parser.add_argument("--title", default="", help="Feed title, overriding the config value.")
    parser.add_argument("--feed-path", default="", help="Feed path relative to the output directory.")
    parser.add_argument(
        "--limit",
        default=parse_int(feed_config.get("posts_limit"), 0),
        type=int,
        help="Maximum number of entries in the feed (0 = all).",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool(config, "show_drafts", False),
        help="Include posts marked as drafts or unpublished.",
    )
    parser.add_argument(
        "--future",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool(config, "future", False),
        help="Include posts dated after the build timestamp.",
    )
    parser.add_argument(
        "--excerpt-only",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool(feed_config, "excerpt_only", False),
        help="Leave out full post content and emit summaries only.",
    )
    parser.add_argument(
        "--build-timestamp",
        default="",
        help="Fixed build time (RFC 3339) for reproducible output.",
    )
    parser.add_argument(
        "--build-workers",
        default=parse_int(config.get("build_workers"), 0),
        type=int,
        help="Number of worker threads for rendering posts (0 = auto).",
    )
    parser.add_argument("--quiet", action="store_true", help="Only report errors.")
    args = parser.parse_args(argv)

    start = time.perf_counter()
    try:
        feed_file = build_site(args)
    except FeedError as exc:
        print(f"Feed build failed: {exc}", file=sys.stderr)
        sys.exit(1)
    elapsed = time.perf_counter() - start
    log(args, f"Build completed in {elapsed:.2f}s.")
    log(args, f"Feed generated in: {feed_file}")


if __name__ == "__main__":
    main()
