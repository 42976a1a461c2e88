from __future__ import annotations


class FeedError(Exception):
    """Base class for every error raised while building a feed."""


class InvalidPost(FeedError):
    pass


class InvalidSite(FeedError):
    pass


class ConfigError(FeedError):
    pass


class RenderError(FeedError):
    pass
