from __future__ import annotations

import datetime as dt
import html
import re
from urllib.parse import urlsplit

ILLEGAL_XML_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def is_absolute_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


def is_aware(value: object) -> bool:
    return isinstance(value, dt.datetime) and value.utcoffset() is not None


def rfc3339(value: dt.datetime) -> str:
    """Format an aware datetime as RFC 3339, keeping its own UTC offset."""
    if not is_aware(value):
        raise ValueError(f"timestamp has no UTC offset: {value!r}")
    return value.replace(microsecond=0).isoformat()


def clean_xml_text(text: str) -> str:
    return ILLEGAL_XML_RE.sub("", text)


def xml_escape(text: str) -> str:
    return html.escape(clean_xml_text(text))


def cdata(text: str) -> str:
    # "]]>" cannot appear inside a CDATA section, so close and reopen around it.
    text = clean_xml_text(text).replace("]]>", "]]]]><![CDATA[>")
    return f"<![CDATA[{text}]]>"
