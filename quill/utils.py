"""Utility functions for Quill.

This module contains small helpers shared by the parser, the store and the
change notifier: the slug policy, date normalization and path matching.

Key functions:
    slugify: Derive a URL slug from a post title.
    coerce_datetime: Turn a front matter date value into a datetime.
    to_utc: Normalize a datetime to UTC, localizing naive values.
    normalize_path: Normalize a storage path to a relative posix string.
    matches_pattern: Check a path against a simple glob pattern.
    casefold_unique: De-duplicate strings case-insensitively.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from datetime import date, datetime, timezone, tzinfo
from pathlib import PurePosixPath

_SLUG_STRIP_CHARS = ("'", '"', "?", "!", ".", ",", ";", ":")


def slugify(title: str) -> str:
    """Convert a title to a slug.

    Lowercases, turns spaces and slashes into hyphens, drops common
    punctuation and spells out ampersands. The result is deterministic and
    is not checked against existing slugs.

    Args:
        title: Post title.

    Returns:
        URL-friendly slug.

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'

        >>> slugify("Tom & Jerry: A/B Test")
        'tom-and-jerry-a-b-test'
    """
    slug = title.strip().lower().replace(" ", "-")
    for char in _SLUG_STRIP_CHARS:
        slug = slug.replace(char, "")
    slug = slug.replace("/", "-").replace("\\", "-")
    return slug.replace("&", "and")


def normalize_path(path: str) -> str:
    """Normalize a storage path to a relative, ``/``-separated string."""
    return str(path).replace("\\", "/").lstrip("/")


def matches_pattern(path: str, pattern: str) -> bool:
    """Check whether a path's file name matches a simple glob pattern.

    Supports ``*`` (everything), ``*.ext`` and prefix/suffix forms such as
    ``draft-*`` or ``*-notes.md``. Matching is case-insensitive.

    Args:
        path: Relative document path.
        pattern: Glob pattern applied to the file name.

    Returns:
        True if the file name matches.
    """
    if pattern in ("", "*"):
        return True
    name = PurePosixPath(normalize_path(path)).name
    return fnmatch.fnmatch(name.lower(), pattern.lower())


def coerce_datetime(value: object) -> datetime:
    """Turn a front matter date value into a datetime.

    Accepts datetimes, dates (midnight) and ISO-8601 strings. A trailing
    ``Z`` is read as UTC.

    Args:
        value: Raw value from the YAML header.

    Returns:
        A datetime, naive when the source carried no offset.

    Raises:
        ValueError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise ValueError(f"unsupported date value: {value!r}")


def to_utc(value: datetime, local_tz: tzinfo) -> datetime:
    """Normalize a datetime to UTC.

    Naive values are interpreted in ``local_tz``; aware values keep their
    offset and are converted.

    Examples:
        >>> from zoneinfo import ZoneInfo
        >>> to_utc(datetime(2024, 1, 1), ZoneInfo("America/New_York"))
        datetime.datetime(2024, 1, 1, 5, 0, tzinfo=datetime.timezone.utc)
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        value = value.replace(tzinfo=local_tz)
    return value.astimezone(timezone.utc)


def casefold_unique(values: Iterable[str]) -> list[str]:
    """De-duplicate strings case-insensitively, sorted case-insensitively.

    The first spelling seen for each value wins.
    """
    seen: dict[str, str] = {}
    for value in values:
        key = value.casefold()
        if key not in seen:
            seen[key] = value
    return sorted(seen.values(), key=str.casefold)
