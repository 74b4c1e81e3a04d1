"""Site configuration for Quill.

Configuration is read from ``quill.yaml`` in the project root. Known keys
are mapped onto typed dataclasses with defaults; ``theme`` stays a
free-form mapping and any unknown top-level key is kept in ``extra``.

Key classes:
- AuthorConfig: Default author details.
- SiteConfig: Typed site configuration.

Key functions:
- load_config: Load SiteConfig from a project root.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "quill.yaml"
DEFAULT_TIMEZONE = "America/New_York"


@dataclass
class AuthorConfig:
    name: str = ""
    bio: str = ""


@dataclass
class SiteConfig:
    """Typed site configuration.

    Attributes:
        title: Site title.
        description: Site description.
        url: Public base URL.
        author: Default author, used when a document omits one.
        posts_per_page: Default page size for listings.
        excerpt_length: Length of generated excerpts.
        date_format: strftime format for displaying dates.
        timezone: IANA zone used for dates written without an offset.
        content_dir: Content directory, relative to the project root.
        theme: Free-form theme settings.
        extra: Unknown top-level keys, kept verbatim.
    """

    title: str = "Quill"
    description: str = ""
    url: str = ""
    author: AuthorConfig = field(default_factory=AuthorConfig)
    posts_per_page: int = 10
    excerpt_length: int = 150
    date_format: str = "%B %d, %Y"
    timezone: str = DEFAULT_TIMEZONE
    content_dir: str = "content"
    theme: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def tzinfo(self) -> tzinfo:
        """Resolve the configured timezone, falling back to UTC."""
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using UTC", self.timezone)
            return timezone.utc

    @property
    def default_author(self) -> str:
        return self.author.name or "Unknown"

    def to_local(self, value: datetime) -> datetime:
        """Convert an aware datetime to the site timezone.

        Naive values are assumed to already be local and returned as-is.
        """
        if value.tzinfo is None:
            return value
        return value.astimezone(self.tzinfo)

    def format_date(self, value: datetime, fmt: str | None = None) -> str:
        return self.to_local(value).strftime(fmt or self.date_format)

    def theme_value(self, key: str, default: str = "") -> str:
        value = self.theme.get(key)
        return default if value is None else str(value)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SiteConfig:
        """Build a SiteConfig from a raw mapping.

        Args:
            data: Parsed YAML mapping.

        Returns:
            SiteConfig with defaults for missing keys.
        """
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            name = str(key)
            if name not in known:
                extra[name] = value
            elif name == "author":
                kwargs["author"] = _author_from(value)
            elif name == "theme":
                kwargs["theme"] = dict(value) if isinstance(value, dict) else {}
            elif name in ("posts_per_page", "excerpt_length"):
                try:
                    number = int(value)
                except (TypeError, ValueError):
                    number = 0
                if number < 1:
                    logger.warning("Ignoring %s=%r: expected a positive number", name, value)
                else:
                    kwargs[name] = number
            elif value is not None:
                kwargs[name] = str(value)
        return cls(**kwargs, extra=extra)


def _author_from(value: Any) -> AuthorConfig:
    if isinstance(value, dict):
        return AuthorConfig(
            name=str(value.get("name") or ""), bio=str(value.get("bio") or "")
        )
    if value:
        return AuthorConfig(name=str(value))
    return AuthorConfig()


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from quill.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig, with defaults applied when the file or keys are absent.
    """
    config_path = Path(project_root) / CONFIG_FILE_NAME
    if not config_path.exists():
        return SiteConfig()
    with open(config_path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        logger.warning("Ignoring %s: expected a mapping", config_path)
        return SiteConfig()
    return SiteConfig.from_dict(loaded)
