"""Front matter parsing for Quill.

This module turns raw document text into Post values and back. The header
between ``---`` markers is read with PyYAML, then a composite of small
extractors validates and normalizes it, one concern per extractor.

Key classes:
- ParseError: A document problem (missing header, bad YAML, missing field).
- ParseResult: Either a Post or a human-readable error string.
- RequiredTextExtractor, DateExtractor, AuthorExtractor, ClassificationExtractor,
  TaxonomyExtractor, OptionalTextExtractor: Per-field extractors.
- CompositeMetadataExtractor: Runs the extractors in order and merges results.

Key functions:
- split_frontmatter: Split a document into header text and body.
- parse_document: Parse a document into a ParseResult without raising.
- serialize_post: Render a Post back into front matter text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import yaml

from .config import SiteConfig
from .models import Post, PostStatus, PostType
from .protocols import MetadataExtractor
from .utils import coerce_datetime, to_utc

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\n(.*?)^---[ \t]*(?:\n|\Z)", re.DOTALL | re.MULTILINE
)

# Scalars that stay text in a header: "No", "on" and "1.10" are titles and
# tags, not booleans and numbers.
_TEXT_TAGS = {
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
}


class _FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that resolves nulls and timestamps but keeps other scalars as text."""


_FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _TEXT_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Order of keys when writing a header.
WIRE_ORDER = (
    "title",
    "author",
    "type",
    "date",
    "slug",
    "status",
    "categories",
    "tags",
    "image",
    "link",
    "description",
    "excerpt",
)


class ParseError(Exception):
    """A document could not be turned into a Post.

    Attributes:
        message: Human-readable description of the problem.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one document.

    Exactly one of ``post`` and ``error`` is set.
    """

    post: Post | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.post is not None


def split_frontmatter(text: str) -> tuple[str, str]:
    """Split a document into its front matter header and body.

    Args:
        text: Raw document text.

    Returns:
        Tuple of (header text, body text).

    Raises:
        ParseError: If the document does not start with a front matter block.
    """
    normalized = text.replace("\r\n", "\n").lstrip("\ufeff")
    match = FRONTMATTER_RE.match(normalized)
    if not match:
        raise ParseError("no front matter")
    return match.group(1), normalized[match.end() :]


def load_metadata(header: str) -> dict[str, Any]:
    """Deserialize a YAML header into a mapping with lower-cased keys.

    Raises:
        ParseError: If the YAML is malformed or not a mapping.
    """
    try:
        data = yaml.load(header, Loader=_FrontMatterLoader)
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid front matter: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError("invalid front matter: expected a mapping of keys")
    return {str(key).strip().lower(): value for key, value in data.items()}


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


class RequiredTextExtractor:
    """Reads a required, non-empty text field."""

    def __init__(self, key: str):
        self.key = key

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        value = metadata.get(self.key)
        if _is_blank(value):
            raise ParseError(f"Missing required field: {self.key}")
        return {self.key: str(value).strip()}


class DateExtractor:
    """Reads the required publication date and normalizes it to UTC.

    A document that never set a date fails; there is no clock default, so a
    missing date can never pass for "published today". Dates without an
    offset are read in the site timezone.
    """

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        value = metadata.get("date")
        if _is_blank(value):
            raise ParseError("Missing required field: date")
        try:
            parsed = coerce_datetime(value)
        except ValueError:
            raise ParseError(f"Invalid date: {value}") from None
        return {"date": to_utc(parsed, config.tzinfo)}


class AuthorExtractor:
    """Reads the author, defaulting to the site's configured author."""

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        value = metadata.get("author")
        if _is_blank(value):
            return {"author": config.default_author}
        return {"author": str(value).strip()}


class ClassificationExtractor:
    """Reads type and status. Unrecognized text falls back to Post/Draft."""

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        return {
            "type": PostType.parse(metadata.get("type")),
            "status": PostStatus.parse(metadata.get("status")),
        }


class TaxonomyExtractor:
    """Reads categories and tags as ordered lists of strings."""

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        return {
            "categories": _string_list(metadata.get("categories")),
            "tags": _string_list(metadata.get("tags")),
        }


class OptionalTextExtractor:
    """Reads optional text fields, mapping blanks to None."""

    def __init__(self, keys: tuple[str, ...] = ("image", "link", "description", "excerpt")):
        self.keys = keys

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        return {
            key: None if _is_blank(metadata.get(key)) else str(metadata[key]).strip()
            for key in self.keys
        }


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    return [str(item).strip() for item in items if not _is_blank(item)]


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Extractors run in order and their results are merged. The first one to
    raise ParseError stops extraction, so each document reports exactly one
    problem, and required fields are checked title, slug, then date.
    """

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        """Initialize with a list of extractors.

        Args:
            extractors: List of MetadataExtractor implementations.
                       If None, uses default extractors.
        """
        if extractors is None:
            self._extractors = [
                RequiredTextExtractor("title"),
                RequiredTextExtractor("slug"),
                DateExtractor(),
                AuthorExtractor(),
                ClassificationExtractor(),
                TaxonomyExtractor(),
                OptionalTextExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        self._extractors.append(extractor)

    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(metadata, config))
        return result


# Default composite extractor instance
default_metadata_extractor = CompositeMetadataExtractor()


def parse_document(
    text: str,
    file_name: str,
    config: SiteConfig | None = None,
    last_modified: datetime | None = None,
    extractor: CompositeMetadataExtractor | None = None,
) -> ParseResult:
    """Parse a document into a Post.

    Document problems never raise; they come back as ``ParseResult.error``.

    Args:
        text: Raw document text.
        file_name: Storage path of the document.
        config: Site configuration (defaults to SiteConfig()).
        last_modified: Modification time to stamp on the Post.
        extractor: Optional custom composite extractor.

    Returns:
        ParseResult holding the Post or an error message.
    """
    config = config or SiteConfig()
    extractor = extractor or default_metadata_extractor
    try:
        header, body = split_frontmatter(text)
        fields = extractor.extract(load_metadata(header), config)
    except ParseError as exc:
        return ParseResult(error=exc.message)
    post = Post(
        **fields,
        content=body.strip(),
        file_name=file_name,
        last_modified=last_modified or datetime.now(timezone.utc),
    )
    return ParseResult(post=post)


def serialize_post(post: Post) -> str:
    """Render a Post as front matter plus Markdown body.

    Optional fields are omitted when empty; the date is written as an
    ISO-8601 UTC timestamp.

    Args:
        post: Post to serialize.

    Returns:
        Document text in the wire format.
    """
    values: dict[str, Any] = {
        "title": post.title,
        "author": post.author,
        "type": post.type.value,
        "date": post.date.astimezone(timezone.utc).isoformat()
        if post.date.tzinfo
        else post.date.isoformat(),
        "slug": post.slug,
        "status": post.status.value,
        "categories": list(post.categories),
        "tags": list(post.tags),
        "image": post.image,
        "link": post.link,
        "description": post.description,
        "excerpt": post.excerpt,
    }
    header = {key: values[key] for key in WIRE_ORDER if values[key] not in (None, "")}
    dumped = yaml.safe_dump(
        header, allow_unicode=True, sort_keys=False, default_flow_style=False, width=1000
    )
    return f"---\n{dumped}---\n\n{post.content}\n"
