"""Value types for Quill content.

Key classes:
- PostType: Distinguishes dated posts from standalone pages.
- PostStatus: Visibility status gating public listing and search.
- Post: Frozen dataclass holding a parsed document (metadata plus body).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PostType(str, Enum):
    POST = "Post"
    PAGE = "Page"

    @classmethod
    def parse(cls, value: object) -> PostType:
        """Parse a type name case-insensitively, defaulting to POST."""
        return _parse_enum(cls, value, cls.POST)


class PostStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"

    @classmethod
    def parse(cls, value: object) -> PostStatus:
        """Parse a status name case-insensitively, defaulting to DRAFT."""
        return _parse_enum(cls, value, cls.DRAFT)


def _parse_enum(enum_cls, value, default):
    if value is None:
        return default
    text = str(value).strip().lower()
    for member in enum_cls:
        if member.value.lower() == text:
            return member
    return default


@dataclass(frozen=True)
class Post:
    """A parsed post or page.

    Posts are immutable once cached; edits go through ``dataclasses.replace``
    and ``ContentStore.save`` so readers never see a half-updated value.

    Attributes:
        title: Human-readable title.
        slug: URL-safe unique identifier.
        date: Publication date, always timezone-aware UTC.
        content: Markdown body text.
        author: Author name (site default when the document omits it).
        type: Post or Page.
        status: Draft or Published.
        categories: Ordered list of category names.
        tags: Ordered list of tag names.
        image: Optional header image URL or path.
        link: Optional external link.
        description: Optional short description.
        excerpt: Optional hand-written excerpt.
        file_name: Storage path of the backing document.
        last_modified: Last modification time of the backing document.
    """

    title: str
    slug: str
    date: datetime
    content: str = ""
    author: str = ""
    type: PostType = PostType.POST
    status: PostStatus = PostStatus.DRAFT
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    image: str | None = None
    link: str | None = None
    description: str | None = None
    excerpt: str | None = None
    file_name: str = ""
    last_modified: datetime | None = field(default=None, compare=False)

    @property
    def is_published(self) -> bool:
        return self.status is PostStatus.PUBLISHED

    @property
    def is_draft(self) -> bool:
        return self.status is PostStatus.DRAFT

    def html(self) -> str:
        """Render the Markdown body to HTML."""
        from .renderers import render_markdown

        return render_markdown(self.content)

    def auto_excerpt(self, length: int = 150) -> str:
        """Return the excerpt, or a plain-text prefix of the rendered body."""
        from .renderers import auto_excerpt

        return auto_excerpt(self, length)
