from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from .models import Post, PostType


class PostCollection(Sequence[Post]):
    """Lightweight helper for filtering and ordering lists of Posts."""

    def __init__(self, posts: Iterable[Post]):
        self._posts = list(posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        return self._posts[item]

    def of_type(self, post_type: PostType | None) -> PostCollection:
        if post_type is None:
            return self
        return PostCollection(p for p in self._posts if p.type is post_type)

    def drafts(self) -> PostCollection:
        return PostCollection(p for p in self._posts if p.is_draft)

    def published(self) -> PostCollection:
        return PostCollection(p for p in self._posts if p.is_published)

    def with_category(self, category: str) -> PostCollection:
        wanted = category.casefold()
        return PostCollection(
            p for p in self._posts if any(c.casefold() == wanted for c in p.categories)
        )

    def with_tag(self, tag: str) -> PostCollection:
        wanted = tag.casefold()
        return PostCollection(
            p for p in self._posts if any(t.casefold() == wanted for t in p.tags)
        )

    def by_author(self, author: str) -> PostCollection:
        wanted = author.casefold()
        return PostCollection(p for p in self._posts if p.author.casefold() == wanted)

    def matching(self, term: str) -> PostCollection:
        """Posts containing ``term`` (case-insensitive) in any searchable field.

        Searches title, body, description, excerpt, tags and categories. An
        empty or blank term matches nothing.
        """
        needle = term.strip().casefold()
        if not needle:
            return PostCollection([])
        return PostCollection(p for p in self._posts if _contains(p, needle))

    def sorted(self, reverse: bool = True) -> PostCollection:
        """Sort posts by date, then by slug.

        The slug tie-breaker keeps the order total, so paging through equal
        dates never repeats or skips a post.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PostCollection with sorted posts.
        """
        return PostCollection(
            sorted(self._posts, key=lambda p: (p.date, p.slug), reverse=reverse)
        )

    def page(self, number: int, size: int) -> PostCollection:
        """Return one 1-based page. Pages past the end are empty."""
        if size < 1:
            raise ValueError(f"page size must be at least 1, got {size}")
        number = max(number, 1)
        start = (number - 1) * size
        return PostCollection(self._posts[start : start + size])

    def paginate(self, number: int, size: int) -> Pagination:
        items = self.page(number, size)
        total = len(self._posts)
        return Pagination(
            items=list(items),
            current_page=max(number, 1),
            total_pages=math.ceil(total / size),
            total_items=total,
            page_size=size,
        )

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"


def _contains(post: Post, needle: str) -> bool:
    fields = [post.title, post.content, post.description or "", post.excerpt or ""]
    fields.extend(post.tags)
    fields.extend(post.categories)
    return any(needle in value.casefold() for value in fields)


@dataclass(frozen=True)
class Pagination:
    """One page of a listing plus the numbers a pager needs."""

    items: list[Post]
    current_page: int
    total_pages: int
    total_items: int
    page_size: int

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def show_pagination(self) -> bool:
        return self.total_items > self.page_size

    @property
    def previous_page(self) -> int:
        return self.current_page - 1 if self.has_previous_page else 1

    @property
    def next_page(self) -> int:
        return self.current_page + 1 if self.has_next_page else self.total_pages
