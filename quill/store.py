"""In-memory content store for Quill.

The store holds every successfully parsed document in a slug-keyed map and
answers read queries from it. Writes go through the storage backend first
and are then re-parsed from storage, so the cache only ever holds what a
fresh load would produce.

Key classes:
- ContentStore: The store. Create one per content root and share it.
- LoadResult: Summary of a bulk load.
- ConsistencyError: A saved document could not be read back.
- SlugConflictError: A save would take a slug owned by another document.
- DocumentExistsError: A new post's file is already taken by another document.

Locking:
- ``_lock`` guards the slug map, the file index, the error map and the
  paths waiting on a duplicate slug. It is
  held only for in-memory reads and mutations, never across I/O.
- ``_write_lock`` serializes mutating operations end to end (save, delete,
  reload and single-file refresh/evict), so two writers never interleave
  and a save and a delete of the same slug apply in a single order.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace

from .collections import Pagination, PostCollection
from .config import SiteConfig
from .extractors import ParseResult, parse_document, serialize_post
from .models import Post, PostType
from .protocols import ContentStorage
from .storage import DocumentNotFoundError, StorageError
from .utils import casefold_unique, normalize_path, slugify

logger = logging.getLogger(__name__)

DOCUMENT_PATTERN = "*.md"
MEDIA_ROOT = "media"
MEDIA_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".mp4", ".webm")


class ConsistencyError(Exception):
    """A document was written but could not be read back as the same post.

    The write has already happened; the cache is left unchanged so the
    operator can inspect the file and reload.

    Attributes:
        file_name: Path of the written document.
        message: Human-readable description of the problem.
    """

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"{file_name}: {message}")


class SlugConflictError(Exception):
    """A save would reuse a slug already owned by a different document.

    Attributes:
        slug: The contested slug.
        file_name: The document that currently owns it.
    """

    def __init__(self, slug: str, file_name: str):
        self.slug = slug
        self.file_name = file_name
        super().__init__(f"slug '{slug}' is already used by {file_name}")


class DocumentExistsError(Exception):
    """A new post would be written over a file that already holds a document.

    Attributes:
        file_name: The occupied path.
    """

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"{file_name} already exists")


@dataclass(frozen=True)
class LoadResult:
    loaded: int
    errors: dict[str, str] = field(default_factory=dict)


def _key(slug: str) -> str:
    return slug.strip().casefold()


class ContentStore:
    """Slug-keyed cache of parsed documents over a storage backend.

    Attributes:
        storage: Backend holding the documents.
        config: Site configuration used for parsing and page sizes.
        pattern: Glob selecting document files.
    """

    def __init__(
        self,
        storage: ContentStorage,
        config: SiteConfig | None = None,
        pattern: str = DOCUMENT_PATTERN,
    ):
        self.storage = storage
        self.config = config or SiteConfig()
        self.pattern = pattern
        self._lock = threading.Lock()
        self._write_lock = threading.RLock()
        self._posts: dict[str, Post] = {}
        self._files: dict[str, str] = {}
        self._errors: dict[str, str] = {}
        # Paths held back as duplicates, mapped to the slug key they want.
        self._waiting: dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._posts)

    # Loading

    def load(self) -> LoadResult:
        """Parse every document and replace the cache in one swap.

        Each document is parsed independently; a failure is recorded under
        its path and does not stop the others. A document whose slug is
        already taken by an earlier path (in sorted order) is recorded as a
        duplicate.

        Returns:
            LoadResult with the number of cached posts and the error map.

        Raises:
            StorageError: If the document set cannot be listed. The previous
                cache is kept.
        """
        with self._write_lock:
            paths = sorted(self.storage.list_files("", self.pattern))
            posts: dict[str, Post] = {}
            files: dict[str, str] = {}
            errors: dict[str, str] = {}
            waiting: dict[str, str] = {}
            for path in paths:
                try:
                    result = self._read_document(path)
                except StorageError as exc:
                    errors[path] = str(exc)
                    logger.warning("Error loading %s: %s", path, exc)
                    continue
                if not result.ok:
                    errors[path] = result.error
                    logger.warning("Error parsing %s: %s", path, result.error)
                    continue
                post = result.post
                key = _key(post.slug)
                if key in posts:
                    errors[path] = _duplicate_message(post.slug, posts[key].file_name)
                    waiting[path] = key
                    logger.warning("Error parsing %s: %s", path, errors[path])
                    continue
                posts[key] = post
                files[path] = key
            with self._lock:
                self._posts = posts
                self._files = files
                self._errors = errors
                self._waiting = waiting
        logger.info("Loaded %d posts (%d errors)", len(posts), len(errors))
        return LoadResult(loaded=len(posts), errors=dict(errors))

    def reload(self) -> LoadResult:
        """Re-run the bulk load. Safe while readers are active."""
        logger.info("Reloading all posts from storage")
        return self.load()

    def _read_document(self, path: str) -> ParseResult:
        text = self.storage.read_file(path)
        try:
            modified = self.storage.last_modified(path)
        except StorageError:
            modified = None
        return parse_document(text, path, self.config, last_modified=modified)

    # Queries

    def _snapshot(self) -> PostCollection:
        with self._lock:
            return PostCollection(self._posts.values())

    def _listing(self, post_type: PostType | None, include_drafts: bool) -> PostCollection:
        posts = self._snapshot().of_type(post_type)
        if not include_drafts:
            posts = posts.published()
        return posts.sorted()

    def get_by_slug(self, slug: str, include_drafts: bool = False) -> Post | None:
        """Look up a post by slug (case-insensitive).

        Args:
            slug: Slug to find.
            include_drafts: Whether a Draft post may be returned.

        Returns:
            The post, or None when absent or hidden as a draft.
        """
        with self._lock:
            post = self._posts.get(_key(slug))
        if post is None or (post.is_draft and not include_drafts):
            return None
        return post

    def get_by_file_name(self, file_name: str) -> Post | None:
        with self._lock:
            key = self._files.get(normalize_path(file_name))
            return self._posts.get(key) if key is not None else None

    def all_posts(self) -> list[Post]:
        """Every cached post and page, drafts included, newest first."""
        return list(self._snapshot().sorted())

    def list_published(
        self,
        post_type: PostType | None = PostType.POST,
        include_drafts: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[Post]:
        """List one page of posts, newest first.

        Args:
            post_type: Type to list, or None for every type.
            include_drafts: Whether Draft posts are listed.
            page: 1-based page number. Pages past the end are empty.
            page_size: Items per page (defaults to ``config.posts_per_page``).

        Returns:
            The posts on the requested page.
        """
        size = self.config.posts_per_page if page_size is None else page_size
        return list(self._listing(post_type, include_drafts).page(page, size))

    def paginate(
        self,
        post_type: PostType | None = PostType.POST,
        include_drafts: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> Pagination:
        """Like list_published, with the totals a pager needs."""
        size = self.config.posts_per_page if page_size is None else page_size
        return self._listing(post_type, include_drafts).paginate(page, size)

    def count_published(
        self, post_type: PostType | None = PostType.POST, include_drafts: bool = False
    ) -> int:
        return len(self._listing(post_type, include_drafts))

    def filter_by_category(self, category: str) -> list[Post]:
        return list(self._snapshot().published().with_category(category).sorted())

    def filter_by_tag(self, tag: str) -> list[Post]:
        return list(self._snapshot().published().with_tag(tag).sorted())

    def filter_by_author(self, author: str) -> list[Post]:
        return list(self._snapshot().published().by_author(author).sorted())

    def search(self, term: str) -> list[Post]:
        """Published posts containing ``term`` in any searchable field.

        A blank term returns an empty list, never the whole collection.
        """
        return list(self._snapshot().published().matching(term).sorted())

    def categories(self) -> list[str]:
        published = self._snapshot().published()
        return casefold_unique(c for p in published for c in p.categories)

    def tags(self) -> list[str]:
        published = self._snapshot().published()
        return casefold_unique(t for p in published for t in p.tags)

    def authors(self) -> list[str]:
        return casefold_unique(p.author for p in self._snapshot().published())

    def parse_errors(self) -> dict[str, str]:
        with self._lock:
            return dict(self._errors)

    def media_files(self) -> list[str]:
        """Image and video files under the media directory."""
        try:
            files = self.storage.list_files(MEDIA_ROOT, "*")
        except StorageError:
            logger.exception("Error listing media files")
            return []
        return sorted(f for f in files if f.lower().endswith(MEDIA_EXTENSIONS))

    # Writes

    def save(self, post: Post) -> Post:
        """Persist a post and update the cache from what was written.

        The slug is the post's own, or derived from its title when empty. An
        existing ``file_name`` is reused so edits never leave an orphan file
        behind; new posts are written to ``<slug>.md``, which must not hold
        another document already.

        Args:
            post: Post to save.

        Returns:
            The post as re-parsed from storage.

        Raises:
            ValueError: If no slug can be derived.
            SlugConflictError: If another document already owns the slug.
            DocumentExistsError: If a new post's file is already taken.
            StorageError: If the write fails.
            ConsistencyError: If the written document does not parse back to
                the same slug. The file has been written; the cache is not
                changed.
        """
        with self._write_lock:
            slug = post.slug.strip() or slugify(post.title)
            if not slug:
                raise ValueError("cannot derive a slug from an empty title")
            file_name = normalize_path(post.file_name) if post.file_name else f"{slug}.md"
            with self._lock:
                owner = self._posts.get(_key(slug))
                indexed = self._files.get(file_name)
            if owner is not None and owner.file_name != file_name:
                raise SlugConflictError(slug, owner.file_name)
            if owner is None and not post.file_name:
                if indexed is not None or self.storage.file_exists(file_name):
                    raise DocumentExistsError(file_name)

            text = serialize_post(replace(post, slug=slug, file_name=file_name))
            self.storage.write_file(file_name, text)

            try:
                result = self._read_document(file_name)
            except StorageError as exc:
                raise ConsistencyError(file_name, f"saved document could not be read: {exc}") from exc
            if not result.ok:
                raise ConsistencyError(file_name, result.error)
            saved = result.post
            if _key(saved.slug) != _key(slug):
                raise ConsistencyError(
                    file_name, f"saved slug '{saved.slug}' does not match '{slug}'"
                )
            self._release(self._upsert(saved))
        logger.info("Saved post %r to %s", saved.title, file_name)
        return saved

    def delete(self, slug: str) -> bool:
        """Delete a post's document, then evict it.

        Returns:
            True if a post was deleted, False if the slug is unknown.

        Raises:
            StorageError: If the document cannot be deleted. The cache is not
                changed.
        """
        with self._write_lock:
            with self._lock:
                post = self._posts.get(_key(slug))
            if post is None:
                return False
            self.storage.delete_file(post.file_name)
            self._evict(post.file_name)
            self._release(_key(post.slug))
        logger.info("Deleted post %s (%s)", post.slug, post.file_name)
        return True

    def refresh_file(self, path: str) -> ParseResult | None:
        """Re-parse one document and upsert it.

        Read failures (a file mid-write or already gone) are logged and
        skipped; the next change event retries. A parse failure records the
        error and evicts the document's stale entry.

        Args:
            path: Relative document path.

        Returns:
            The ParseResult, or None when the document could not be read.
        """
        path = normalize_path(path)
        with self._write_lock:
            try:
                result = self._read_document(path)
            except StorageError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                return None
            if not result.ok:
                self._record_error(path, result.error)
                return result
            post = result.post
            key = _key(post.slug)
            with self._lock:
                owner = self._posts.get(key)
            if owner is not None and owner.file_name != path:
                message = _duplicate_message(post.slug, owner.file_name)
                self._record_error(path, message)
                with self._lock:
                    self._waiting[path] = key
                return ParseResult(error=message)
            self._release(self._upsert(post))
        logger.info("Refreshed %s (%s)", path, post.slug)
        return result

    def evict_file(self, path: str) -> Post | None:
        """Drop the entry and any recorded error for a removed document.

        A document held back as a duplicate of the evicted slug takes it
        over, as it would on a fresh load.
        """
        path = normalize_path(path)
        with self._write_lock:
            removed = self._evict(path)
            with self._lock:
                self._errors.pop(path, None)
                self._waiting.pop(path, None)
            if removed is not None:
                self._release(_key(removed.slug))
        if removed is not None:
            logger.info("Evicted %s (%s)", path, removed.slug)
        return removed

    def get_raw_file(self, path: str) -> str | None:
        """Raw text of a document, or None if it does not exist."""
        try:
            return self.storage.read_file(normalize_path(path))
        except DocumentNotFoundError:
            return None

    def save_raw_file(self, path: str, text: str) -> ParseResult:
        """Write raw document text, then refresh it into the cache.

        Unlike save, a document that fails to parse is recorded as a parse
        error rather than raised; the caller gets the ParseResult.

        Raises:
            StorageError: If the write fails.
            ConsistencyError: If the written document cannot be read back.
        """
        path = normalize_path(path)
        with self._write_lock:
            self.storage.write_file(path, text)
            result = self.refresh_file(path)
        if result is None:
            raise ConsistencyError(path, "saved document could not be read")
        return result


    def _upsert(self, post: Post) -> str | None:
        """Cache a post; return the slug key it retired, if it was renamed."""
        key = _key(post.slug)
        retired = None
        with self._lock:
            previous = self._files.get(post.file_name)
            if previous is not None and previous != key:
                stale = self._posts.get(previous)
                if stale is not None and stale.file_name == post.file_name:
                    del self._posts[previous]
                    retired = previous
            self._posts[key] = post
            self._files[post.file_name] = key
            self._errors.pop(post.file_name, None)
            self._waiting.pop(post.file_name, None)
        return retired

    def _evict(self, path: str) -> Post | None:
        with self._lock:
            key = self._files.pop(path, None)
            if key is None:
                return None
            post = self._posts.get(key)
            if post is not None and post.file_name == path:
                del self._posts[key]
                return post
            return None

    def _release(self, key: str | None) -> None:
        """Give a freed slug to the first document waiting on it, by path."""
        if key is None:
            return
        with self._lock:
            candidates = sorted(p for p, k in self._waiting.items() if k == key)
        for path in candidates:
            with self._lock:
                if key in self._posts:
                    return
            logger.info("Retrying %s for released slug %s", path, key)
            self.refresh_file(path)

    def _record_error(self, path: str, message: str) -> None:
        removed = self._evict(path)
        with self._lock:
            self._errors[path] = message
            self._waiting.pop(path, None)
        logger.warning("Error parsing %s: %s", path, message)
        if removed is not None:
            self._release(_key(removed.slug))


def _duplicate_message(slug: str, owner: str) -> str:
    return f"Duplicate slug '{slug}' already used by {owner}"
