"""Protocol definitions for Quill.

This module defines the interfaces the content store depends on, so the
store can run against the local file system, a remote blob store, or a test
double without changing.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .config import SiteConfig


@runtime_checkable
class ContentStorage(Protocol):
    """Protocol for the physical storage backend holding documents.

    Paths are relative to the backend's content root and use ``/``
    separators.
    """

    @abstractmethod
    def read_file(self, path: str) -> str:
        """Read a document.

        Args:
            path: Relative document path.

        Returns:
            The document text.

        Raises:
            DocumentNotFoundError: If the document does not exist.
            StorageError: If the backend is unavailable.
        """
        ...

    @abstractmethod
    def write_file(self, path: str, text: str) -> None:
        """Create or overwrite a document."""
        ...

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Delete a document. Missing documents are ignored."""
        ...

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Check whether a document exists."""
        ...

    @abstractmethod
    def list_files(self, root: str = "", pattern: str = "*") -> set[str]:
        """List documents under ``root`` matching ``pattern``, recursively.

        Args:
            root: Relative directory to list ("" for the content root).
            pattern: Glob applied to file names (``*``, ``*.md``, ``x-*``).

        Returns:
            Set of paths relative to the content root.
        """
        ...

    @abstractmethod
    def last_modified(self, path: str) -> datetime:
        """Return the document's last modification time in UTC."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for reading one concern out of a front matter mapping.

    Implementations return the normalized fields they own, or raise
    ``ParseError`` when a required field is missing or unreadable.
    """

    @abstractmethod
    def extract(self, metadata: dict[str, Any], config: SiteConfig) -> dict[str, Any]:
        """Extract normalized fields from a front matter mapping.

        Args:
            metadata: Front matter with lower-cased keys.
            config: Site configuration (timezone, default author).

        Returns:
            Dictionary of Post field values.
        """
        ...
