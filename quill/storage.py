"""Storage backends for Quill.

Key classes:
- StorageError: Raised when the backend cannot complete an operation.
- DocumentNotFoundError: Raised when reading a document that does not exist.
- LocalFileStorage: ContentStorage implementation backed by a local directory.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from .utils import matches_pattern, normalize_path

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Error raised by a storage backend.

    Attributes:
        path: Relative path the operation was acting on.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class DocumentNotFoundError(StorageError):
    """Raised when a document does not exist."""

    def __init__(self, path: str):
        super().__init__(path, "document not found")


class LocalFileStorage:
    """Stores documents as files under a root directory.

    Attributes:
        root: Absolute content root. Created on construction if missing.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        if not self.root.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            logger.info("Created content directory at %s", self.root)

    def _resolve(self, path: str) -> Path:
        """Map a relative path to an absolute one inside the root.

        Raises:
            StorageError: If the path escapes the content root.
        """
        rel = normalize_path(path)
        target = (self.root / rel).resolve()
        try:
            target.relative_to(self.root)
        except ValueError:
            raise StorageError(rel, "path escapes the content root") from None
        return target

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise DocumentNotFoundError(normalize_path(path))
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise DocumentNotFoundError(normalize_path(path)) from None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(normalize_path(path), f"read failed: {exc}") from exc

    def write_file(self, path: str, text: str) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise StorageError(normalize_path(path), f"write failed: {exc}") from exc
        logger.debug("Wrote %s", path)

    def delete_file(self, path: str) -> None:
        target = self._resolve(path)
        if not target.exists():
            logger.warning("Cannot delete %s: not found", path)
            return
        try:
            target.unlink()
        except OSError as exc:
            raise StorageError(normalize_path(path), f"delete failed: {exc}") from exc
        logger.debug("Deleted %s", path)

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def list_files(self, root: str = "", pattern: str = "*") -> set[str]:
        base = self._resolve(root) if root else self.root
        if not base.is_dir():
            logger.warning("Directory not found for listing: %s", base)
            return set()
        files: set[str] = set()
        try:
            for path in base.rglob("*"):
                if not path.is_file():
                    continue
                rel = path.relative_to(self.root).as_posix()
                if matches_pattern(rel, pattern):
                    files.add(rel)
        except OSError as exc:
            raise StorageError(root, f"listing failed: {exc}") from exc
        return files

    def last_modified(self, path: str) -> datetime:
        target = self._resolve(path)
        try:
            mtime = target.stat().st_mtime
        except FileNotFoundError:
            raise DocumentNotFoundError(normalize_path(path)) from None
        except OSError as exc:
            raise StorageError(normalize_path(path), f"stat failed: {exc}") from exc
        return datetime.fromtimestamp(mtime, tz=timezone.utc)
