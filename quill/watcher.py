"""Change notifier for Quill.

Watches a local content directory and keeps a ContentStore in sync one
document at a time, without full reloads.

Watchdog delivers events on its own observer thread. The handler here only
turns them into ChangeEvent messages on a bounded queue; a single applier
thread consumes the queue and is the only place file events touch the
store, so mutations are applied in arrival order.

Key classes:
- ChangeEvent: One file-system change, relative to the content root.
- ChangeNotifier: Owns the observer, the queue and the applier thread.
- _ChangeHandler: watchdog event handler that posts ChangeEvents.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .store import ContentStore
from .utils import matches_pattern

logger = logging.getLogger(__name__)

CREATED = "created"
MODIFIED = "modified"
DELETED = "deleted"
MOVED = "moved"
_KINDS = (CREATED, MODIFIED, DELETED, MOVED)


@dataclass(frozen=True)
class ChangeEvent:
    """A change to one document.

    Attributes:
        kind: created, modified, deleted or moved.
        path: Path relative to the content root (the old path for moves).
        dest_path: New relative path for moves, else None.
    """

    kind: str
    path: str
    dest_path: str | None = None


class ChangeNotifier:
    """Applies file-system changes under a content root to a store.

    Attributes:
        store: Store to keep in sync.
        root: Watched content directory.
        pattern: Glob selecting document files.
        put_timeout: Seconds the observer waits on a full queue before
            dropping the event and scheduling a full reload.
    """

    def __init__(
        self,
        store: ContentStore,
        root: Path,
        pattern: str | None = None,
        maxsize: int = 1024,
        put_timeout: float = 1.0,
    ):
        self.store = store
        self.root = Path(root).resolve()
        self.pattern = pattern or store.pattern
        self.put_timeout = put_timeout
        self._queue: queue.Queue[ChangeEvent | None] = queue.Queue(maxsize=maxsize)
        self._overflow = threading.Event()
        self._observer: Observer | None = None
        self._applier: threading.Thread | None = None

    def __enter__(self) -> ChangeNotifier:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        return self._applier is not None and self._applier.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._applier = threading.Thread(
            target=self._run, daemon=True, name="QuillChangeApplier"
        )
        self._applier.start()
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.root)

    def stop(self, timeout: float = 5.0) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout)
            self._observer = None
        if self._applier is not None:
            self._queue.put(None)
            self._applier.join(timeout)
            self._applier = None
        logger.info("Stopped watching %s", self.root)

    def post(self, event: ChangeEvent) -> bool:
        """Queue an event for the applier.

        Returns:
            False if the queue stayed full and the event was dropped. A full
            reload is then scheduled so no change is lost.
        """
        try:
            self._queue.put(event, timeout=self.put_timeout)
        except queue.Full:
            logger.warning("Change queue full; dropping %s and scheduling a reload", event)
            self._overflow.set()
            return False
        return True

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every queued event has been applied.

        Returns:
            False if events were still pending when ``timeout`` expired.
        """
        pending = self._queue
        with pending.all_tasks_done:
            return pending.all_tasks_done.wait_for(
                lambda: pending.unfinished_tasks == 0, timeout
            )

    def relative(self, src_path: str) -> str | None:
        """Path of ``src_path`` relative to the root, or None if outside it."""
        try:
            return Path(src_path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is None:
                    return
                self.apply(event)
                if self._overflow.is_set():
                    self._recover_overflow()
            except Exception:
                logger.exception("Error applying %s", event)
            finally:
                self._queue.task_done()

    def _recover_overflow(self) -> None:
        self._overflow.clear()
        drained = 0
        stop_requested = False
        while True:
            try:
                pending = self._queue.get_nowait()
            except queue.Empty:
                break
            if pending is None:
                stop_requested = True
            drained += 1
            self._queue.task_done()
        logger.info("Recovering from queue overflow (%d events drained)", drained)
        self.store.reload()
        if stop_requested:
            self._queue.put(None)

    def apply(self, event: ChangeEvent) -> None:
        """Apply one change to the store.

        Created and modified documents are re-parsed and upserted; deleted
        ones are evicted; a move evicts the old path and then treats the new
        one as created. Files not matching the document pattern are ignored.
        """
        if event.kind in (CREATED, MODIFIED):
            if self._is_document(event.path):
                self.store.refresh_file(event.path)
        elif event.kind == DELETED:
            if self._is_document(event.path):
                self.store.evict_file(event.path)
        elif event.kind == MOVED:
            if self._is_document(event.path):
                self.store.evict_file(event.path)
            if event.dest_path and self._is_document(event.dest_path):
                self.store.refresh_file(event.dest_path)

    def _is_document(self, path: str) -> bool:
        return matches_pattern(path, self.pattern)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, notifier: ChangeNotifier):
        super().__init__()
        self.notifier = notifier

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in _KINDS:
            return
        path = self.notifier.relative(event.src_path)
        dest = None
        if event.event_type == MOVED:
            dest = self.notifier.relative(event.dest_path)
            if path is None and dest is not None:
                # Moved in from outside the root.
                self.notifier.post(ChangeEvent(CREATED, dest))
                return
        if path is None:
            return
        self.notifier.post(ChangeEvent(event.event_type, path, dest))
