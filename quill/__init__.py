"""Quill content store.

This package turns a directory of Markdown documents with YAML front matter
into an in-memory, queryable collection of posts and pages, and keeps that
collection consistent while files are edited, renamed or removed underneath
concurrent readers.

The main entry point for applications is ``quill.store.ContentStore``; the
``quill.watcher.ChangeNotifier`` keeps a store in sync with a local content
directory, and the CLI module offers operator commands on top of both.

Architecture:
- Parsing (extractors) is pure and never raises for document problems.
- Storage is reached only through the ContentStorage protocol.
- The store owns its own synchronization; callers share it by handle.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
