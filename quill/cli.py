"""Command-line interface for Quill.

This module defines operator commands on top of the content store using the
Click framework. Every command loads the store from the project's content
directory (``content_dir`` in quill.yaml).

Commands:
- check: Load all documents and report parse errors.
- list: List published posts or pages, one page at a time.
- show: Print one post's metadata and body (or rendered HTML).
- search: Search published posts.
- new: Create a new post interactively.
- delete: Delete a post by slug.
- watch: Keep the store in sync with the content directory until interrupted.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path

import click
import questionary

from . import __version__
from .config import load_config
from .models import Post, PostStatus, PostType
from .storage import LocalFileStorage
from .store import ConsistencyError, ContentStore, DocumentExistsError, SlugConflictError
from .utils import slugify

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="quill")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Project root containing quill.yaml",
)
@click.option(
    "--log-level",
    default=lambda: os.environ.get("QUILL_LOG_LEVEL", "WARNING"),
    help="Logging level (default: QUILL_LOG_LEVEL or WARNING)",
)
@click.pass_context
def cli(ctx: click.Context, root: Path, log_level: str):
    """Quill content store."""
    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.WARNING),
        format=LOG_FORMAT,
    )
    ctx.obj = root.resolve()


def _open_store(project_root: Path) -> ContentStore:
    config = load_config(project_root)
    storage = LocalFileStorage(project_root / config.content_dir)
    store = ContentStore(storage, config)
    store.load()
    return store


def _format_row(store: ContentStore, post: Post) -> str:
    date = store.config.format_date(post.date, "%Y-%m-%d")
    marker = "" if post.is_published else " [draft]"
    return f"{date}  {post.slug}  {post.title}{marker}"


@cli.command()
@click.pass_obj
def check(project_root: Path):
    """Load all documents and report parse errors."""
    store = _open_store(project_root)
    errors = store.parse_errors()
    click.echo(f"Loaded {len(store)} posts")
    if errors:
        click.echo(click.style(f"{len(errors)} documents failed to parse:", fg="red", bold=True), err=True)
        for path, message in sorted(errors.items()):
            click.echo(click.style(f"  {path}: ", fg="yellow") + message, err=True)
        raise SystemExit(1)


@cli.command(name="list")
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--page", type=int, default=1, show_default=True)
@click.option(
    "--type",
    "post_type",
    type=click.Choice(["post", "page", "all"], case_sensitive=False),
    default="post",
    show_default=True,
)
@click.pass_obj
def list_command(project_root: Path, drafts: bool, page: int, post_type: str):
    """List posts, newest first."""
    store = _open_store(project_root)
    kind = None if post_type.lower() == "all" else PostType.parse(post_type)
    result = store.paginate(kind, include_drafts=drafts, page=page)
    for post in result.items:
        click.echo(_format_row(store, post))
    click.echo(f"Page {result.current_page} of {max(result.total_pages, 1)} ({result.total_items} total)")


@cli.command()
@click.argument("slug")
@click.option("--html", "as_html", is_flag=True, help="Render the body to HTML")
@click.pass_obj
def show(project_root: Path, slug: str, as_html: bool):
    """Show one post."""
    store = _open_store(project_root)
    post = store.get_by_slug(slug, include_drafts=True)
    if post is None:
        raise click.ClickException(f"No post with slug '{slug}'")
    click.echo(click.style(post.title, bold=True))
    click.echo(f"{store.config.format_date(post.date)} by {post.author} ({post.status.value})")
    if post.categories:
        click.echo(f"Categories: {', '.join(post.categories)}")
    if post.tags:
        click.echo(f"Tags: {', '.join(post.tags)}")
    click.echo("")
    click.echo(post.html() if as_html else post.content)


@cli.command()
@click.argument("term")
@click.pass_obj
def search(project_root: Path, term: str):
    """Search published posts."""
    store = _open_store(project_root)
    results = store.search(term)
    for post in results:
        click.echo(_format_row(store, post))
        click.echo(f"    {post.auto_excerpt(store.config.excerpt_length)}")
    click.echo(f"{len(results)} results")


@cli.command()
@click.pass_obj
def new(project_root: Path):
    """Create a new post interactively."""
    store = _open_store(project_root)

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    slug = questionary.text(
        "Slug:", default=slugify(title), style=_questionary_style()
    ).ask()
    if slug is None:
        raise click.Abort()

    post_type = questionary.select(
        "Type:", choices=[t.value for t in PostType], style=_questionary_style()
    ).ask()
    if post_type is None:
        raise click.Abort()

    publish = questionary.confirm(
        "Publish now?", default=False, style=_questionary_style()
    ).ask()
    if publish is None:
        raise click.Abort()

    post = Post(
        title=title,
        slug=slug.strip(),
        date=datetime.now(timezone.utc),
        content=f"# {title}\n",
        author=store.config.default_author,
        type=PostType.parse(post_type),
        status=PostStatus.PUBLISHED if publish else PostStatus.DRAFT,
    )
    try:
        saved = store.save(post)
    except (SlugConflictError, DocumentExistsError) as exc:
        raise click.ClickException(str(exc)) from None
    except ConsistencyError as exc:
        raise click.ClickException(f"Saved, but could not read back: {exc}") from None
    click.echo(f"Created {saved.file_name}")


@cli.command()
@click.argument("slug")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def delete(project_root: Path, slug: str, yes: bool):
    """Delete a post by slug."""
    store = _open_store(project_root)
    post = store.get_by_slug(slug, include_drafts=True)
    if post is None:
        raise click.ClickException(f"No post with slug '{slug}'")
    if not yes:
        click.confirm(f"Delete {post.file_name}?", abort=True)
    store.delete(slug)
    click.echo(f"Deleted {post.file_name}")


@cli.command()
@click.pass_obj
def watch(project_root: Path):  # pragma: no cover - integration path
    """Keep the store in sync with the content directory."""
    from .watcher import ChangeNotifier

    store = _open_store(project_root)
    click.echo(f"Loaded {len(store)} posts; watching {store.storage.root}")
    with ChangeNotifier(store, store.storage.root):
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
