"""Markdown rendering for Quill posts.

Post bodies are stored as Markdown. Rendering expands the editor shortcodes
(video embeds, lightbox images, galleries) into HTML, then runs mistune with
heading anchors and Pygments code highlighting.

Key classes:
- _HighlightRenderer: mistune HTML renderer with heading ids and highlighting.

Key functions:
- expand_shortcodes: Expand ``[youtube:...]``-style shortcodes to HTML.
- render_markdown: Render a Markdown body to HTML.
- auto_excerpt: Excerpt for listings, falling back to the rendered body.
"""

from __future__ import annotations

import hashlib
import re
from typing import TYPE_CHECKING

import mistune

if TYPE_CHECKING:
    from .models import Post

_TAG_RE = re.compile(r"<[^>]*>")

_VIMEO = (
    '<div class="video"><iframe src="https://player.vimeo.com/video/{0}" '
    'frameborder="0" webkitallowfullscreen allowfullscreen></iframe></div>'
)
_YOUTUBE = (
    '<div class="video"><iframe src="//www.youtube.com/embed/{0}'
    '?modestbranding=1&amp;theme=light" allowfullscreen></iframe></div>'
)
_LIGHTBOX = (
    '<a href="{0}" class="lightbox"{style} rel="lightbox-single">'
    '<img src="{0}" alt="" /></a>'
)
_LIGHTBOX_MAX = (
    '<a href="{0}" class="lightbox lightbox-max" rel="lightbox-single">'
    '<img src="{0}" alt="" style="width: 100%; max-width: 100%;" /></a>'
)
_GALLERY_COLUMN = (
    '<div class="gallery-col-{cols}"><a href="{0}" class="lightbox" '
    'rel="gallery-{gallery}"><img src="{0}" alt="" /></a></div>'
)

# Matches src="x" as well as unquoted src=x.
_SRC = r'src=(?:"([^"]*)"|([^\]]+))'


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _src(match: re.Match) -> str:
    return (match.group(1) if match.group(1) is not None else match.group(2)).strip().strip('"')


def expand_shortcodes(content: str) -> str:
    """Expand editor shortcodes into HTML.

    Supported: ``[vimeo:id]``, ``[youtube:id]``, ``[lightbox src=...]`` and its
    ``left``/``right``/``max`` variants, ``[lightbox1|2|3 src=...]`` gallery
    columns, ``[gallery]...[/gallery]`` and ``[leftrightclear]``.

    Args:
        content: Markdown source.

    Returns:
        Markdown with shortcodes replaced by HTML.
    """
    # Gallery ids only need to be unique per post; hash keeps output stable.
    gallery_id = hashlib.sha1(content.encode("utf-8")).hexdigest()[:8]

    content = re.sub(r"\[vimeo:(.*?)\]", lambda m: _VIMEO.format(m.group(1)), content)
    content = re.sub(r"\[youtube:(.*?)\]", lambda m: _YOUTUBE.format(m.group(1)), content)
    styles = {
        "lightbox": "",
        "lightboxleft": ' style="float: left;"',
        "lightboxright": ' style="float: right;"',
    }
    for name, style in styles.items():
        content = re.sub(
            rf"\[{name} {_SRC}\]",
            lambda m, style=style: _LIGHTBOX.format(_src(m), style=style),
            content,
        )
    content = re.sub(
        rf"\[lightboxmax {_SRC}\]", lambda m: _LIGHTBOX_MAX.format(_src(m)), content
    )
    for cols in (1, 2, 3):
        content = re.sub(
            rf"\[lightbox{cols} {_SRC}\]",
            lambda m, cols=cols: _GALLERY_COLUMN.format(
                _src(m), cols=cols, gallery=gallery_id
            ),
            content,
        )
    content = re.sub(
        r"\[gallery\](.*?)\[/gallery\]",
        r'<div class="gallery">\1</div>',
        content,
        flags=re.DOTALL,
    )
    return content.replace("[leftrightclear]", '<div style="clear: both;"></div>')


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and syntax highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with an auto-generated, de-duplicated id."""
        base_id = _generate_heading_id(text)

        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'javascript').

        Returns:
            HTML string with highlighted code.
        """
        if info:
            try:
                from pygments import highlight
                from pygments.formatters import HtmlFormatter
                from pygments.lexers import get_lexer_by_name
                from pygments.util import ClassNotFound

                lexer = get_lexer_by_name(info, stripall=True)
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
            except ClassNotFound:
                pass
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


def render_markdown(content: str) -> str:
    """Render a Markdown body to HTML.

    Args:
        content: Markdown source, possibly containing shortcodes.

    Returns:
        Rendered HTML.

    Examples:
        >>> render_markdown("World")
        '<p>World</p>\\n'
    """
    markdown = mistune.create_markdown(
        renderer=_HighlightRenderer(),
        plugins=["strikethrough", "footnotes", "table", "url"],
    )
    return markdown(expand_shortcodes(content))


def auto_excerpt(post: Post, length: int = 150) -> str:
    """Return the post's excerpt, or a plain-text prefix of its rendered body.

    Args:
        post: Post to summarize.
        length: Maximum length of a generated excerpt before the ellipsis.

    Returns:
        Excerpt text.
    """
    if post.excerpt and post.excerpt.strip():
        return post.excerpt
    if not post.content.strip():
        return ""
    clean = _TAG_RE.sub("", render_markdown(post.content)).strip()
    clean = clean.replace("&#160;", "").replace("&nbsp;", "").replace("&rsquo;", "'")
    if len(clean) > length:
        clean = clean[:length] + "..."
    return clean
