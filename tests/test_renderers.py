from datetime import datetime, timezone

from quill.models import Post
from quill.renderers import auto_excerpt, expand_shortcodes, render_markdown


def make_post(content, excerpt=None):
    return Post(
        title="T",
        slug="t",
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        content=content,
        excerpt=excerpt,
    )


def test_render_paragraph():
    assert render_markdown("World") == "<p>World</p>\n"


def test_headings_get_unique_ids():
    html = render_markdown("# Intro\n\ntext\n\n# Intro\n\n## Hello, World!")
    assert '<h1 id="intro">Intro</h1>' in html
    assert '<h1 id="intro-1">Intro</h1>' in html
    assert '<h2 id="hello-world">Hello, World!</h2>' in html


def test_code_blocks_are_highlighted_or_escaped():
    highlighted = render_markdown("```python\nprint('hi')\n```")
    assert 'class="highlight"' in highlighted

    unknown = render_markdown("```notalanguage\na < b\n```")
    assert '<code class="language-notalanguage">a &lt; b' in unknown

    plain = render_markdown("```\nx & y\n```")
    assert "<pre><code>x &amp; y" in plain


def test_tables_and_strikethrough():
    html = render_markdown("| a | b |\n|---|---|\n| 1 | 2 |\n\n~~gone~~")
    assert "<table>" in html
    assert "<del>gone</del>" in html


def test_video_shortcodes():
    html = expand_shortcodes("[youtube:abc123] and [vimeo:42]")
    assert "//www.youtube.com/embed/abc123?modestbranding=1" in html
    assert "https://player.vimeo.com/video/42" in html


def test_lightbox_shortcodes():
    html = expand_shortcodes(
        '[lightbox src="/media/a.jpg"][lightboxleft src=/media/b.jpg]'
        '[lightboxright src="/media/c.jpg"][lightboxmax src="/media/d.jpg"]'
    )
    assert '<a href="/media/a.jpg" class="lightbox" rel="lightbox-single">' in html
    assert '<a href="/media/b.jpg" class="lightbox" style="float: left;"' in html
    assert 'style="float: right;"' in html
    assert 'class="lightbox lightbox-max"' in html


def test_gallery_shortcodes_share_a_stable_id():
    source = '[gallery][lightbox2 src="/a.jpg"][lightbox2 src="/b.jpg"][/gallery][leftrightclear]'
    first = expand_shortcodes(source)
    assert first == expand_shortcodes(source)
    assert first.startswith('<div class="gallery"><div class="gallery-col-2">')
    assert first.count('rel="gallery-') == 2
    assert first.endswith('<div style="clear: both;"></div>')


def test_auto_excerpt_prefers_explicit_excerpt():
    assert auto_excerpt(make_post("Body", excerpt="Hand written")) == "Hand written"
    assert make_post("Body", excerpt="Hand written").auto_excerpt() == "Hand written"


def test_auto_excerpt_strips_html_and_truncates():
    post = make_post("**Bold** words " + "x" * 200)
    excerpt = auto_excerpt(post, length=20)
    assert excerpt == "Bold words xxxxxxxxx..."
    assert auto_excerpt(make_post("Short *one*")) == "Short one"
    assert auto_excerpt(make_post("")) == ""
