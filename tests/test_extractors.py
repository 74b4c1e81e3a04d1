from datetime import datetime, timezone

import pytest

from quill.config import AuthorConfig, SiteConfig
from quill.extractors import (
    CompositeMetadataExtractor,
    DateExtractor,
    ParseError,
    RequiredTextExtractor,
    load_metadata,
    parse_document,
    serialize_post,
    split_frontmatter,
)
from quill.models import PostStatus, PostType
from quill.protocols import MetadataExtractor

UTC_CONFIG = SiteConfig(timezone="UTC", author=AuthorConfig(name="Site Author"))


def doc(header: str, body: str = "Body text") -> str:
    return f"---\n{header.strip()}\n---\n{body}"


def test_hello_world_example():
    text = doc("title: Hello\nslug: hello\ndate: 2024-01-01\nstatus: Published", "World")
    result = parse_document(text, "hello.md", UTC_CONFIG)
    assert result.ok
    post = result.post
    assert post.title == "Hello"
    assert post.slug == "hello"
    assert post.status is PostStatus.PUBLISHED
    assert post.content == "World"
    assert post.html() == "<p>World</p>\n"
    assert post.file_name == "hello.md"
    assert post.date == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_missing_front_matter_is_an_error():
    result = parse_document("# Just markdown\n\nNo header here.", "plain.md")
    assert not result.ok
    assert result.post is None
    assert result.error == "no front matter"


def test_split_frontmatter_variants():
    assert split_frontmatter("---\ntitle: a\n---\nbody") == ("title: a\n", "body")
    assert split_frontmatter("---\r\ntitle: a\r\n---\r\nbody") == ("title: a\n", "body")
    assert split_frontmatter("\ufeff---\ntitle: a\n---") == ("title: a\n", "")
    assert split_frontmatter("---\n---\nbody") == ("", "body")
    with pytest.raises(ParseError):
        split_frontmatter("title: a\n---\nbody")


@pytest.mark.parametrize(
    "header, missing",
    [
        ("slug: s\ndate: 2024-01-01", "title"),
        ("title: T\ndate: 2024-01-01", "slug"),
        ("title: T\nslug: s", "date"),
        ("title: '  '\nslug: s\ndate: 2024-01-01", "title"),
        ("title: T\nslug: s\ndate:", "date"),
    ],
)
def test_missing_required_fields_are_reported(header, missing):
    result = parse_document(doc(header), "x.md", UTC_CONFIG)
    assert not result.ok
    assert result.error == f"Missing required field: {missing}"


def test_missing_date_never_defaults_to_now():
    result = parse_document(doc("title: T\nslug: s"), "x.md", UTC_CONFIG)
    assert result.post is None
    assert "date" in result.error


def test_invalid_date_and_yaml_are_reported():
    bad_date = parse_document(doc("title: T\nslug: s\ndate: someday"), "x.md", UTC_CONFIG)
    assert bad_date.error == "Invalid date: someday"

    bad_yaml = parse_document(doc("title: [unclosed\nslug: s"), "x.md", UTC_CONFIG)
    assert bad_yaml.error.startswith("invalid front matter")

    not_mapping = parse_document(doc("- just\n- a list"), "x.md", UTC_CONFIG)
    assert not_mapping.error.startswith("invalid front matter")


def test_keys_are_case_insensitive():
    text = doc("Title: Upper\nSLUG: upper\nDate: 2024-02-03\nStatus: published\nTAGS: [a]")
    post = parse_document(text, "u.md", UTC_CONFIG).post
    assert post.title == "Upper"
    assert post.slug == "upper"
    assert post.status is PostStatus.PUBLISHED
    assert post.tags == ["a"]


def test_enums_default_silently_when_unrecognized():
    text = doc("title: T\nslug: s\ndate: 2024-01-01\ntype: essay\nstatus: someday")
    post = parse_document(text, "x.md", UTC_CONFIG).post
    assert post.type is PostType.POST
    assert post.status is PostStatus.DRAFT

    page = parse_document(
        doc("title: T\nslug: s\ndate: 2024-01-01\ntype: PAGE\nstatus: PUBLISHED"), "x.md"
    ).post
    assert page.type is PostType.PAGE
    assert page.status is PostStatus.PUBLISHED


def test_author_defaults_to_site_author():
    post = parse_document(doc("title: T\nslug: s\ndate: 2024-01-01"), "x.md", UTC_CONFIG).post
    assert post.author == "Site Author"

    anonymous = parse_document(doc("title: T\nslug: s\ndate: 2024-01-01"), "x.md", SiteConfig()).post
    assert anonymous.author == "Unknown"

    explicit = parse_document(
        doc("title: T\nslug: s\ndate: 2024-01-01\nauthor: Ada"), "x.md", UTC_CONFIG
    ).post
    assert explicit.author == "Ada"


def test_dates_without_offset_use_site_timezone():
    config = SiteConfig(timezone="America/New_York")
    naive = parse_document(doc("title: T\nslug: s\ndate: 2024-01-01 09:30:00"), "x.md", config).post
    assert naive.date == datetime(2024, 1, 1, 14, 30, tzinfo=timezone.utc)

    bare = parse_document(doc("title: T\nslug: s\ndate: 2024-01-01"), "x.md", config).post
    assert bare.date == datetime(2024, 1, 1, 5, tzinfo=timezone.utc)

    explicit = parse_document(
        doc("title: T\nslug: s\ndate: '2024-01-01T09:30:00+01:00'"), "x.md", config
    ).post
    assert explicit.date == datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)

    yaml_aware = parse_document(
        doc("title: T\nslug: s\ndate: 2024-01-01T09:30:00Z"), "x.md", config
    ).post
    assert yaml_aware.date == datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)


def test_lists_and_optional_fields():
    text = doc(
        "title: T\nslug: s\ndate: 2024-01-01\ncategories: Tech\ntags: [b, '', a, 3]\n"
        "image: /img/x.png\ndescription: '  '\nexcerpt: Short"
    )
    post = parse_document(text, "x.md", UTC_CONFIG).post
    assert post.categories == ["Tech"]
    assert post.tags == ["b", "a", "3"]
    assert post.image == "/img/x.png"
    assert post.description is None
    assert post.link is None
    assert post.excerpt == "Short"


def test_body_is_stripped_and_last_modified_is_stamped():
    stamp = datetime(2024, 5, 5, tzinfo=timezone.utc)
    text = doc("title: T\nslug: s\ndate: 2024-01-01", "\n\n  Body\n\n")
    post = parse_document(text, "x.md", UTC_CONFIG, last_modified=stamp).post
    assert post.content == "Body"
    assert post.last_modified == stamp


def test_serialize_round_trip_reproduces_post():
    text = doc(
        "title: 'Round: Trip'\nslug: round-trip\ndate: 2024-03-04 10:00:00\n"
        "status: Published\ntype: Page\ncategories: [One, Two]\ntags: [x]\n"
        "link: https://example.com\ndescription: About it\nexcerpt: Quick",
        "# Heading\n\nSome *markdown*.",
    )
    original = parse_document(text, "rt.md", UTC_CONFIG).post
    serialized = serialize_post(original)
    assert serialized.startswith("---\ntitle: 'Round: Trip'\nauthor: Site Author\n")
    again = parse_document(serialized, "rt.md", UTC_CONFIG).post
    assert again == original

    # Serialized output is stable once normalized.
    assert serialize_post(again) == serialized


def test_serialize_omits_empty_optional_fields():
    post = parse_document(doc("title: T\nslug: s\ndate: 2024-01-01"), "x.md", UTC_CONFIG).post
    serialized = serialize_post(post)
    for key in ("image:", "link:", "description:", "excerpt:"):
        assert key not in serialized
    assert "date: '2024-01-01T00:00:00+00:00'" in serialized


def test_load_metadata_lowercases_keys():
    assert load_metadata("Title: a\nSLUG: b") == {"title": "a", "slug": "b"}
    assert load_metadata("") == {}


def test_extractor_protocol_and_custom_composite():
    assert isinstance(DateExtractor(), MetadataExtractor)
    extractor = CompositeMetadataExtractor([RequiredTextExtractor("title")])
    assert extractor.extract({"title": " T "}, UTC_CONFIG) == {"title": "T"}
    with pytest.raises(ParseError):
        DateExtractor().extract({}, UTC_CONFIG)


def test_yes_no_and_numbers_stay_as_written():
    text = doc(
        "title: No\nslug: on\ndate: 2024-01-01\ntags: [yes, 1.10, 007]\n"
        "categories: 2024\ndescription: null"
    )
    post = parse_document(text, "x.md", UTC_CONFIG).post
    assert post.title == "No"
    assert post.slug == "on"
    assert post.tags == ["yes", "1.10", "007"]
    assert post.categories == ["2024"]
    assert post.description is None
    assert post.date == datetime(2024, 1, 1, tzinfo=timezone.utc)

    again = parse_document(serialize_post(post), "x.md", UTC_CONFIG).post
    assert again == post
