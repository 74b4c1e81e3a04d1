from datetime import datetime, timedelta, timezone

import pytest

from quill.collections import Pagination, PostCollection
from quill.models import Post, PostStatus, PostType

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_post(slug, days=0, status=PostStatus.PUBLISHED, **kwargs):
    return Post(
        title=kwargs.pop("title", slug.title()),
        slug=slug,
        date=BASE + timedelta(days=days),
        status=status,
        file_name=f"{slug}.md",
        **kwargs,
    )


def test_filters_by_status_type_and_taxonomy():
    posts = PostCollection(
        [
            make_post("a", categories=["Tech"], tags=["python"], author="Ada"),
            make_post("b", status=PostStatus.DRAFT, tags=["Python"]),
            make_post("c", type=PostType.PAGE, categories=["tech"]),
        ]
    )
    assert [p.slug for p in posts.published()] == ["a", "c"]
    assert [p.slug for p in posts.drafts()] == ["b"]
    assert [p.slug for p in posts.of_type(PostType.PAGE)] == ["c"]
    assert posts.of_type(None) is posts
    assert [p.slug for p in posts.with_category("TECH")] == ["a", "c"]
    assert [p.slug for p in posts.with_tag("python")] == ["a", "b"]
    assert [p.slug for p in posts.by_author("ada")] == ["a"]
    assert list(posts.by_author("Ad")) == []


def test_sorted_is_newest_first_with_slug_tiebreak():
    posts = PostCollection(
        [make_post("old", days=0), make_post("b-new", days=5), make_post("a-new", days=5)]
    )
    assert [p.slug for p in posts.sorted()] == ["b-new", "a-new", "old"]
    assert [p.slug for p in posts.sorted(reverse=False)] == ["old", "a-new", "b-new"]


def test_matching_searches_every_text_field():
    posts = PostCollection(
        [
            make_post("title-hit", title="Python Tips"),
            make_post("body-hit", content="all about PYTHON"),
            make_post("desc-hit", description="python intro"),
            make_post("excerpt-hit", excerpt="a python excerpt"),
            make_post("tag-hit", tags=["Python"]),
            make_post("cat-hit", categories=["python"]),
            make_post("miss", content="rust"),
        ]
    )
    found = {p.slug for p in posts.matching("python")}
    assert found == {"title-hit", "body-hit", "desc-hit", "excerpt-hit", "tag-hit", "cat-hit"}


@pytest.mark.parametrize("term", ["", "   "])
def test_blank_search_matches_nothing(term):
    posts = PostCollection([make_post("a"), make_post("b")])
    assert list(posts.matching(term)) == []


def test_pages_concatenate_to_full_listing():
    posts = PostCollection(make_post(f"p{i:02d}", days=i % 3) for i in range(23)).sorted()
    pages = []
    number = 1
    while True:
        chunk = list(posts.page(number, 5))
        if not chunk:
            break
        pages.extend(chunk)
        number += 1
    assert pages == list(posts)
    assert number == 6


def test_page_edges():
    posts = PostCollection(make_post(f"p{i}") for i in range(3))
    assert len(posts.page(0, 2)) == 2
    assert list(posts.page(0, 2)) == list(posts.page(1, 2))
    assert list(posts.page(9, 2)) == []
    with pytest.raises(ValueError):
        posts.page(1, 0)


def test_paginate_reports_totals():
    posts = PostCollection(make_post(f"p{i}", days=i) for i in range(7)).sorted()
    result = posts.paginate(2, 3)
    assert isinstance(result, Pagination)
    assert [p.slug for p in result.items] == ["p3", "p2", "p1"]
    assert result.current_page == 2
    assert result.total_pages == 3
    assert result.total_items == 7
    assert result.has_previous_page and result.has_next_page
    assert result.previous_page == 1
    assert result.next_page == 3
    assert result.show_pagination

    last = posts.paginate(3, 3)
    assert not last.has_next_page
    assert last.next_page == 3

    single = PostCollection([make_post("only")]).paginate(1, 10)
    assert not single.show_pagination
    assert not single.has_previous_page
    assert single.previous_page == 1
